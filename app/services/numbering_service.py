"""Per-tenant invoice numbering.

Numbers come from one row per tenant in ``invoice_counters``, advanced by a
single ``INSERT .. ON CONFLICT DO UPDATE .. RETURNING`` statement. PostgreSQL
serializes concurrent upserts on the same row, so every caller gets a distinct
value, and tenants never contend because they lock different rows.

The allocation commits in its own short transaction before the invoice is
written. If the invoice insert fails afterwards the number is simply burned:
a gap is acceptable, renumbering an issued invoice is not.
"""
import logging
from uuid import UUID
from sqlalchemy.exc import SQLAlchemyError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.core.config import DEFAULT_INVOICE_PREFIX, INVOICE_NUMBER_WIDTH
from app.core.database import AsyncSessionLocal
from app.domain.exceptions import AllocationFailed
from app.domain.tenants import crud
from app.domain.tenants.models import Tenant


logger = logging.getLogger(__name__)


def format_invoice_number(prefix: str | None, sequence: int, width: int = INVOICE_NUMBER_WIDTH) -> str:
    prefix = (prefix or "").strip() or DEFAULT_INVOICE_PREFIX
    return f"{prefix}-{sequence:0{max(6, width)}d}"


async def next_sequence(db: AsyncSession, tenant_id: UUID) -> int:
    row = await db.execute(crud.next_counter_stmt(tenant_id))
    return row.scalar_one()


async def allocate_invoice_number(
        tenant: Tenant,
        *,
        session_factory: async_sessionmaker = AsyncSessionLocal
) -> str:
    try:
        async with session_factory() as db:
            async with db.begin():
                sequence = await next_sequence(db, tenant.id)
    except (DBAPIError, SQLAlchemyError) as e:
        logger.exception("Invoice number allocation failed tenant=%s", tenant.slug)
        raise AllocationFailed(
            "Invoice numbering failed",
            ctx={"tenant": tenant.slug}
        ) from e

    if not sequence:
        raise AllocationFailed("Invoice numbering returned no value", ctx={"tenant": tenant.slug})

    number = format_invoice_number(tenant.invoice_prefix, sequence)
    logger.info("Allocated invoice number tenant=%s number=%s", tenant.slug, number)
    return number


async def peek_invoice_counter(db: AsyncSession, tenant_id: UUID) -> int:
    return await crud.get_counter(db, tenant_id)
