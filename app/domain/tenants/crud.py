from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert
from .models import Tenant
from .counters import invoice_counters


async def get_tenant_by_slug(db: AsyncSession, slug: str) -> Tenant | None:
    stmt = select(Tenant).where(Tenant.slug == slug)
    result = await db.execute(stmt)
    return result.scalars().first()


# Only these change on re-post; currency and invoice_prefix are fixed at creation
BRANDING_COLUMNS = ("business_name", "email_from", "phone", "address", "tax_id")


async def upsert_tenant(db: AsyncSession, data: dict) -> Tenant:
    update_cols = {k: data[k] for k in BRANDING_COLUMNS if k in data}
    stmt = (
        insert(Tenant)
        .values(**data)
        .on_conflict_do_update(index_elements=[Tenant.slug], set_=update_cols)
        .returning(Tenant)
    )
    result = await db.execute(stmt)
    return result.scalars().one()


def next_counter_stmt(tenant_id: UUID):
    """Atomic increment-and-return of the tenant's invoice sequence.

    The first call for a tenant inserts 1; later calls take the row lock and
    bump it, so concurrent callers always see distinct values.
    """
    return (
        insert(invoice_counters)
        .values(tenant_id=tenant_id, counter=1)
        .on_conflict_do_update(
            index_elements=[invoice_counters.c.tenant_id],
            set_={"counter": invoice_counters.c.counter + 1},
        )
        .returning(invoice_counters.c.counter)
    )


async def get_counter(db: AsyncSession, tenant_id: UUID) -> int:
    value = await db.scalar(
        select(invoice_counters.c.counter).where(invoice_counters.c.tenant_id == tenant_id)
    )
    return int(value or 0)
