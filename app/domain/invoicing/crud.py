from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.pagination import paginate
from .models import Invoice, InvoiceItem


async def get_invoice_by_number(db: AsyncSession, tenant_id: UUID, number: str) -> Invoice | None:
    stmt = select(Invoice).where(Invoice.tenant_id == tenant_id, Invoice.number == number)
    result = await db.execute(stmt)
    return result.scalars().first()


async def create_invoice(db: AsyncSession, data: dict) -> Invoice:
    invoice = Invoice(**data)
    db.add(invoice)
    return invoice


async def create_invoice_items(db: AsyncSession, items: list[dict]) -> list[InvoiceItem]:
    rows = [InvoiceItem(**item) for item in items]
    db.add_all(rows)
    return rows


async def list_tenant_invoices(
        db: AsyncSession,
        tenant_id: UUID,
        page: int,
        page_size: int
) -> tuple[list[Invoice], int]:
    return await paginate(
        db,
        select(Invoice),
        page=page,
        page_size=page_size,
        where=[Invoice.tenant_id == tenant_id],
        order_by=[Invoice.created_at.desc(), Invoice.id]
    )
