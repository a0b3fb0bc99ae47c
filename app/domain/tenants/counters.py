from sqlalchemy import Table, Column, Integer, ForeignKey, CheckConstraint, Uuid
from app.core.database import Base

# Last issued invoice sequence per tenant; only ever advanced by the allocator upsert
invoice_counters = Table(
    "invoice_counters",
    Base.metadata,
    Column("tenant_id", Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True),
    Column("counter", Integer, nullable=False),
    CheckConstraint("counter >= 1", name="chk_invoice_counter_ge1"),
)
