"""Structural expectations of the database, checked once at startup."""
import logging
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine


logger = logging.getLogger(__name__)

SCHEMA_CONTRACT_VERSION = 1

REQUIRED_COLUMNS: dict[str, frozenset[str]] = {
    "tenants": frozenset({"id", "slug", "business_name", "currency", "invoice_prefix"}),
    "clients": frozenset({"id", "tenant_id", "external_id", "name", "email"}),
    "invoices": frozenset({
        "id", "tenant_id", "client_id", "number", "issue_date", "due_date", "currency", "status",
        "subtotal", "tax_total", "total", "balance_due", "from_quote_id",
    }),
    "invoice_items": frozenset({"id", "invoice_id", "description", "quantity", "unit_price", "line_total",
                                "position"}),
    "invoice_counters": frozenset({"tenant_id", "counter"}),
}


class SchemaContractError(RuntimeError):
    def __init__(self, missing: dict[str, list[str]]):
        self.missing = missing
        details = ", ".join(f"{table}: {', '.join(cols) or '<table>'}" for table, cols in missing.items())
        super().__init__(f"Database schema does not satisfy contract v{SCHEMA_CONTRACT_VERSION} ({details})")


def find_missing(sync_conn) -> dict[str, list[str]]:
    inspector = inspect(sync_conn)
    tables = set(inspector.get_table_names())
    missing: dict[str, list[str]] = {}
    for table, required in REQUIRED_COLUMNS.items():
        if table not in tables:
            missing[table] = []
            continue
        present = {col["name"] for col in inspector.get_columns(table)}
        absent = sorted(required - present)
        if absent:
            missing[table] = absent
    return missing


async def verify_schema(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        missing = await conn.run_sync(find_missing)
    if missing:
        raise SchemaContractError(missing)
    logger.info("Schema contract v%d verified", SCHEMA_CONTRACT_VERSION)
