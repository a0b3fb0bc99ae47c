import asyncio
import uuid
from contextlib import asynccontextmanager
from types import SimpleNamespace
from sqlalchemy.dialects import postgresql


def db_with_scalars_first(mocker, value):
    res = mocker.Mock()
    res.scalars.return_value.first.return_value = value
    db = mocker.Mock()
    db.execute = mocker.AsyncMock(return_value=res)
    return db, res


def db_with_scalar(mocker, value):
    db = mocker.Mock()
    db.scalar = mocker.AsyncMock(return_value=value)
    return db


def db_with_savepoints(mocker):
    """Session mock whose begin_nested() behaves like a real savepoint block."""
    db = mocker.Mock()
    db.flush = mocker.AsyncMock()
    db.savepoints = []

    @asynccontextmanager
    async def begin_nested():
        db.savepoints.append("open")
        try:
            yield
        except BaseException:
            db.savepoints[-1] = "rolled_back"
            raise
        db.savepoints[-1] = "released"

    db.begin_nested = begin_nested
    return db


def create_tenant(mocker, slug: str = "acme", prefix: str | None = "INV"):
    tenant = mocker.Mock()
    tenant.id = uuid.uuid4()
    tenant.slug = slug
    tenant.invoice_prefix = prefix
    tenant.business_name = slug.title()
    return tenant


def create_invoice(mocker, number: str = "INV-000001"):
    invoice = mocker.Mock()
    invoice.id = uuid.uuid4()
    invoice.number = number
    return invoice


class CounterStore:
    """Stands in for the session used by the allocator and counter lookups.

    Each allocation bumps the tenant's counter and returns it in one step,
    like the ON CONFLICT upsert does under its row lock.
    """

    def __init__(self, initial: dict | None = None):
        self.counters = dict(initial or {})
        self.allocations = 0

    @staticmethod
    def _tenant_id(stmt):
        params = stmt.compile(dialect=postgresql.dialect()).params
        return next(v for v in params.values() if isinstance(v, uuid.UUID))

    async def execute(self, stmt):
        tenant_id = self._tenant_id(stmt)
        await asyncio.sleep(0)
        value = self.counters.get(tenant_id, 0) + 1
        self.counters[tenant_id] = value
        self.allocations += 1
        return SimpleNamespace(scalar_one=lambda: value)

    async def scalar(self, stmt):
        return self.counters.get(self._tenant_id(stmt))

    @asynccontextmanager
    async def begin(self):
        yield

    @asynccontextmanager
    async def session_factory(self):
        yield self
