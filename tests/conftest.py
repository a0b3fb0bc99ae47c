import os

os.environ.setdefault("POSTGRES_USER", "invoicing")
os.environ.setdefault("db_password", "invoicing")
os.environ.setdefault("POSTGRES_DB", "invoicing")
os.environ.setdefault("DB_HOST", "localhost")
os.environ.setdefault("DB_PORT", "5432")
os.environ.setdefault("SCHEMA_CHECK_ON_STARTUP", "false")

import pytest
import importlib


SERVICE_MODULES = [
    "app.services.tenant_service",
    "app.services.client_service",
    "app.services.invoice_service",
    "app.services.document_service",
]

class _StubSpan:
    def __init__(
        self,
        *,
        scope: str,
        action: str,
        object_type: str | None = None,
        object_id=None,
        tenant_id=None,
        client_id=None,
        invoice_id=None,
        tenant_slug: str | None = None,
        meta: dict | None = None,
        **_ignored
    ):
        self.scope = scope
        self.action = action
        self.object_type = object_type
        self.object_id = object_id
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.invoice_id = invoice_id
        self.tenant_slug = tenant_slug
        self.meta = dict(meta or {})
        self.entered = False
        self.exited = False
        self.exit_args = None

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True
        self.exit_args = (exc_type, exc, tb)
        return False


@pytest.fixture(autouse=True)
def auditspan_stub(mocker, request):
    instances = []

    def factory(*a, **k):
        s = _StubSpan(*a, **k)
        instances.append(s)
        return s

    for mod in SERVICE_MODULES:
        importlib.import_module(mod)
        mocker.patch(f"{mod}.AuditSpan", side_effect=factory)

    return instances
