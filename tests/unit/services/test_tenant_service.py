import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError
from app.services import tenant_service
from app.domain.exceptions import InvalidInput, NotFound, Conflict
from app.domain.tenants import crud
from app.domain.tenants.schemas import TenantUpsertDTO
from tests.helper import create_tenant


@pytest.mark.asyncio
@pytest.mark.parametrize("slug", [None, "", "   "])
async def test_resolve_tenant_without_slug_raises_invalid_input(mocker, slug):
    lookup = mocker.patch("app.services.tenant_service.crud.get_tenant_by_slug", new=mocker.AsyncMock())

    with pytest.raises(InvalidInput) as e:
        await tenant_service.resolve_tenant(mocker.Mock(), slug)

    assert e.value.reason == "missing_tenant"
    lookup.assert_not_awaited()


@pytest.mark.asyncio
async def test_resolve_tenant_unknown_slug_raises_not_found(mocker):
    mocker.patch("app.services.tenant_service.crud.get_tenant_by_slug", new=mocker.AsyncMock(return_value=None))

    with pytest.raises(NotFound) as e:
        await tenant_service.resolve_tenant(mocker.Mock(), "ghost")

    assert e.value.reason == "tenant_not_found"
    assert e.value.ctx == {"tenant": "ghost"}


@pytest.mark.asyncio
async def test_resolve_tenant_normalizes_slug_before_lookup(mocker):
    tenant = create_tenant(mocker)
    lookup = mocker.patch(
        "app.services.tenant_service.crud.get_tenant_by_slug",
        new=mocker.AsyncMock(return_value=tenant)
    )
    db = mocker.Mock()

    assert await tenant_service.resolve_tenant(db, "  ACME ") is tenant
    lookup.assert_awaited_once_with(db, "acme")


@pytest.mark.asyncio
async def test_upsert_tenant_returns_row_and_audits(mocker, auditspan_stub):
    tenant = create_tenant(mocker)
    upsert = mocker.patch("app.services.tenant_service.crud.upsert_tenant", new=mocker.AsyncMock(return_value=tenant))
    schema = TenantUpsertDTO(slug="Acme Corp", business_name=" Acme Corp ", currency="usd")

    assert await tenant_service.upsert_tenant(mocker.Mock(), schema) is tenant

    data = upsert.await_args.args[1]
    assert data["slug"] == "acme-corp"
    assert data["business_name"] == "Acme Corp"
    assert data["currency"] == "USD"
    assert auditspan_stub[0].tenant_id == tenant.id


@pytest.mark.asyncio
async def test_upsert_tenant_integrity_error_raises_conflict(mocker):
    mocker.patch(
        "app.services.tenant_service.crud.upsert_tenant",
        new=mocker.AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("dup")))
    )
    schema = TenantUpsertDTO(slug="acme", business_name="Acme")

    with pytest.raises(Conflict):
        await tenant_service.upsert_tenant(mocker.Mock(), schema)


@pytest.mark.asyncio
async def test_upsert_tenant_on_existing_slug_only_updates_branding_columns(mocker):
    db = mocker.Mock()
    db.execute = mocker.AsyncMock(return_value=mocker.Mock())
    data = TenantUpsertDTO(slug="acme", business_name="Acme Two", currency="USD", phone="+48 123").model_dump()

    await crud.upsert_tenant(db, data)

    sql = str(db.execute.await_args.args[0].compile(dialect=postgresql.dialect()))
    set_clause = sql.split("DO UPDATE SET", 1)[1].split("RETURNING", 1)[0]
    assert "ON CONFLICT (slug)" in sql
    assert "business_name =" in set_clause
    assert "phone =" in set_clause
    assert "currency" not in set_clause
    assert "invoice_prefix" not in set_clause
    assert "slug" not in set_clause
