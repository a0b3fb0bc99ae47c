import uuid
import pytest
from sqlalchemy.exc import IntegrityError
from app.services import client_service
from app.domain.exceptions import InvalidInput, NotFound, Conflict
from app.domain.clients.schemas import ClientUpsertDTO
from tests.helper import create_tenant


@pytest.mark.asyncio
async def test_resolve_client_explicit_id_is_returned_without_lookup(mocker):
    lookup = mocker.patch("app.services.client_service.crud.get_client_by_external_id", new=mocker.AsyncMock())
    client_id = uuid.uuid4()

    result = await client_service.resolve_client(mocker.Mock(), uuid.uuid4(), client_id=client_id, external_id="X")

    assert result == client_id
    lookup.assert_not_awaited()


@pytest.mark.asyncio
async def test_resolve_client_by_external_id_within_tenant(mocker):
    client = mocker.Mock(id=uuid.uuid4())
    lookup = mocker.patch(
        "app.services.client_service.crud.get_client_by_external_id",
        new=mocker.AsyncMock(return_value=client)
    )
    tenant_id = uuid.uuid4()
    db = mocker.Mock()

    assert await client_service.resolve_client(db, tenant_id, external_id="CRM-7") == client.id
    lookup.assert_awaited_once_with(db, tenant_id, "CRM-7")


@pytest.mark.asyncio
async def test_resolve_client_unknown_external_id_raises_not_found(mocker):
    mocker.patch("app.services.client_service.crud.get_client_by_external_id", new=mocker.AsyncMock(return_value=None))

    with pytest.raises(NotFound) as e:
        await client_service.resolve_client(mocker.Mock(), uuid.uuid4(), external_id="CRM-404")

    assert e.value.reason == "client_not_found"


@pytest.mark.asyncio
@pytest.mark.parametrize("external_id", [None, ""])
async def test_resolve_client_without_reference_raises_invalid_input(mocker, external_id):
    with pytest.raises(InvalidInput) as e:
        await client_service.resolve_client(mocker.Mock(), uuid.uuid4(), external_id=external_id)

    assert e.value.reason == "missing_client"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, expected_cols",
    [
        ({"external_id": "CRM-1", "email": "a@b.com"}, ["tenant_id", "external_id"]),
        ({"email": "A@B.com"}, ["tenant_id", "email"]),
        ({}, None),
    ]
)
async def test_upsert_client_picks_dedup_key(mocker, payload, expected_cols):
    tenant = create_tenant(mocker)
    mocker.patch("app.services.client_service.resolve_tenant", new=mocker.AsyncMock(return_value=tenant))
    client = mocker.Mock(id=uuid.uuid4())
    upsert = mocker.patch("app.services.client_service.crud.upsert_client", new=mocker.AsyncMock(return_value=client))
    db = mocker.Mock()
    db.flush = mocker.AsyncMock()

    result = await client_service.upsert_client(db, ClientUpsertDTO(tenant="acme", name="Bob", **payload))

    assert result is client
    data, cols = upsert.await_args.args[1], upsert.await_args.args[2]
    assert cols == expected_cols
    assert data["tenant_id"] == tenant.id
    assert "tenant" not in data


@pytest.mark.asyncio
async def test_upsert_client_integrity_error_raises_conflict(mocker):
    mocker.patch("app.services.client_service.resolve_tenant", new=mocker.AsyncMock(return_value=create_tenant(mocker)))
    mocker.patch(
        "app.services.client_service.crud.upsert_client",
        new=mocker.AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("dup")))
    )
    db = mocker.Mock()
    db.flush = mocker.AsyncMock()

    with pytest.raises(Conflict):
        await client_service.upsert_client(db, ClientUpsertDTO(tenant="acme", name="Bob", email="bob@example.com"))
