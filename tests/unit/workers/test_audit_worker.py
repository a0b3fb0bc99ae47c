import json
import pytest
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError
from app.workers import audit_worker


def test_params_from_payload_maps_fields():
    params = audit_worker.params_from_payload({
        "scope": "INVOICES",
        "action": "ISSUE",
        "status": "fail",
        "tenant_slug": "acme",
        "invoice_id": "0b6f6d4e-7e4c-4a35-8f1c-8d6a8f0f4b11",
        "reason": "numbering_failed",
        "meta": {"number": "INV-000001"},
    })

    assert params["status"] == "FAIL"
    assert params["tenant_slug"] == "acme"
    assert params["client_id"] is None
    assert params["meta"] == {"number": "INV-000001"}


@pytest.mark.parametrize("payload", [[], {"scope": "INVOICES"}, {"action": "ISSUE"}])
def test_params_from_payload_rejects_malformed(payload):
    with pytest.raises(ValueError):
        audit_worker.params_from_payload(payload)


def _session(mocker, execute):
    db = mocker.Mock()
    db.execute = execute

    @asynccontextmanager
    async def begin():
        yield

    db.begin = begin

    @asynccontextmanager
    async def factory():
        yield db

    return factory


@pytest.mark.asyncio
async def test_persist_entries_acks_inserted_and_malformed_but_keeps_failed(mocker):
    execute = mocker.AsyncMock(side_effect=[None, OperationalError("INSERT", {}, Exception("down"))])
    r = mocker.Mock()
    r.xack = mocker.AsyncMock()
    entries = [
        ("1-0", {"json": json.dumps({"scope": "INVOICES", "action": "ISSUE"})}),
        ("2-0", {"json": "{not json"}),
        ("3-0", {"json": json.dumps({"scope": "DOCUMENTS", "action": "GENERATE"})}),
    ]

    await audit_worker.persist_entries(r, _session(mocker, execute), entries)

    acked = [c.args[2] for c in r.xack.await_args_list]
    assert acked == ["1-0", "2-0"]
