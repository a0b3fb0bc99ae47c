import uuid
import pytest
from fastapi.testclient import TestClient
from app.main import app
from app.core.database import get_db
from app.domain.exceptions import NotFound, InvalidInput, AllocationFailed, GenerationFailed
from app.domain.invoicing.schemas import InvoiceIssueResultDTO
from app.storage.object_store import get_storage


ISSUE_BODY = {
    "tenant": "acme",
    "client_external_id": "CRM-1",
    "issue_date": "2025-03-01",
    "due_date": "2025-03-31",
    "currency": "EUR",
    "subtotal": "100.00",
    "tax_total": "21.00",
    "total": "121.00",
    "lines": [{"description": "Consulting", "qty": 2, "unit_price": "50.00"}],
}


@pytest.fixture
def client(mocker):
    async def _db():
        yield mocker.Mock()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_storage] = lambda: mocker.Mock()
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def test_issue_invoice_returns_201_with_id_and_number(mocker, client):
    invoice_id = uuid.uuid4()
    mocker.patch(
        "app.api.v1.routes.invoices.invoice_service.issue_invoice",
        new=mocker.AsyncMock(return_value=InvoiceIssueResultDTO(id=invoice_id, number="INV-000001"))
    )

    resp = client.post("/invoices", json=ISSUE_BODY)

    assert resp.status_code == 201
    assert resp.json() == {"id": str(invoice_id), "number": "INV-000001"}
    assert resp.headers["Location"] == "/invoices/link?tenant=acme&number=INV-000001"


def test_issue_invoice_partial_success_reports_line_items_error(mocker, client):
    invoice_id = uuid.uuid4()
    mocker.patch(
        "app.api.v1.routes.invoices.invoice_service.issue_invoice",
        new=mocker.AsyncMock(return_value=InvoiceIssueResultDTO(
            id=invoice_id, number="INV-000002", line_items_error="items: IntegrityError"
        ))
    )

    resp = client.post("/invoices", json=ISSUE_BODY)

    assert resp.status_code == 201
    assert resp.json()["line_items_error"] == "items: IntegrityError"


def test_issue_invoice_missing_field_is_400_validation_error(mocker, client):
    service = mocker.patch("app.api.v1.routes.invoices.invoice_service.issue_invoice", new=mocker.AsyncMock())
    body = {k: v for k, v in ISSUE_BODY.items() if k != "total"}

    resp = client.post("/invoices", json=body)

    assert resp.status_code == 400
    assert resp.headers["content-type"].startswith("application/problem+json")
    data = resp.json()
    assert data["error"] == "validation_error"
    assert any(err["field"] == "total" for err in data["context"]["errors"])
    service.assert_not_awaited()


@pytest.mark.parametrize(
    "exc, expected_status, expected_error",
    [
        (NotFound("Tenant not found", reason="tenant_not_found"), 400, "tenant_not_found"),
        (NotFound("Client not found", reason="client_not_found"), 400, "client_not_found"),
        (InvalidInput("Missing client", reason="missing_client"), 400, "missing_client"),
        (AllocationFailed("Invoice numbering failed"), 500, "numbering_failed"),
    ]
)
def test_issue_invoice_errors_map_to_problem_responses(mocker, client, exc, expected_status, expected_error):
    mocker.patch(
        "app.api.v1.routes.invoices.invoice_service.issue_invoice",
        new=mocker.AsyncMock(side_effect=exc)
    )

    resp = client.post("/invoices", json=ISSUE_BODY)

    assert resp.status_code == expected_status
    assert resp.json()["error"] == expected_error


def test_invoice_link_redirects_to_signed_url(mocker, client):
    service = mocker.patch(
        "app.api.v1.routes.invoices.document_service.get_invoice_link",
        new=mocker.AsyncMock(return_value="https://files.example/acme/INV-000001.pdf?sig=1")
    )

    resp = client.get("/invoices/link", params={"tenant": "Acme", "number": "INV-000001"}, follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "https://files.example/acme/INV-000001.pdf?sig=1"
    assert resp.headers["cache-control"] == "no-store"
    assert service.await_args.args[1:] == ("acme", "INV-000001")


def test_invoice_link_without_number_is_400(client):
    resp = client.get("/invoices/link", params={"tenant": "acme"}, follow_redirects=False)

    assert resp.status_code == 400


def test_invoice_link_unknown_invoice_is_404(mocker, client):
    mocker.patch(
        "app.api.v1.routes.invoices.document_service.get_invoice_link",
        new=mocker.AsyncMock(side_effect=NotFound("Invoice not found", reason="invoice_not_found"))
    )

    resp = client.get("/invoices/link", params={"tenant": "acme", "number": "INV-404"}, follow_redirects=False)

    assert resp.status_code == 404
    assert resp.json()["error"] == "invoice_not_found"


def test_invoice_link_generation_failure_is_500(mocker, client):
    mocker.patch(
        "app.api.v1.routes.invoices.document_service.get_invoice_link",
        new=mocker.AsyncMock(side_effect=GenerationFailed("Invoice document could not be generated"))
    )

    resp = client.get("/invoices/link", params={"tenant": "acme", "number": "INV-000001"}, follow_redirects=False)

    assert resp.status_code == 500
    assert resp.json()["error"] == "generation_failed"


def test_unexpected_error_is_500_internal_error(mocker, client):
    mocker.patch(
        "app.api.v1.routes.invoices.invoice_service.issue_invoice",
        new=mocker.AsyncMock(side_effect=RuntimeError("boom"))
    )

    resp = client.post("/invoices", json=ISSUE_BODY)

    assert resp.status_code == 500
    assert resp.json()["error"] == "internal_error"


def test_response_carries_request_id(mocker, client):
    mocker.patch(
        "app.api.v1.routes.invoices.invoice_service.issue_invoice",
        new=mocker.AsyncMock(side_effect=NotFound("Tenant not found", reason="tenant_not_found"))
    )

    resp = client.post("/invoices", json=ISSUE_BODY, headers={"X-Request-ID": "req-42"})

    assert resp.headers["X-Request-ID"] == "req-42"
    assert resp.json()["trace_id"] == "req-42"
