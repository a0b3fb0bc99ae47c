import logging
from sqlalchemy.exc import SQLAlchemyError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.auditing import AuditSpan
from app.core.pagination import PageDTO
from app.domain.exceptions import InvalidInput, NotFound, PersistenceError
from app.domain.invoicing import crud
from app.domain.invoicing.models import Invoice, InvoiceStatus
from app.domain.tenants.models import Tenant
from app.domain.invoicing.schemas import InvoiceIssueDTO, InvoiceIssueResultDTO, InvoiceLineInDTO, \
    InvoicesQueryDTO, InvoiceListItemDTO
from app.services.client_service import resolve_client
from app.services.numbering_service import allocate_invoice_number
from app.services.tenant_service import resolve_tenant


logger = logging.getLogger(__name__)


def _require_client_reference(schema: InvoiceIssueDTO) -> None:
    if not schema.has_client_reference():
        raise InvalidInput(
            "Missing client: provide 'client_uuid' (preferred) or 'client_external_id'",
            reason="missing_client"
        )


def _line_rows(invoice_id, lines: list[InvoiceLineInDTO]) -> list[dict]:
    return [
        {
            "invoice_id": invoice_id,
            "description": line.description,
            "quantity": line.quantity,
            "unit_price": line.unit_price,
            "line_total": line.resolved_total(),
            "position": position,
        }
        for position, line in enumerate(lines, start=1)
    ]


async def _insert_header(db: AsyncSession, data: dict) -> Invoice:
    try:
        async with db.begin_nested():
            invoice = await crud.create_invoice(db, data)
            await db.flush()
    except (DBAPIError, SQLAlchemyError) as e:
        logger.exception("Invoice insert failed tenant_id=%s number=%s", data["tenant_id"], data["number"])
        raise PersistenceError(
            "Invoice could not be saved",
            reason="invoice_insert_failed",
            ctx={"number": data["number"]}
        ) from e
    return invoice


async def _insert_lines(db: AsyncSession, invoice: Invoice, lines: list[InvoiceLineInDTO]) -> str | None:
    """Insert line items under a savepoint; on failure keep the header and report why."""
    try:
        async with db.begin_nested():
            await crud.create_invoice_items(db, _line_rows(invoice.id, lines))
            await db.flush()
    except (DBAPIError, SQLAlchemyError, ArithmeticError, ValueError) as e:
        logger.warning(
            "Invoice %s saved without line items (%d lines): %s",
            invoice.number, len(lines), e.__class__.__name__
        )
        return f"items: {e.__class__.__name__}"
    return None


async def issue_invoice(db: AsyncSession, schema: InvoiceIssueDTO) -> InvoiceIssueResultDTO:
    # Field presence/shape is enforced by the DTO; the client reference is the
    # one cross-field rule left, and it must fail before anything is looked up.
    _require_client_reference(schema)

    async with AuditSpan(
        scope="INVOICES",
        action="ISSUE",
        object_type="invoice",
        tenant_slug=schema.tenant,
        meta={"lines": len(schema.lines)}
    ) as span:
        tenant = await resolve_tenant(db, schema.tenant)
        span.tenant_id = tenant.id

        client_id = await resolve_client(
            db,
            tenant.id,
            client_id=schema.client_uuid,
            external_id=schema.client_external_id
        )
        span.client_id = client_id

        number = await allocate_invoice_number(tenant)
        span.meta["number"] = number

        invoice = await _insert_header(db, {
            "tenant_id": tenant.id,
            "client_id": client_id,
            "number": number,
            "issue_date": schema.issue_date,
            "due_date": schema.due_date,
            "currency": schema.currency,
            "status": InvoiceStatus.DRAFT,
            "subtotal": schema.subtotal,
            "tax_total": schema.tax_total,
            "total": schema.total,
            "balance_due": schema.total,
            "from_quote_id": schema.from_quote_id,
            "notes": schema.notes,
        })
        span.invoice_id = invoice.id
        span.object_id = invoice.id

        line_items_error = None
        if schema.lines:
            line_items_error = await _insert_lines(db, invoice, schema.lines)
            if line_items_error:
                span.meta["line_items_error"] = line_items_error

        logger.info("Issued invoice tenant=%s number=%s id=%s", tenant.slug, number, invoice.id)
        return InvoiceIssueResultDTO(id=invoice.id, number=invoice.number, line_items_error=line_items_error)


async def get_tenant_invoice(db: AsyncSession, tenant: Tenant, number: str) -> Invoice:
    invoice = await crud.get_invoice_by_number(db, tenant.id, number)
    if not invoice:
        raise NotFound("Invoice not found", reason="invoice_not_found", ctx={"tenant": tenant.slug, "number": number})
    return invoice


async def list_invoices(db: AsyncSession, query: InvoicesQueryDTO) -> PageDTO[InvoiceListItemDTO]:
    tenant = await resolve_tenant(db, query.tenant)
    invoices, total = await crud.list_tenant_invoices(db, tenant.id, query.page, query.page_size)
    return PageDTO[InvoiceListItemDTO](
        items=[InvoiceListItemDTO.model_validate(inv) for inv in invoices],
        total=total,
        page=query.page,
        page_size=query.page_size
    )
