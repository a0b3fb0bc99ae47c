from typing import Annotated
from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_db
from app.core.pagination import PageDTO
from app.domain.exceptions import NotFound
from app.domain.invoicing.schemas import InvoiceIssueDTO, InvoiceIssueResultDTO, InvoicesQueryDTO, \
    InvoiceListItemDTO, InvoiceRefDTO, DocumentLinkDTO
from app.services import invoice_service, document_service
from app.storage.object_store import DocumentStorage, get_storage


router = APIRouter(prefix="/invoices", tags=["invoices"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]
storage_dependency = Annotated[DocumentStorage, Depends(get_storage)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=InvoiceIssueResultDTO,
    response_model_exclude_none=True
)
async def issue_invoice(schema: InvoiceIssueDTO, db: db_dependency, response: Response):
    try:
        result = await invoice_service.issue_invoice(db, schema)
    except NotFound as e:
        # Unknown tenant/client is a bad issue request, not a missing resource
        e.http_status = status.HTTP_400_BAD_REQUEST
        raise
    response.headers["Location"] = f"{router.prefix}/link?tenant={schema.tenant}&number={result.number}"
    return result


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    response_model=PageDTO[InvoiceListItemDTO]
)
async def list_invoices(db: db_dependency, query: Annotated[InvoicesQueryDTO, Depends()]):
    return await invoice_service.list_invoices(db, query)


@router.get("/link", status_code=status.HTTP_302_FOUND, response_class=RedirectResponse)
async def get_invoice_link(db: db_dependency, storage: storage_dependency, query: Annotated[InvoiceRefDTO, Depends()]):
    signed_url = await document_service.get_invoice_link(db, query.tenant, query.number, storage=storage)
    return RedirectResponse(
        signed_url,
        status_code=status.HTTP_302_FOUND,
        headers={"Cache-Control": "no-store"}
    )


@router.post(
    "/pdf",
    status_code=status.HTTP_200_OK,
    response_model=DocumentLinkDTO
)
async def generate_invoice_document(schema: InvoiceRefDTO, db: db_dependency, storage: storage_dependency):
    return await document_service.generate_invoice_document(db, schema.tenant, schema.number, storage=storage)
