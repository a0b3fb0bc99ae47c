import logging
from contextlib import nullcontext
from datetime import timedelta
from typing import Callable
from anyio import to_thread
from minio.error import S3Error
from redis.exceptions import LockError, LockNotOwnedError, RedisError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.auditing import AuditSpan
from app.core.config import SIGNED_URL_TTL_SECONDS, DOCUMENT_LOCK_TIMEOUT_SECONDS
from app.core.ctx import get_redis
from app.documents.renderer import render_invoice_pdf
from app.domain.exceptions import GenerationFailed
from app.domain.invoicing.models import Invoice
from app.domain.invoicing.schemas import DocumentLinkDTO
from app.domain.tenants.models import Tenant
from app.services.invoice_service import get_tenant_invoice
from app.services.tenant_service import resolve_tenant
from app.storage.object_store import DocumentStorage


logger = logging.getLogger(__name__)

Renderer = Callable[[Tenant, Invoice], bytes]


def document_key(tenant_slug: str, number: str) -> str:
    return f"{tenant_slug}/{number}.pdf"


def _generation_lock(key: str):
    r = get_redis()
    if not r:
        return nullcontext()
    return r.lock(
        f"lock:invoice-document:{key}",
        timeout=DOCUMENT_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=DOCUMENT_LOCK_TIMEOUT_SECONDS
    )


async def _exists(storage: DocumentStorage, key: str) -> bool:
    try:
        return await storage.exists(key)
    except S3Error as e:
        logger.error("Document storage lookup failed key=%s: %s", key, e)
        raise GenerationFailed("Document storage unavailable", reason="storage_unavailable", ctx={"path": key}) from e


async def _render_and_store(
        storage: DocumentStorage,
        renderer: Renderer,
        tenant: Tenant,
        invoice: Invoice,
        key: str
) -> None:
    async with AuditSpan(
        scope="DOCUMENTS",
        action="GENERATE",
        object_type="invoice_document",
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        invoice_id=invoice.id,
        meta={"path": key}
    ):
        try:
            pdf = await to_thread.run_sync(renderer, tenant, invoice)
            await storage.put_pdf(key, pdf)
        except Exception as e:
            logger.exception("Invoice document generation failed key=%s", key)
            raise GenerationFailed(
                "Invoice document could not be generated",
                ctx={"tenant": tenant.slug, "number": invoice.number}
            ) from e
        logger.info("Stored invoice document key=%s bytes=%d", key, len(pdf))


async def _sign(storage: DocumentStorage, key: str) -> str:
    try:
        return await storage.signed_url(key, timedelta(seconds=SIGNED_URL_TTL_SECONDS))
    except (S3Error, ValueError) as e:
        logger.error("Signing document URL failed key=%s: %s", key, e)
        raise GenerationFailed("Document link could not be signed", reason="signing_failed",
                               ctx={"path": key}) from e


async def get_invoice_link(
        db: AsyncSession,
        tenant_slug: str,
        number: str,
        *,
        storage: DocumentStorage,
        renderer: Renderer = render_invoice_pdf
) -> str:
    tenant = await resolve_tenant(db, tenant_slug)
    # Numbers repeat across tenants, so the lookup is always tenant-scoped
    invoice = await get_tenant_invoice(db, tenant, number)
    key = document_key(tenant.slug, invoice.number)

    if not await _exists(storage, key):
        try:
            async with _generation_lock(key):
                if not await _exists(storage, key):
                    await _render_and_store(storage, renderer, tenant, invoice, key)
        except LockNotOwnedError as e:
            # Lock expired before release; fine as long as the document made it to storage
            logger.warning("Document lock expired during generation key=%s", key)
            if not await _exists(storage, key):
                raise GenerationFailed("Invoice document could not be generated", ctx={"path": key}) from e
        except (LockError, RedisError) as e:
            raise GenerationFailed("Document generation is busy", reason="generation_busy",
                                   ctx={"path": key}) from e

    return await _sign(storage, key)


async def generate_invoice_document(
        db: AsyncSession,
        tenant_slug: str,
        number: str,
        *,
        storage: DocumentStorage,
        renderer: Renderer = render_invoice_pdf
) -> DocumentLinkDTO:
    """Render and store the document unconditionally, replacing any earlier copy."""
    tenant = await resolve_tenant(db, tenant_slug)
    invoice = await get_tenant_invoice(db, tenant, number)
    key = document_key(tenant.slug, invoice.number)

    await _render_and_store(storage, renderer, tenant, invoice, key)
    signed_url = await _sign(storage, key)
    return DocumentLinkDTO(id=invoice.id, number=invoice.number, pdf_path=key, signed_url=signed_url)
