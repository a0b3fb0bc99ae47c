from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.auditing import AuditSpan
from app.core.pagination import PageDTO
from app.domain.clients import crud
from app.domain.clients.models import Client
from app.domain.clients.schemas import ClientUpsertDTO, ClientsQueryDTO, ClientReadDTO
from app.domain.exceptions import NotFound, InvalidInput, Conflict
from app.services.tenant_service import resolve_tenant


async def resolve_client(
        db: AsyncSession,
        tenant_id: UUID,
        *,
        client_id: UUID | None = None,
        external_id: str | None = None
) -> UUID:
    """Return the internal id of the client an invoice is issued to.

    An explicit internal id is trusted as-is (the caller picked it from this
    tenant's client list); otherwise ``external_id`` is looked up within the
    tenant. With neither there is nothing to resolve and no guessing is done.
    """
    if client_id is not None:
        return client_id
    if not external_id:
        raise InvalidInput(
            "Missing client: provide 'client_uuid' (preferred) or 'client_external_id'",
            reason="missing_client"
        )
    client = await crud.get_client_by_external_id(db, tenant_id, external_id)
    if not client:
        raise NotFound("Client not found", reason="client_not_found", ctx={"client_external_id": external_id})
    return client.id


async def upsert_client(db: AsyncSession, schema: ClientUpsertDTO) -> Client:
    tenant = await resolve_tenant(db, schema.tenant)

    # external_id is the stronger dedup key; email is used only without it
    if schema.external_id:
        conflict_cols = ["tenant_id", "external_id"]
    elif schema.email:
        conflict_cols = ["tenant_id", "email"]
    else:
        conflict_cols = None

    async with AuditSpan(
        scope="CLIENTS",
        action="UPSERT",
        object_type="client",
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        meta={"dedup_key": ",".join(conflict_cols) if conflict_cols else None}
    ) as span:
        data = schema.model_dump(exclude={"tenant"})
        data["tenant_id"] = tenant.id
        try:
            client = await crud.upsert_client(db, data, conflict_cols)
            await db.flush()
        except IntegrityError as e:
            raise Conflict("Client already exists", ctx={"tenant": tenant.slug, "email": schema.email}) from e
        span.client_id = client.id
        span.object_id = client.id
        return client


async def list_clients(db: AsyncSession, query: ClientsQueryDTO) -> PageDTO[ClientReadDTO]:
    tenant = await resolve_tenant(db, query.tenant)
    clients, total = await crud.list_tenant_clients(db, tenant.id, query.page, query.page_size)
    return PageDTO[ClientReadDTO](
        items=[ClientReadDTO.model_validate(c) for c in clients],
        total=total,
        page=query.page,
        page_size=query.page_size
    )
