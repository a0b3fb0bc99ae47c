from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.auditing import AuditSpan
from app.domain.tenants import crud
from app.domain.tenants.models import Tenant
from app.domain.tenants.schemas import TenantUpsertDTO
from app.domain.exceptions import NotFound, InvalidInput, Conflict


async def resolve_tenant(db: AsyncSession, slug: str | None) -> Tenant:
    slug = (slug or "").strip().lower()
    if not slug:
        raise InvalidInput("Missing tenant", reason="missing_tenant")
    tenant = await crud.get_tenant_by_slug(db, slug)
    if not tenant:
        raise NotFound("Tenant not found", reason="tenant_not_found", ctx={"tenant": slug})
    return tenant


async def upsert_tenant(db: AsyncSession, schema: TenantUpsertDTO) -> Tenant:
    async with AuditSpan(
        scope="TENANTS",
        action="UPSERT",
        object_type="tenant",
        tenant_slug=schema.slug,
        meta={"slug": schema.slug}
    ) as span:
        data = schema.model_dump()
        try:
            tenant = await crud.upsert_tenant(db, data)
        except IntegrityError as e:
            raise Conflict("Tenant could not be saved", ctx={"tenant": schema.slug}) from e
        span.tenant_id = tenant.id
        span.object_id = tenant.id
        return tenant
