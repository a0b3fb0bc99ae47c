from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_db
from app.domain.tenants.schemas import TenantUpsertDTO, TenantReadDTO, TenantCounterDTO
from app.services import tenant_service, numbering_service


router = APIRouter(prefix="/tenants", tags=["tenants"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post("", status_code=status.HTTP_200_OK, response_model=TenantReadDTO)
async def upsert_tenant(schema: TenantUpsertDTO, db: db_dependency):
    return await tenant_service.upsert_tenant(db, schema)


@router.get("/{slug}", status_code=status.HTTP_200_OK, response_model=TenantReadDTO)
async def get_tenant(slug: str, db: db_dependency):
    return await tenant_service.resolve_tenant(db, slug)


@router.get("/{slug}/counter", status_code=status.HTTP_200_OK, response_model=TenantCounterDTO)
async def get_tenant_counter(slug: str, db: db_dependency):
    tenant = await tenant_service.resolve_tenant(db, slug)
    counter = await numbering_service.peek_invoice_counter(db, tenant.id)
    return TenantCounterDTO(slug=tenant.slug, counter=counter)
