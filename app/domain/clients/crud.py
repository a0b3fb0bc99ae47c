from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.pagination import paginate
from sqlalchemy.dialects.postgresql import insert
from .models import Client


async def get_client_by_external_id(db: AsyncSession, tenant_id: UUID, external_id: str) -> Client | None:
    stmt = select(Client).where(Client.tenant_id == tenant_id, Client.external_id == external_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def upsert_client(db: AsyncSession, data: dict, conflict_cols: list[str] | None) -> Client:
    if not conflict_cols:
        client = Client(**data)
        db.add(client)
        return client

    update_cols = {k: v for k, v in data.items() if k not in conflict_cols}
    stmt = (
        insert(Client)
        .values(**data)
        .on_conflict_do_update(index_elements=conflict_cols, set_=update_cols)
        .returning(Client)
    )
    result = await db.execute(stmt)
    return result.scalars().one()


async def list_tenant_clients(
        db: AsyncSession,
        tenant_id: UUID,
        page: int,
        page_size: int
) -> tuple[list[Client], int]:
    return await paginate(
        db,
        select(Client),
        page=page,
        page_size=page_size,
        where=[Client.tenant_id == tenant_id],
        order_by=[Client.name, Client.id]
    )
