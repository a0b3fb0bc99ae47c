from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_db
from app.core.pagination import PageDTO
from app.domain.clients.schemas import ClientUpsertDTO, ClientReadDTO, ClientsQueryDTO
from app.services import client_service


router = APIRouter(prefix="/clients", tags=["clients"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post("", status_code=status.HTTP_200_OK, response_model=ClientReadDTO)
async def upsert_client(schema: ClientUpsertDTO, db: db_dependency):
    return await client_service.upsert_client(db, schema)


@router.get("", status_code=status.HTTP_200_OK, response_model=PageDTO[ClientReadDTO])
async def list_clients(db: db_dependency, query: Annotated[ClientsQueryDTO, Depends()]):
    return await client_service.list_clients(db, query)
