import logging
from fastapi import FastAPI
from app.api.exceptions import register_error_handler
from app.api.v1.routes import invoices, tenants, clients
from app.core.config import LOG_LEVEL, SCHEMA_CHECK_ON_STARTUP
from app.core.database import engine
from app.core.middleware.http_ctx import HttpContextMiddleware
from app.core.middleware.request_id import RequestIdMiddleware
from app.core.redis import create_redis
from app.core.schema_contract import verify_schema


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)


async def lifespan(app: FastAPI):
    if SCHEMA_CHECK_ON_STARTUP:
        await verify_schema(engine)
    r = await create_redis()
    app.state.redis = r
    try:
        yield
    finally:
        if r is not None:
            await r.aclose()
        await engine.dispose()


app = FastAPI(title="Invoicing API", lifespan=lifespan)
register_error_handler(app)
app.add_middleware(HttpContextMiddleware)
app.add_middleware(RequestIdMiddleware, header_name="X-Request-ID")
app.include_router(tenants.router)
app.include_router(clients.router)
app.include_router(invoices.router)
