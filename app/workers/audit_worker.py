import os
import json
import asyncio
import signal
import socket
import logging
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy import text, bindparam
from sqlalchemy.dialects.postgresql import JSONB, INET
from sqlalchemy.exc import SQLAlchemyError, DBAPIError
from app.core.config import DATABASE_URL, AUDIT_STREAM, AUDIT_GROUP, AUDIT_BATCH, AUDIT_BLOCK_MS, LOG_LEVEL
from app.core.redis import create_redis


logger = logging.getLogger("audit.worker")

INSERT_AUDIT = text("""
    INSERT INTO audit.audit_logs
    (request_id, scope, action, actor_ip, route, tenant_slug, object_type, object_id,
     tenant_id, client_id, invoice_id, status, reason, meta)
    VALUES
    (:request_id, :scope, :action, :actor_ip, :route, :tenant_slug, :object_type, :object_id,
     :tenant_id, :client_id, :invoice_id, :status, :reason, :meta)
""").bindparams(
    bindparam("actor_ip", type_=INET),
    bindparam("meta", type_=JSONB),
)


def params_from_payload(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValueError("payload is not a JSON object")
    if not payload.get("scope") or not payload.get("action"):
        raise ValueError("missing required fields: scope/action")
    status = (payload.get("status") or "SUCCESS").upper()
    return {
        "request_id": payload.get("request_id"),
        "scope": payload["scope"],
        "action": payload["action"],
        "actor_ip": payload.get("actor_ip"),
        "route": payload.get("route"),
        "tenant_slug": payload.get("tenant_slug"),
        "object_type": payload.get("object_type"),
        "object_id": payload.get("object_id"),
        "tenant_id": payload.get("tenant_id"),
        "client_id": payload.get("client_id"),
        "invoice_id": payload.get("invoice_id"),
        "status": "SUCCESS" if status == "SUCCESS" else "FAIL",
        "reason": payload.get("reason"),
        "meta": dict(payload.get("meta") or {}),
    }


async def _ensure_group(r: redis.Redis) -> None:
    try:
        await r.xgroup_create(
            name=AUDIT_STREAM,
            groupname=AUDIT_GROUP,
            id="$",
            mkstream=True,
        )
        logger.info("XGROUP created stream=%s group=%s", AUDIT_STREAM, AUDIT_GROUP)
    except redis.ResponseError as e:
        if "BUSYGROUP" in str(e):
            logger.info("XGROUP already exists stream=%s group=%s", AUDIT_STREAM, AUDIT_GROUP)
        else:
            raise


async def persist_entries(r: redis.Redis, session: async_sessionmaker, entries, source: str = "XREADGROUP") -> None:
    """Insert each entry and ack it; DB failures stay pending, malformed entries are dropped."""
    async with session() as db:
        async with db.begin():
            for msg_id, fields in entries:
                raw_json = fields.get("json")
                try:
                    params = params_from_payload(json.loads(raw_json) if raw_json else {})
                    await db.execute(INSERT_AUDIT, params)
                    await r.xack(AUDIT_STREAM, AUDIT_GROUP, msg_id)
                except (DBAPIError, SQLAlchemyError):
                    logger.exception("DB insert failed (%s); keeping id=%s in PEL", source, msg_id)
                except (ValueError, TypeError) as e:
                    logger.warning("Invalid payload (%s); dropping id=%s err=%s", source, msg_id, e)
                    try:
                        await r.xack(AUDIT_STREAM, AUDIT_GROUP, msg_id)
                    except redis.RedisError:
                        logger.exception("XACK failed id=%s", msg_id)


async def run() -> None:
    r = await create_redis()
    if r is None:
        raise ValueError("REDIS_URL is required for the audit worker")
    await _ensure_group(r)

    engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)
    session = async_sessionmaker(bind=engine, expire_on_commit=False)

    stop = asyncio.Event()

    def _graceful(*_):
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _graceful)
        except NotImplementedError:
            pass

    consumer = f"{socket.gethostname()}-{os.getpid()}"
    logger.info(
        "Audit worker started | stream=%s group=%s consumer=%s batch=%d block_ms=%d",
        AUDIT_STREAM, AUDIT_GROUP, consumer, AUDIT_BATCH, AUDIT_BLOCK_MS,
    )

    last_retry = loop.time()

    try:
        while not stop.is_set():
            resp = await r.xreadgroup(
                groupname=AUDIT_GROUP,
                consumername=consumer,
                streams={AUDIT_STREAM: ">"},
                count=AUDIT_BATCH,
                block=AUDIT_BLOCK_MS,
            )
            if resp:
                await persist_entries(r, session, resp[0][1])

            now = loop.time()
            if now - last_retry > 30:
                last_retry = now
                try:
                    _, msgs, _ = await r.xautoclaim(
                        name=AUDIT_STREAM,
                        groupname=AUDIT_GROUP,
                        consumername=consumer,
                        min_idle_time=60000,
                        start_id="0",
                        count=100,
                    )
                    if msgs:
                        logger.info("XAUTOCLAIM: retrying %d pending messages", len(msgs))
                        await persist_entries(r, session, msgs, source="XAUTOCLAIM")
                except (redis.RedisError, DBAPIError, SQLAlchemyError):
                    logger.exception("XAUTOCLAIM failed")
    finally:
        logger.info("Shutting down audit worker...")
        try:
            await r.aclose()
        except redis.RedisError:
            logger.exception("Redis close failed")
        await engine.dispose()
        logger.info("Audit worker stopped.")


if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    asyncio.run(run())
