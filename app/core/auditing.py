import json
import time
from datetime import timezone, datetime
from typing import Any, Mapping
from uuid import UUID
from redis.exceptions import RedisError
from app.core.config import AUDIT_STREAM
from app.core.ctx import get_redis, get_request_id, get_route, get_client_ip, get_tenant_slug
from app.domain.exceptions import AppError


class AuditStatus:
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


def _id(value: UUID | str | None) -> str | None:
    return str(value) if value is not None else None


async def audit_emit(
    *,
    scope: str,
    action: str,
    status: str,
    object_type: str | None = None,
    object_id: UUID | str | None = None,
    tenant_id: UUID | str | None = None,
    client_id: UUID | str | None = None,
    invoice_id: UUID | str | None = None,
    tenant_slug: str | None = None,
    reason: str | None = None,
    meta: Mapping[str, Any] | None = None
) -> str | None:
    r = get_redis()
    if not r:
        return None

    payload = {
        "request_id": get_request_id(),
        "scope": scope,
        "action": action,
        "status": status,
        "actor_ip": get_client_ip(),
        "route": get_route(),
        "tenant_slug": tenant_slug or get_tenant_slug(),
        "object_type": object_type,
        "object_id": _id(object_id),
        "tenant_id": _id(tenant_id),
        "client_id": _id(client_id),
        "invoice_id": _id(invoice_id),
        "reason": reason,
        "meta": dict(meta or {}),
    }
    try:
        return await r.xadd(AUDIT_STREAM, {"json": json.dumps(payload, default=str)})
    except RedisError:
        return None


def _reason_from_exception(exception: BaseException | None) -> str | None:
    if exception is None:
        return None
    if isinstance(exception, AppError):
        return exception.reason
    return exception.__class__.__name__


class AuditSpan:
    def __init__(self, *, scope: str, action: str,
                 object_type: str | None = None, object_id: UUID | str | None = None,
                 tenant_id: UUID | str | None = None, client_id: UUID | str | None = None,
                 invoice_id: UUID | str | None = None, tenant_slug: str | None = None,
                 meta: Mapping[str, Any] | None = None):
        self.scope = scope
        self.action = action
        self.object_type = object_type
        self.object_id = object_id
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.invoice_id = invoice_id
        self.tenant_slug = tenant_slug
        self.meta = dict(meta or {})
        self._t0 = 0.0

    async def __aenter__(self):
        self._t0 = time.perf_counter()
        started = datetime.now(timezone.utc)
        self.meta.setdefault("occurred_at", started.isoformat(timespec="milliseconds").replace("+00:00", "Z"))
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.meta["duration_ms"] = int((time.perf_counter() - self._t0) * 1000)
        status = AuditStatus.FAIL if exc else AuditStatus.SUCCESS
        await audit_emit(
            scope=self.scope, action=self.action, status=status,
            object_type=self.object_type, object_id=self.object_id,
            tenant_id=self.tenant_id, client_id=self.client_id, invoice_id=self.invoice_id,
            tenant_slug=self.tenant_slug,
            reason=_reason_from_exception(exc), meta=self.meta
        )
        return False
