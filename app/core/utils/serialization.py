from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


def normalize(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool, type(None))):
        return value
    if isinstance(value, (Decimal, UUID, date)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    if isinstance(value, dict):
        return normalize_ctx(value)
    return str(value)


def normalize_ctx(ctx: dict[str, Any]) -> dict[str, Any]:
    return {k: normalize(v) for k, v in ctx.items()}
