import re

_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


def strip_text(value):
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    value = value.strip()
    return value or None


def slugify(value: str | None) -> str | None:
    value = strip_text(value)
    if not value:
        return None
    return _SLUG_INVALID.sub("-", value.lower())


def lower_text(value):
    value = strip_text(value)
    return value.lower() if isinstance(value, str) else value


def upper_text(value):
    value = strip_text(value)
    return value.upper() if isinstance(value, str) else value
