from decimal import Decimal, InvalidOperation
from phonenumbers import parse, is_valid_number, NumberParseException, format_number, PhoneNumberFormat


def normalize_phone_or_none(v: str | None, default_region: str | None = None) -> str | None:
    if v is None or not v.strip():
        return None
    try:
        num = parse(v, default_region)
    except NumberParseException:
        raise ValueError("Invalid phone number")
    if not is_valid_number(num):
        raise ValueError("Invalid phone number")
    return format_number(num, PhoneNumberFormat.E164)


def coerce_decimal_or_zero(v) -> Decimal:
    """Lenient numeric coercion for line-item values; anything unparseable is 0."""
    if v is None or isinstance(v, bool):
        return Decimal("0")
    if isinstance(v, Decimal):
        result = v
    else:
        try:
            result = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result
