from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator, EmailStr
from app.core.config import DEFAULT_CURRENCY
from app.core.utils.text_utils import strip_text, slugify, upper_text


class TenantUpsertDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    slug: str = Field(min_length=1, max_length=63)
    business_name: str = Field(min_length=1, max_length=200)
    currency: str = Field(default=DEFAULT_CURRENCY, pattern="^[A-Z]{3}$")
    invoice_prefix: str | None = Field(default=None, max_length=12, pattern=r"^[A-Za-z0-9]+$")
    email_from: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=40)
    address: str | None = Field(default=None, max_length=400)
    tax_id: str | None = Field(default=None, max_length=32)

    _slugify = field_validator("slug", mode="before")(slugify)
    _strip_business_name = field_validator("business_name", mode="before")(strip_text)
    _strip_prefix = field_validator("invoice_prefix", mode="before")(strip_text)
    _strip_phone = field_validator("phone", mode="before")(strip_text)
    _strip_address = field_validator("address", mode="before")(strip_text)
    _strip_tax_id = field_validator("tax_id", mode="before")(strip_text)
    _upper_currency = field_validator("currency", mode="before")(lambda v: upper_text(v) or DEFAULT_CURRENCY)


class TenantReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    business_name: str
    currency: str
    invoice_prefix: str | None
    created_at: datetime | None = None


class TenantCounterDTO(BaseModel):
    slug: str
    counter: int
