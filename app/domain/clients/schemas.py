from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator, EmailStr
from app.core.config import DEFAULT_PHONE_REGION
from app.core.utils.text_utils import strip_text, lower_text
from app.core.utils.validators import normalize_phone_or_none


class ClientUpsertDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    tenant: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = None
    billing_address: str | None = Field(default=None, max_length=400)
    notes: str | None = Field(default=None, max_length=2000)
    external_id: str | None = Field(default=None, max_length=100)

    _strip_tenant = field_validator("tenant", mode="before")(lower_text)
    _strip_name = field_validator("name", mode="before")(strip_text)
    _strip_email = field_validator("email", mode="before")(lower_text)
    _strip_billing_address = field_validator("billing_address", mode="before")(strip_text)
    _strip_notes = field_validator("notes", mode="before")(strip_text)
    _strip_external_id = field_validator("external_id", mode="before")(strip_text)

    @field_validator("phone", mode="before")
    @classmethod
    def _normalize_phone(cls, v):
        return normalize_phone_or_none(strip_text(v), DEFAULT_PHONE_REGION)


class ClientReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    phone: str | None
    billing_address: str | None
    notes: str | None
    external_id: str | None


class ClientsQueryDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    tenant: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=200)
