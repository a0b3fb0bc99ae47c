from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator, AliasChoices
from app.core.utils.text_utils import strip_text, lower_text, upper_text
from app.core.utils.validators import coerce_decimal_or_zero
from app.domain.invoicing.models import InvoiceStatus


class InvoiceLineInDTO(BaseModel):
    """Caller-supplied line; numbers are coerced, never rejected."""
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    description: str = ""
    quantity: Decimal = Field(default=Decimal("0"), validation_alias=AliasChoices("qty", "quantity"))
    unit_price: Decimal = Decimal("0")
    line_total: Decimal | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _description_to_text(cls, v):
        return "" if v is None else str(v).strip()

    _coerce_quantity = field_validator("quantity", mode="before")(coerce_decimal_or_zero)
    _coerce_unit_price = field_validator("unit_price", mode="before")(coerce_decimal_or_zero)

    @field_validator("line_total", mode="before")
    @classmethod
    def _coerce_line_total(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return coerce_decimal_or_zero(v)

    def resolved_total(self) -> Decimal:
        if self.line_total is not None:
            return self.line_total
        try:
            return (self.quantity * self.unit_price).quantize(Decimal("0.01"))
        except InvalidOperation:
            # Product too large to round to cents; same outcome as an unparseable value
            return Decimal("0")


class InvoiceIssueDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    tenant: str = Field(min_length=1)
    client_uuid: UUID | None = None
    client_external_id: str | None = Field(default=None, max_length=100)
    issue_date: date
    due_date: date
    currency: str = Field(pattern="^[A-Z]{3}$")
    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    tax_total: Decimal = Field(max_digits=12, decimal_places=2)
    total: Decimal = Field(max_digits=12, decimal_places=2)
    from_quote_id: str | None = None
    notes: str | None = Field(default=None, max_length=2000)
    lines: list[InvoiceLineInDTO] = Field(default_factory=list)

    _strip_tenant = field_validator("tenant", mode="before")(lower_text)
    _strip_external_id = field_validator("client_external_id", mode="before")(strip_text)
    _strip_from_quote_id = field_validator("from_quote_id", mode="before")(
        lambda v: strip_text(str(v)) if v is not None else None
    )
    _strip_notes = field_validator("notes", mode="before")(strip_text)
    _upper_currency = field_validator("currency", mode="before")(upper_text)

    @field_validator("client_uuid", mode="before")
    @classmethod
    def _blank_uuid_is_none(cls, v):
        return strip_text(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_dates(self):
        if self.due_date < self.issue_date:
            raise ValueError("due_date must not be before issue_date")
        return self

    def has_client_reference(self) -> bool:
        return self.client_uuid is not None or bool(self.client_external_id)


class InvoiceIssueResultDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    line_items_error: str | None = None


class InvoiceListItemDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    client_id: UUID
    status: InvoiceStatus
    currency: str
    total: Decimal
    balance_due: Decimal
    issue_date: date
    due_date: date
    created_at: datetime | None = None


class InvoicesQueryDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    tenant: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=200)

    _strip_tenant = field_validator("tenant", mode="before")(lower_text)


class InvoiceRefDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    tenant: str = Field(min_length=1)
    number: str = Field(min_length=1, max_length=64)

    _strip_tenant = field_validator("tenant", mode="before")(lower_text)
    _strip_number = field_validator("number", mode="before")(strip_text)


class DocumentLinkDTO(BaseModel):
    id: UUID
    number: str
    pdf_path: str
    signed_url: str
