"""Action models for the conversational action pipeline.

An Action is a structured business operation proposed by the assistant.
Its ``data`` dict holds the raw extracted draft; the typed payload models
below give that draft its shape once validated. The payload union is
discriminated on ``type`` so each action type owns its schema.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from karat.db.models import ActionStatus, utc_now_iso

PAISE = Decimal("0.01")


class ActionType(str, Enum):
    """Closed set of business actions the assistant can propose."""

    create_invoice = "create_invoice"
    add_customer = "add_customer"


class Severity(str, Enum):
    """Finding severity. Errors block execution; warnings do not."""

    error = "error"
    warning = "warning"


class ValidationFinding(BaseModel):
    """A single validation result attached to a field path."""

    field: str = Field(..., description="Dotted/indexed path, e.g. items[0].price_per_gram")
    message: str
    severity: Severity = Severity.error


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class InvoiceLineItem(BaseModel):
    """One invoice line. ``total`` is always derived locally."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., min_length=1, description="Item name in English")
    quantity: int = Field(..., gt=0, description="Number of pieces")
    weight: Decimal = Field(..., gt=0, description="Weight per piece in grams")
    price_per_gram: Decimal = Field(..., gt=0, description="Rate in rupees per gram")
    total: Decimal | None = Field(default=None, description="quantity x weight x price_per_gram")

    @model_validator(mode="after")
    def derive_total(self) -> "InvoiceLineItem":
        """Overwrite any supplied total with the locally computed one."""
        self.total = (
            Decimal(self.quantity) * self.weight * self.price_per_gram
        ).quantize(PAISE, rounding=ROUND_HALF_UP)
        return self


class CreateInvoicePayload(BaseModel):
    """Payload for ``create_invoice``."""

    type: Literal["create_invoice"] = "create_invoice"
    customer_name: str = Field(..., min_length=1)
    customer_phone: str | None = None
    customer_email: EmailStr | None = None
    customer_address: str | None = None
    customer_id: UUID | None = Field(
        default=None, description="Existing customer id when matched"
    )
    invoice_date: date = Field(default_factory=date.today)
    tax_percentage: Decimal = Field(default=Decimal("3"), ge=0, le=100)
    items: list[InvoiceLineItem] = Field(..., min_length=1)
    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None
    grand_total: Decimal | None = None

    @field_validator(
        "customer_phone", "customer_email", "customer_address", "customer_id",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat empty strings from the provider as absent."""
        return _blank_to_none(value)


class AddCustomerPayload(BaseModel):
    """Payload for ``add_customer``."""

    type: Literal["add_customer"] = "add_customer"
    name: str = Field(..., min_length=1)
    phone: str | None = None
    email: EmailStr | None = None
    address: str | None = None

    @field_validator("phone", "email", "address", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


ActionPayload = Annotated[
    Union[CreateInvoicePayload, AddCustomerPayload],
    Field(discriminator="type"),
]

_PAYLOAD_ADAPTER: TypeAdapter[ActionPayload] = TypeAdapter(ActionPayload)

# Fields an extracted draft must carry before it can be validated
REQUIRED_FIELDS: dict[ActionType, tuple[str, ...]] = {
    ActionType.create_invoice: ("customer_name", "items"),
    ActionType.add_customer: ("name",),
}


def parse_payload(
    action_type: ActionType, data: dict[str, Any]
) -> CreateInvoicePayload | AddCustomerPayload:
    """Parse a draft dict into the typed payload for ``action_type``.

    Raises:
        pydantic.ValidationError: If the draft does not satisfy the schema.
    """
    return _PAYLOAD_ADAPTER.validate_python({**data, "type": action_type.value})


class ExecutionResult(BaseModel):
    """Outcome of running an action against the store."""

    success: bool
    action_id: str
    entity_id: str | None = None
    redirect_url: str | None = None
    message: str
    error_code: str | None = None
    findings: list[ValidationFinding] = Field(default_factory=list)


class Action(BaseModel):
    """A proposed business action tracked through the status state machine.

    The id is assigned at extraction time and reused through execution.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: ActionType
    status: ActionStatus = ActionStatus.intent_detected
    data: dict[str, Any] = Field(default_factory=dict)
    missing_fields: list[str] = Field(default_factory=list)
    findings: list[ValidationFinding] = Field(default_factory=list)
    owner_id: str
    session_id: str | None = None
    entity_id: str | None = None
    error_message: str | None = None
    result: ExecutionResult | None = None
    tokens_used: int = 0
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    executed_at: str | None = None

    @property
    def has_errors(self) -> bool:
        """Whether any finding blocks execution."""
        return any(f.severity == Severity.error for f in self.findings)


class NoActionDetected(BaseModel):
    """Extraction produced ordinary conversation instead of an action."""

    reply: str
    tokens_used: int = 0
