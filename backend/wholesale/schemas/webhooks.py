"""
Inbound Zoho webhook payloads and handler results.

Each webhook kind has its own schema validated at the boundary; a payload
that does not fit is rejected with WebhookPayloadError instead of being
filled with defaults.
"""
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wholesale.schemas.zoho import parse_boolean

# Invoice statuses that represent a completed sale
SALE_STATUSES = frozenset({"sent", "paid", "overdue", "partially_paid"})
# Bill statuses that represent goods received; Zoho reports an issued bill as open or sent
RECEIPT_STATUSES = frozenset({"sent", "open", "paid", "overdue", "partially_paid"})

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class WebhookPayloadError(ValueError):
    """Raised when a webhook body does not match its schema."""

    def __init__(self, kind: str, errors: list[dict[str, Any]]) -> None:
        self.kind = kind
        self.errors = errors
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        super().__init__(
            f"Invalid {kind} webhook payload: {location or 'body'} {first.get('msg', 'is invalid')}".strip()
        )


class _WebhookModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ItemWebhookPayload(_WebhookModel):
    """Flat item change notification."""

    item_id: str = Field(..., min_length=1)
    action: str = "update"
    sku: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    rate: Optional[float] = None
    stock_on_hand: Optional[float] = None
    reorder_level: Optional[float] = None
    category_name: Optional[str] = None
    brand: Optional[str] = None
    manufacturer: Optional[str] = None
    image_url: Optional[str] = None
    show_in_storefront: Optional[bool] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    status: Optional[str] = None

    @field_validator("show_in_storefront", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Optional[bool]:
        return None if value is None else parse_boolean(value)

    @property
    def is_delete(self) -> bool:
        return "delete" in self.action.lower()


class CustomerWebhookPayload(_WebhookModel):
    """Flat contact change notification."""

    contact_id: str = Field(..., min_length=1)
    action: str = "update"
    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None

    @property
    def is_delete(self) -> bool:
        return "delete" in self.action.lower()


class DocumentLineItem(_WebhookModel):
    """Document line; shipping and free-text lines carry no item id."""

    item_id: Optional[str] = None
    quantity: float = Field(..., ge=0)


class InvoiceBody(_WebhookModel):
    invoice_id: str = Field(..., min_length=1)
    status: str
    invoice_number: Optional[str] = None
    line_items: list[DocumentLineItem] = Field(default_factory=list)


class InvoiceWebhookPayload(_WebhookModel):
    """Invoice status change, wrapped in an "invoice" envelope."""

    action: str = "update"
    invoice: InvoiceBody


class BillBody(_WebhookModel):
    bill_id: str = Field(..., min_length=1)
    status: str
    bill_number: Optional[str] = None
    line_items: list[DocumentLineItem] = Field(default_factory=list)


class BillWebhookPayload(_WebhookModel):
    """Bill status change, wrapped in a "bill" envelope."""

    action: str = "update"
    bill: BillBody


def parse_webhook_payload(kind: str, schema: type[PayloadT], payload: Any) -> PayloadT:
    """Validate a raw webhook body against its schema."""
    if not isinstance(payload, dict):
        raise WebhookPayloadError(kind, [{"loc": (), "msg": "must be a JSON object"}])
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise WebhookPayloadError(kind, e.errors()) from e


class WebhookResult(BaseModel):
    """Outcome of handling one webhook delivery. Handlers never raise."""

    success: bool
    action: str
    message: str
    product_id: Optional[str] = Field(None, alias="productId")
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)
