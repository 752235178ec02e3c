"""
Pydantic schemas for data returned by the Zoho Inventory and Books APIs.

Only the fields the storefront consumes are declared; everything else in
the remote payload is ignored (or kept as extra on items, where custom
fields may appear as top-level cf_* keys).
"""
import math
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_boolean(value: Any) -> bool:
    """Zoho sends flags as booleans or as the strings "true"/"1"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true" or value == "1"
    return False


def parse_zoho_datetime(value: Any) -> Optional[datetime]:
    """Parse Zoho timestamps such as 2024-01-15T10:30:00-0800."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        parsed = None
        for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z"):
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    # Naive timestamps are treated as UTC so they compare against the watermark
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def custom_field_key(label: str) -> str:
    return label.lower().replace(" ", "_")


class ZohoCustomField(BaseModel):
    """Entry of an item's custom_fields list."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    label: Optional[str] = None
    api_name: Optional[str] = None
    value: Any = None


class ZohoItem(BaseModel):
    """Catalog item from GET /items."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    item_id: str = Field(..., min_length=1)
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = "active"
    rate: Optional[float] = None
    stock_on_hand: Optional[float] = None
    reorder_level: Optional[float] = None
    brand: Optional[str] = None
    manufacturer: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    show_in_storefront: bool = False
    last_modified_time: Optional[datetime] = None
    custom_fields: list[ZohoCustomField] = Field(default_factory=list)

    @field_validator("show_in_storefront", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return parse_boolean(value)

    @field_validator("last_modified_time", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_zoho_datetime(value)

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() == "active"

    @property
    def display_name(self) -> str:
        return self.name or "Unknown Product"

    @property
    def base_price(self) -> str:
        return f"{self.rate or 0:.2f}"

    @property
    def resolved_sku(self) -> str:
        return self.sku or f"ZOHO-{self.item_id}"

    @property
    def resolved_brand(self) -> Optional[str]:
        return self.brand or self.manufacturer or None

    @property
    def stock_quantity(self) -> int:
        return math.floor(self.stock_on_hand or 0)

    @property
    def low_stock_threshold(self) -> int:
        return math.floor(self.reorder_level) if self.reorder_level else 10

    def custom_field(self, label: str) -> Any:
        """Look up a custom field by label, falling back to a cf_<label> key."""
        key = custom_field_key(label)
        for field in self.custom_fields:
            if field.label and custom_field_key(field.label) == key:
                return field.value
            if field.api_name and field.api_name.lower() == f"cf_{key}":
                return field.value
        return (self.model_extra or {}).get(f"cf_{key}")

    def custom_int(self, label: str, default: int = 1) -> int:
        value = self.custom_field(label)
        try:
            parsed = int(float(value))
        except (TypeError, ValueError):
            return default
        return parsed if parsed > 0 else default

    def custom_decimal_str(self, label: str) -> Optional[str]:
        value = self.custom_field(label)
        try:
            return f"{float(value):.2f}" if value not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @property
    def tags(self) -> Optional[list[str]]:
        raw = self.custom_field("tags")
        if not raw:
            return None
        return [tag.strip() for tag in str(raw).split(",") if tag.strip()]


class ZohoItemPage(BaseModel):
    """One page of GET /items."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    has_more_page: bool = False


class ZohoCategory(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    category_id: str
    name: str
    parent_category_id: Optional[str] = None


class ZohoItemGroup(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    group_id: str
    group_name: str
    status: Optional[str] = "active"


class ZohoPriceBook(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    pricebook_id: str
    name: str
    description: Optional[str] = None
    pricebook_type: Optional[str] = None
    currency_code: str = "USD"
    status: Optional[str] = "active"


class ZohoPriceBookItem(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    item_id: str
    pricebook_rate: float


class ZohoContact(BaseModel):
    """Books contact from GET /contacts/{id}."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    contact_id: str
    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    contact_type: Optional[str] = None
    status: Optional[str] = "active"

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() == "active"


class CustomerLookupResult(BaseModel):
    """Outcome of looking up a Books contact by id."""

    found: bool
    active: bool
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    company_name: Optional[str] = None
    message: str


class CustomerCreateResult(BaseModel):
    success: bool
    customer_id: Optional[str] = None
    message: str


class SalesOrderResult(BaseModel):
    success: bool
    sales_order_id: Optional[str] = None
    sales_order_number: Optional[str] = None
    message: str
