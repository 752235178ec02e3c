"""
Storefront Pydantic schemas: catalog filters, checkout input, cart import.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_BULK_IMPORT_ITEMS = 100


class ProductFilters(BaseModel):
    """Catalog query filters. Storefront defaults hide offline and unsellable products."""

    category: Optional[str] = None
    brand: Optional[str] = None
    search: Optional[str] = None
    group_id: Optional[str] = Field(None, alias="groupId")
    online_only: bool = Field(True, alias="onlineOnly")
    in_stock_only: bool = Field(True, alias="inStockOnly")
    limit: int = Field(50, ge=1, le=500)
    offset: int = Field(0, ge=0)

    model_config = ConfigDict(populate_by_name=True)


class ShippingInfo(BaseModel):
    """Shipping address captured at checkout."""

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(None, alias="zipCode")

    model_config = ConfigDict(populate_by_name=True)


class BulkImportRow(BaseModel):
    """One CSV row; validated per row so bad rows are reported, not raised."""

    sku: Any = None
    quantity: Any = None


class BulkImportSuccess(BaseModel):
    sku: str
    quantity: int
    product_name: str = Field(alias="productName")

    model_config = ConfigDict(populate_by_name=True)


class BulkImportFailure(BaseModel):
    sku: str
    quantity: Any = None
    reason: str


class BulkImportResult(BaseModel):
    success: list[BulkImportSuccess] = Field(default_factory=list)
    failed: list[BulkImportFailure] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Imported {len(self.success)} items, {len(self.failed)} failed"


class ProductResponse(BaseModel):
    """Schema for catalog API responses."""

    id: str
    sku: str
    name: str
    description: Optional[str] = None
    category: str
    brand: Optional[str] = None
    base_price: Decimal = Field(alias="basePrice")
    compare_at_price: Optional[Decimal] = Field(None, alias="compareAtPrice")
    stock_quantity: int = Field(alias="stockQuantity")
    min_order_quantity: int = Field(alias="minOrderQuantity")
    case_pack_size: int = Field(alias="casePackSize")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    zoho_group_id: Optional[str] = Field(None, alias="zohoGroupId")
    zoho_group_name: Optional[str] = Field(None, alias="zohoGroupName")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class ApprovalResult(BaseModel):
    """Outcome of an admin approval, including any Zoho push."""

    success: bool
    message: str
    zoho_error: bool = Field(False, alias="zohoError")
    zoho_customer_id: Optional[str] = Field(None, alias="zohoCustomerId")
    zoho_sales_order_id: Optional[str] = Field(None, alias="zohoSalesOrderId")
    job_id: Optional[str] = Field(None, alias="jobId")

    model_config = ConfigDict(populate_by_name=True)


class RejectOrderRequest(BaseModel):
    reason: Optional[str] = None
