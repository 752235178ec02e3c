"""
Product model - local mirror of a Zoho Inventory item.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wholesale.core.database import Base, JSONType, UTCDateTime, utc_now


class ImageSource(str, Enum):
    """Where a product's current image came from."""

    NONE = "none"
    ZOHO = "zoho"
    UPLOADED = "uploaded"  # manual override, never replaced automatically


class Product(Base):
    """Catalog product synced from Zoho, soft-deleted via is_active/is_online."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Identification
    sku: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Categorization
    category: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    subcategory: Mapped[Optional[str]] = mapped_column(Text)
    brand: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[Optional[list[str]]] = mapped_column(JSONType)

    # Pricing
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    compare_at_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    min_order_quantity: Mapped[int] = mapped_column(Integer, default=1)
    case_pack_size: Mapped[int] = mapped_column(Integer, default=1)

    # Inventory (negative stock represents oversell and is filtered at read time)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=10)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_online: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Media
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    image_source: Mapped[str] = mapped_column(String(20), default=ImageSource.NONE.value)

    # Zoho integration
    zoho_item_id: Mapped[Optional[str]] = mapped_column(Text, unique=True)
    zoho_category_id: Mapped[Optional[str]] = mapped_column(Text)
    zoho_group_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    zoho_group_name: Mapped[Optional[str]] = mapped_column(Text)
    zoho_last_sync_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    @property
    def has_uploaded_image(self) -> bool:
        return self.image_source == ImageSource.UPLOADED.value

    def __repr__(self) -> str:
        return f"<Product {self.sku} {self.name[:30]}>"


class ProductGroup(Base):
    """Zoho item group tying variant products together."""

    __tablename__ = "product_groups"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    zoho_group_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    zoho_group_name: Mapped[str] = mapped_column(Text, nullable=False)
    is_online: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    def __repr__(self) -> str:
        return f"<ProductGroup {self.zoho_group_name}>"
