"""
Price list models - customer-specific pricing tiers synced from Zoho price books.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wholesale.core.database import Base, UTCDateTime, utc_now


class PriceList(Base):
    """Zoho price book."""

    __tablename__ = "price_lists"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    zoho_price_list_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_list_type: Mapped[Optional[str]] = mapped_column(Text)
    currency_code: Mapped[str] = mapped_column(String(8), default="USD")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
    )
    zoho_last_synced_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    def __repr__(self) -> str:
        return f"<PriceList {self.name}>"


class CustomerPrice(Base):
    """Per-product price within a price list."""

    __tablename__ = "customer_prices"
    __table_args__ = (
        Index("customer_prices_unique_idx", "price_list_id", "product_id", unique=True),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    price_list_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("price_lists.id", ondelete="CASCADE"),
        index=True,
    )
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    zoho_item_id: Mapped[Optional[str]] = mapped_column(Text)
    custom_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
    )
