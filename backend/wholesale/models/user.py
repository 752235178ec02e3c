"""
User model - wholesale buyers, staff and admins.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wholesale.core.database import Base, UTCDateTime, utc_now


class UserRole(str, Enum):
    """Access roles."""

    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"
    PENDING = "pending"


class UserStatus(str, Enum):
    """Account approval states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class User(Base):
    """Registered business account, optionally linked to a Zoho Books contact."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.PENDING.value)
    status: Mapped[str] = mapped_column(String(20), default=UserStatus.PENDING.value, index=True)

    # Business information
    business_name: Mapped[Optional[str]] = mapped_column(Text)
    contact_name: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[Optional[str]] = mapped_column(Text)
    zip_code: Mapped[Optional[str]] = mapped_column(Text)

    # Zoho integration
    zoho_customer_id: Mapped[Optional[str]] = mapped_column(Text, index=True)
    price_list_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("price_lists.id", ondelete="SET NULL"),
    )
    zoho_is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    zoho_last_checked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.status})>"
