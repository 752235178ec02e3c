"""
Sync audit models - reconciliation runs and Zoho API call log.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wholesale.core.database import Base, JSONType, UTCDateTime, utc_now


class SyncType(str, Enum):
    """What a sync run reconciled."""

    ZOHO_INVENTORY = "zoho_inventory"
    ZOHO_CUSTOMERS = "zoho_customers"


class SyncMode(str, Enum):
    """Full walks every page; incremental stops at the watermark."""

    FULL = "full"
    INCREMENTAL = "incremental"


class SyncStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncRun(Base):
    """
    Append-only record of a reconciliation pass.

    The completed_at of the latest completed inventory run is the watermark
    for incremental syncs.
    """

    __tablename__ = "sync_runs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    sync_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    sync_mode: Mapped[Optional[str]] = mapped_column(String(16))
    status: Mapped[str] = mapped_column(String(16), default=SyncStatus.RUNNING.value)

    # Counts
    total_processed: Mapped[int] = mapped_column(Integer, default=0)
    created: Mapped[int] = mapped_column(Integer, default=0)
    updated: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)
    delisted: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)

    # Timing
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer)

    error_messages: Mapped[Optional[list[str]]] = mapped_column(JSONType)
    triggered_by: Mapped[Optional[str]] = mapped_column(String(64))

    def __repr__(self) -> str:
        return f"<SyncRun {self.sync_type} {self.status}>"


class ZohoApiLog(Base):
    """One row per outbound Zoho HTTP call."""

    __tablename__ = "zoho_api_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    endpoint: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    status_code: Mapped[Optional[int]] = mapped_column(Integer)
    success: Mapped[bool] = mapped_column(Boolean, default=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        index=True,
    )
