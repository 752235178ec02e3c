"""
Job model - durable outbox of work that must eventually reach Zoho.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wholesale.core.database import Base, UTCDateTime, utc_now


class JobType(str, Enum):
    """Outbound operation kinds."""

    CREATE_ZOHO_CUSTOMER = "create_zoho_customer"
    PUSH_ORDER_TO_ZOHO = "push_order_to_zoho"


class JobStatus(str, Enum):
    """Job lifecycle: pending -> processing -> completed | pending (retry) | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(Base):
    """Retryable unit of outbound work."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    job_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=JobStatus.PENDING.value,
        index=True,
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        index=True,
    )
    order_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("orders.id"),
        index=True,
    )

    # JSON text validated against the payload schema for job_type
    payload: Mapped[Optional[str]] = mapped_column(Text)

    error_message: Mapped[Optional[str]] = mapped_column(Text)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utc_now,
        onupdate=utc_now,
    )
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value)

    def __repr__(self) -> str:
        return f"<Job {self.job_type} {self.status} {self.attempts}/{self.max_attempts}>"
