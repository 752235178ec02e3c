"""
In-memory record of received Zoho webhook deliveries for the admin status page.
"""
from collections import Counter, deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from wholesale.core.logging import get_logger

logger = get_logger(__name__)

MAX_RECENT_EVENTS = 50
# Enough history for monthly totals without unbounded growth
MAX_STORED_EVENTS = MAX_RECENT_EVENTS * 10


class WebhookEvent(BaseModel):
    type: str
    action: str
    timestamp: datetime
    success: bool
    details: Optional[str] = None


class PeriodStats(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class DailyStats(PeriodStats):
    by_action: dict[str, int] = Field(default_factory=dict, alias="byAction")

    model_config = ConfigDict(populate_by_name=True)


class WebhookStatsSnapshot(BaseModel):
    today: DailyStats
    month: PeriodStats
    last_received: Optional[datetime] = Field(None, alias="lastReceived")
    recent_events: list[WebhookEvent] = Field(default_factory=list, alias="recentEvents")

    model_config = ConfigDict(populate_by_name=True)


class WebhookStats:
    """Newest-first log of webhook events, bounded in size."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._clock = clock
        self._events: deque[WebhookEvent] = deque(maxlen=MAX_STORED_EVENTS)

    def record(self, type: str, action: str, success: bool, details: Optional[str] = None) -> None:
        self._events.appendleft(WebhookEvent(
            type=type,
            action=action,
            timestamp=self._clock(),
            success=success,
            details=details,
        ))
        logger.debug("Webhook event recorded", type=type, action=action, success=success)

    def snapshot(self) -> WebhookStatsSnapshot:
        now = self._clock()
        today = [e for e in self._events if e.timestamp.date() == now.date()]
        month = [
            e for e in self._events
            if e.timestamp.year == now.year and e.timestamp.month == now.month
        ]
        by_action = Counter(f"{e.type}.{e.action}" for e in today)

        return WebhookStatsSnapshot(
            today=DailyStats(
                total=len(today),
                successful=sum(1 for e in today if e.success),
                failed=sum(1 for e in today if not e.success),
                by_action=dict(by_action),
            ),
            month=PeriodStats(
                total=len(month),
                successful=sum(1 for e in month if e.success),
                failed=sum(1 for e in month if not e.success),
            ),
            last_received=self._events[0].timestamp if self._events else None,
            recent_events=list(self._events)[:MAX_RECENT_EVENTS],
        )

    def clear(self) -> None:
        self._events.clear()
        logger.info("Webhook stats cleared")
