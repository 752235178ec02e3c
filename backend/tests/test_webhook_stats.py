"""
Tests for the in-memory webhook delivery log.
"""
from datetime import datetime, timedelta, timezone

from wholesale.services.webhook_stats import MAX_RECENT_EVENTS, WebhookStats


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TestWebhookStats:
    def test_empty_snapshot(self):
        snapshot = WebhookStats().snapshot()

        assert snapshot.today.total == 0
        assert snapshot.month.total == 0
        assert snapshot.last_received is None
        assert snapshot.recent_events == []

    def test_today_and_month_totals(self):
        clock = FakeClock(datetime(2024, 5, 1, 9, tzinfo=timezone.utc))
        stats = WebhookStats(clock=clock)
        stats.record("items", "update", True)

        clock.now = datetime(2024, 5, 20, 9, tzinfo=timezone.utc)
        stats.record("items", "update", True)
        stats.record("invoices", "create", False, details="boom")
        stats.record("items", "update", True)

        snapshot = stats.snapshot()

        assert snapshot.today.total == 3
        assert snapshot.today.successful == 2
        assert snapshot.today.failed == 1
        assert snapshot.today.by_action == {"items.update": 2, "invoices.create": 1}
        assert snapshot.month.total == 4
        assert snapshot.last_received == clock.now
        # Newest first
        assert snapshot.recent_events[1].details == "boom"

    def test_previous_month_excluded(self):
        clock = FakeClock(datetime(2024, 4, 30, 23, tzinfo=timezone.utc))
        stats = WebhookStats(clock=clock)
        stats.record("bills", "create", True)

        clock.now += timedelta(hours=2)

        snapshot = stats.snapshot()
        assert snapshot.today.total == 0
        assert snapshot.month.total == 0
        assert len(snapshot.recent_events) == 1

    def test_recent_events_capped(self):
        stats = WebhookStats()
        for _ in range(MAX_RECENT_EVENTS + 5):
            stats.record("items", "update", True)

        snapshot = stats.snapshot()

        assert len(snapshot.recent_events) == MAX_RECENT_EVENTS
        assert snapshot.today.total == MAX_RECENT_EVENTS + 5

    def test_clear(self):
        stats = WebhookStats()
        stats.record("items", "update", True)

        stats.clear()

        assert stats.snapshot().today.total == 0
