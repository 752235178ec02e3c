"""
Tests for Zoho webhook handlers.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from tests.conftest import WEBHOOK_SECRET
from wholesale.models.product import ImageSource
from wholesale.models.user import UserStatus
from wholesale.repositories.product import ProductRepository
from wholesale.repositories.user import UserRepository
from wholesale.services.webhook_stats import WebhookStats
from wholesale.services.zoho_webhooks import WebhookIdempotencyCache, ZohoWebhookService


@pytest.fixture
def image_queue():
    return MagicMock()


@pytest.fixture
def stats():
    return WebhookStats()


@pytest.fixture
def service(session_context, settings, image_queue, stats):
    return ZohoWebhookService(session_context, settings=settings, image_queue=image_queue, stats=stats)


async def get_product(session_context, zoho_item_id):
    async with session_context() as session:
        return await ProductRepository(session).get_by_zoho_item_id(zoho_item_id)


async def get_user(session_context, user_id):
    async with session_context() as session:
        return await UserRepository(session).get_by_id(user_id)


class TestAuthentication:
    async def test_wrong_secret_rejected(self, service, stats):
        result = await service.handle_item_webhook({"item_id": "1"}, "wrong")

        assert result.success is False
        assert result.action == "unauthorized"
        snapshot = stats.snapshot()
        assert snapshot.today.failed == 1

    async def test_missing_secret_rejected(self, service):
        result = await service.handle_invoice_webhook({"invoice": {}}, None)

        assert result.action == "unauthorized"

    async def test_trailing_ampersand_tolerated(self, service):
        result = await service.handle_item_webhook({"item_id": "1"}, WEBHOOK_SECRET + "&")

        assert result.success is True
        assert result.action == "created"

    async def test_unconfigured_secret_accepts_all(self, session_context, settings):
        service = ZohoWebhookService(
            session_context,
            settings=settings.model_copy(update={"zoho_webhook_secret": None}),
        )

        result = await service.handle_item_webhook({"item_id": "1"}, None)

        assert result.success is True


class TestPayloadValidation:
    async def test_missing_item_id(self, service):
        result = await service.handle_item_webhook({"action": "update"}, WEBHOOK_SECRET)

        assert result.success is False
        assert result.action == "invalid_payload"
        assert "item_id" in result.message

    async def test_non_object_body(self, service):
        result = await service.handle_bill_webhook(None, WEBHOOK_SECRET)

        assert result.action == "invalid_payload"

    async def test_invoice_without_envelope(self, service):
        result = await service.handle_invoice_webhook(
            {"invoice_id": "1", "status": "sent"},
            WEBHOOK_SECRET,
        )

        assert result.action == "invalid_payload"


class TestItemWebhook:
    async def test_create_product(self, service, image_queue, session_context):
        result = await service.handle_item_webhook({
            "item_id": 555,
            "name": "Aviator Gold",
            "sku": "AV-1",
            "rate": 4.5,
            "stock_on_hand": 12.9,
            "show_in_storefront": "true",
            "category_name": "Sunglasses",
        }, WEBHOOK_SECRET)

        assert result.action == "created"
        assert result.product_id is not None
        product = await get_product(session_context, "555")
        assert product.sku == "AV-1"
        assert product.base_price == Decimal("4.50")
        assert product.stock_quantity == 12
        assert product.is_online is True
        assert product.category == "sunglasses"
        image_queue.enqueue.assert_called_once_with("555")

    async def test_partial_update_keeps_other_fields(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", sku="Z-1", name="Old", brand="Acme")

        result = await service.handle_item_webhook({"item_id": "Z1", "name": "New"}, WEBHOOK_SECRET)

        assert result.action == "updated"
        product = await get_product(session_context, "Z1")
        assert product.name == "New"
        assert product.brand == "Acme"
        assert product.sku == "Z-1"

    async def test_hidden_item_keeps_stock(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=10, is_online=False)

        await service.handle_item_webhook({"item_id": "Z1", "stock_on_hand": 99}, WEBHOOK_SECRET)

        assert (await get_product(session_context, "Z1")).stock_quantity == 10

    async def test_visible_item_updates_stock(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=10, is_online=True)

        await service.handle_item_webhook({"item_id": "Z1", "stock_on_hand": 3}, WEBHOOK_SECRET)

        assert (await get_product(session_context, "Z1")).stock_quantity == 3

    async def test_delete_delists(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1")

        result = await service.handle_item_webhook({"item_id": "Z1", "action": "item_deleted"}, WEBHOOK_SECRET)

        assert result.action == "delisted"
        product = await get_product(session_context, "Z1")
        assert product.is_online is False
        assert product.is_active is False

    async def test_delete_unknown_item(self, service):
        result = await service.handle_item_webhook({"item_id": "nope", "action": "delete"}, WEBHOOK_SECRET)

        assert result.success is True
        assert result.action == "not_found"

    async def test_uploaded_image_protected(self, service, image_queue, make_product, session_context):
        await make_product(
            zoho_item_id="Z1",
            image_url="/uploads/z1.jpg",
            image_source=ImageSource.UPLOADED.value,
        )

        await service.handle_item_webhook(
            {"item_id": "Z1", "image_url": "https://cdn.zoho.com/z1.png"},
            WEBHOOK_SECRET,
        )

        product = await get_product(session_context, "Z1")
        assert product.image_url == "/uploads/z1.jpg"
        assert product.image_source == ImageSource.UPLOADED.value
        image_queue.enqueue.assert_not_called()

    async def test_database_error_reported(self, service):
        with patch.object(ProductRepository, "get_by_zoho_item_id", side_effect=RuntimeError("db down")):
            result = await service.handle_item_webhook({"item_id": "Z1"}, WEBHOOK_SECRET)

        assert result.success is False
        assert result.action == "error"
        assert result.message == "db down"


class TestCustomerWebhook:
    async def test_unknown_customer_ignored(self, service):
        result = await service.handle_customer_webhook({"contact_id": "C1"}, WEBHOOK_SECRET)

        assert result.success is True
        assert result.action == "ignored"

    async def test_inactive_contact_suspends_approved_user(self, service, make_user, session_context):
        user = await make_user(zoho_customer_id="C1")

        result = await service.handle_customer_webhook(
            {"contact_id": "C1", "status": "inactive"},
            WEBHOOK_SECRET,
        )

        assert result.action == "suspended"
        updated = await get_user(session_context, user.id)
        assert updated.status == UserStatus.SUSPENDED.value
        assert updated.zoho_is_active is False

    async def test_deleted_contact_suspends(self, service, make_user, session_context):
        user = await make_user(zoho_customer_id="C1")

        result = await service.handle_customer_webhook(
            {"contact_id": "C1", "action": "contact_deleted"},
            WEBHOOK_SECRET,
        )

        assert result.action == "suspended"
        assert (await get_user(session_context, user.id)).status == UserStatus.SUSPENDED.value

    async def test_active_contact_reactivates_suspended_user(self, service, make_user, session_context):
        user = await make_user(
            zoho_customer_id="C1",
            status=UserStatus.SUSPENDED.value,
            zoho_is_active=False,
        )

        result = await service.handle_customer_webhook(
            {"contact_id": "C1", "status": "active", "company_name": "New Name LLC"},
            WEBHOOK_SECRET,
        )

        assert result.action == "reactivated"
        updated = await get_user(session_context, user.id)
        assert updated.status == UserStatus.APPROVED.value
        assert updated.zoho_is_active is True
        assert updated.business_name == "New Name LLC"

    async def test_admin_suspension_not_lifted(self, service, make_user, session_context):
        user = await make_user(zoho_customer_id="C1", status=UserStatus.SUSPENDED.value, zoho_is_active=True)

        result = await service.handle_customer_webhook({"contact_id": "C1", "status": "active"}, WEBHOOK_SECRET)

        assert result.action == "synced"
        assert (await get_user(session_context, user.id)).status == UserStatus.SUSPENDED.value

    async def test_rejected_user_unchanged(self, service, make_user, session_context):
        user = await make_user(zoho_customer_id="C1", status=UserStatus.REJECTED.value)

        result = await service.handle_customer_webhook({"contact_id": "C1", "status": "inactive"}, WEBHOOK_SECRET)

        assert result.action == "synced"
        updated = await get_user(session_context, user.id)
        assert updated.status == UserStatus.REJECTED.value
        assert updated.zoho_is_active is False


class TestStockDocuments:
    def invoice(self, status="sent", invoice_id="INV-1", lines=None):
        return {
            "action": "update",
            "invoice": {
                "invoice_id": invoice_id,
                "invoice_number": f"#{invoice_id}",
                "status": status,
                "line_items": lines if lines is not None else [{"item_id": "Z1", "quantity": 2}],
            },
        }

    async def test_draft_invoice_ignored(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        result = await service.handle_invoice_webhook(self.invoice(status="draft"), WEBHOOK_SECRET)

        assert result.action == "ignored_status"
        assert (await get_product(session_context, "Z1")).stock_quantity == 5

    async def test_sent_invoice_decrements(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        result = await service.handle_invoice_webhook(self.invoice(status="Sent"), WEBHOOK_SECRET)

        assert result.action == "stock_decremented"
        assert (await get_product(session_context, "Z1")).stock_quantity == 3

    async def test_redelivery_is_duplicate(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        await service.handle_invoice_webhook(self.invoice(), WEBHOOK_SECRET)
        result = await service.handle_invoice_webhook(self.invoice(), WEBHOOK_SECRET)

        assert result.success is True
        assert result.action == "duplicate"
        assert (await get_product(session_context, "Z1")).stock_quantity == 3

    async def test_sale_never_goes_below_zero(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=3)

        await service.handle_invoice_webhook(
            self.invoice(lines=[{"item_id": "Z1", "quantity": 10}]),
            WEBHOOK_SECRET,
        )

        assert (await get_product(session_context, "Z1")).stock_quantity == 0

    async def test_unknown_items_skipped(self, service, make_product):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        result = await service.handle_invoice_webhook(
            self.invoice(lines=[{"item_id": "Z1", "quantity": 1}, {"item_id": "ghost", "quantity": 1}]),
            WEBHOOK_SECRET,
        )

        assert "adjusted stock for 1 item(s)" in result.message
        assert "1 unknown item(s) skipped" in result.message

    async def test_lines_without_item_skipped(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        result = await service.handle_invoice_webhook(
            self.invoice(lines=[
                {"item_id": "Z1", "quantity": 2},
                {"item_id": "", "quantity": 1},
                {"quantity": 1},
            ]),
            WEBHOOK_SECRET,
        )

        assert result.action == "stock_decremented"
        assert "adjusted stock for 1 item(s)" in result.message
        assert "2 line(s) without an item skipped" in result.message
        assert (await get_product(session_context, "Z1")).stock_quantity == 3

    async def test_sent_bill_increments(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        result = await service.handle_bill_webhook({
            "bill": {
                "bill_id": "B1",
                "status": "sent",
                "line_items": [{"item_id": "Z1", "quantity": 4}],
            },
        }, WEBHOOK_SECRET)

        assert result.action == "stock_incremented"
        assert (await get_product(session_context, "Z1")).stock_quantity == 9

    async def test_open_bill_increments(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=0)

        result = await service.handle_bill_webhook({
            "bill": {
                "bill_id": "B-1",
                "status": "open",
                "line_items": [{"item_id": "Z1", "quantity": 24}],
            },
        }, WEBHOOK_SECRET)

        assert result.action == "stock_incremented"
        assert (await get_product(session_context, "Z1")).stock_quantity == 24

    async def test_draft_bill_ignored(self, service):
        result = await service.handle_bill_webhook(
            {"bill": {"bill_id": "B-1", "status": "draft"}},
            WEBHOOK_SECRET,
        )

        assert result.action == "ignored_status"

    async def test_failed_adjustment_can_be_redelivered(self, service, make_product, session_context):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        with patch.object(ProductRepository, "adjust_stock", side_effect=RuntimeError("db down")):
            failed = await service.handle_invoice_webhook(self.invoice(), WEBHOOK_SECRET)
        retried = await service.handle_invoice_webhook(self.invoice(), WEBHOOK_SECRET)

        assert failed.action == "error"
        assert retried.action == "stock_decremented"
        assert (await get_product(session_context, "Z1")).stock_quantity == 3

    async def test_stats_recorded_per_kind(self, service, stats, make_product):
        await make_product(zoho_item_id="Z1", stock_quantity=5)

        await service.handle_invoice_webhook(self.invoice(), WEBHOOK_SECRET)
        await service.handle_invoice_webhook(self.invoice(), WEBHOOK_SECRET)

        snapshot = stats.snapshot()
        assert snapshot.today.total == 2
        assert snapshot.today.by_action == {"invoices.update": 2}


class TestIdempotencyCache:
    def test_reserve_once(self):
        cache = WebhookIdempotencyCache()

        assert cache.reserve(("invoice", "1", "sent")) is True
        assert cache.reserve(("invoice", "1", "sent")) is False
        assert cache.reserve(("invoice", "1", "paid")) is True

    def test_entries_expire(self):
        now = [0.0]
        cache = WebhookIdempotencyCache(ttl_seconds=60, clock=lambda: now[0])
        cache.reserve(("bill", "1", "open"))

        now[0] = 61.0

        assert ("bill", "1", "open") not in cache
        assert cache.reserve(("bill", "1", "open")) is True

    def test_oldest_evicted_at_capacity(self):
        cache = WebhookIdempotencyCache(max_entries=2)
        cache.reserve(("invoice", "1", "sent"))
        cache.reserve(("invoice", "2", "sent"))
        cache.reserve(("invoice", "3", "sent"))

        assert len(cache) == 2
        assert ("invoice", "1", "sent") not in cache
        assert ("invoice", "3", "sent") in cache

    def test_release(self):
        cache = WebhookIdempotencyCache()
        cache.reserve(("invoice", "1", "sent"))

        cache.release(("invoice", "1", "sent"))

        assert len(cache) == 0
