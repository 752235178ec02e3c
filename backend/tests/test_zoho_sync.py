"""
Tests for the Zoho catalog reconciler.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from wholesale.models.product import ImageSource
from wholesale.models.sync import SyncMode, SyncStatus, SyncType
from wholesale.repositories.catalog import CategoryRepository, PriceListRepository
from wholesale.repositories.product import ProductRepository
from wholesale.repositories.sync_run import SyncRunRepository
from wholesale.schemas.zoho import ZohoCategory, ZohoItemGroup, ZohoItemPage, ZohoPriceBook, ZohoPriceBookItem
from wholesale.services.zoho_client import ZohoAPIError
from wholesale.services.zoho_sync import ZohoReconciler, legacy_category, resolve_category_slug, slugify

RECENT = "2099-01-01T00:00:00+0000"
OLD = "2020-01-01T00:00:00+0000"


def zoho_item(item_id: str, **overrides) -> dict:
    item = {
        "item_id": item_id,
        "name": f"Item {item_id}",
        "sku": f"SKU-{item_id}",
        "rate": 12.5,
        "stock_on_hand": 7,
        "reorder_level": 3,
        "status": "active",
        "show_in_storefront": True,
        "category_name": "Sun Glasses",
        "last_modified_time": RECENT,
    }
    item.update(overrides)
    return item


def pages(*item_lists: list[dict]) -> list[ZohoItemPage]:
    """Item pages, each but the last flagged as having more."""
    return [
        ZohoItemPage(items=items, has_more_page=index < len(item_lists) - 1)
        for index, items in enumerate(item_lists)
    ]


@pytest.fixture
def client():
    client = MagicMock()
    client.list_items = AsyncMock()
    return client


@pytest.fixture
def image_queue():
    return MagicMock()


@pytest.fixture
def notifications():
    notifications = MagicMock()
    notifications.send_sync_failure_alert = AsyncMock(return_value=True)
    return notifications


@pytest.fixture
def reconciler(client, session_context, image_queue, notifications, settings):
    return ZohoReconciler(
        client,
        session_context,
        image_queue=image_queue,
        notifications=notifications,
        settings=settings,
    )


async def get_product(session_context, zoho_item_id):
    async with session_context() as session:
        return await ProductRepository(session).get_by_zoho_item_id(zoho_item_id)


class TestCategorySlugs:
    def test_slugify(self):
        assert slugify("Sun Glasses & Eyewear!") == "sun-glasses-eyewear"
        assert slugify("  --Caps--  ") == "caps"

    def test_resolve_prefers_slug(self):
        assert resolve_category_slug("Phone Cases") == "phone-cases"

    def test_legacy_fallback(self):
        assert resolve_category_slug(None) == "novelty"
        assert resolve_category_slug("!!!") == "novelty"
        assert legacy_category("Mobile Chargers") == "cellular"
        assert legacy_category("Designer Fragrance") == "perfumes"


class TestProductSync:
    async def test_first_incremental_runs_full_and_creates(self, reconciler, client, image_queue, session_context):
        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B")])

        result = await reconciler.sync_products(SyncMode.INCREMENTAL)

        assert result.mode == SyncMode.FULL.value
        assert result.status == SyncStatus.COMPLETED.value
        assert result.created == 2
        assert result.updated == 0
        assert {call.args[0] for call in image_queue.enqueue.call_args_list} == {"A", "B"}

        product = await get_product(session_context, "A")
        assert product.sku == "SKU-A"
        assert product.base_price == Decimal("12.50")
        assert product.stock_quantity == 7
        assert product.low_stock_threshold == 3
        assert product.category == "sun-glasses"
        assert product.is_online is True
        assert product.image_url is None

    async def test_resync_is_idempotent(self, reconciler, client, image_queue, session_context):
        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B")])
        await reconciler.sync_products(SyncMode.FULL)
        image_queue.enqueue.reset_mock()

        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B")])
        result = await reconciler.sync_products(SyncMode.FULL)

        assert result.created == 0
        assert result.updated == 2
        image_queue.enqueue.assert_not_called()
        async with session_context() as session:
            assert await ProductRepository(session).count() == 2

    async def test_full_sync_delists_missing_products(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B"), zoho_item("C")])
        await reconciler.sync_products(SyncMode.FULL)

        client.list_items.side_effect = pages([zoho_item("A")], [zoho_item("B")])
        result = await reconciler.sync_products(SyncMode.FULL)

        assert result.delisted == 1
        assert client.list_items.await_args_list[-1].kwargs == {"page": 2}
        removed = await get_product(session_context, "C")
        assert removed.is_online is False
        assert removed.is_active is False
        kept = await get_product(session_context, "A")
        assert kept.is_online is True

    async def test_inactive_storefront_item_not_delisted(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B")])
        await reconciler.sync_products(SyncMode.FULL)

        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B", status="inactive")])
        result = await reconciler.sync_products(SyncMode.FULL)

        assert result.delisted == 0
        assert result.skipped == 1
        product = await get_product(session_context, "B")
        assert product.is_online is True

    async def test_null_status_item_treated_as_inactive(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B", status=None)])

        result = await reconciler.sync_products(SyncMode.FULL)

        assert result.status == SyncStatus.COMPLETED.value
        assert result.errors == 0
        assert result.skipped == 1
        assert await get_product(session_context, "B") is None

    async def test_empty_storefront_skips_delisting(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item("A")])
        await reconciler.sync_products(SyncMode.FULL)

        client.list_items.side_effect = pages([])
        result = await reconciler.sync_products(SyncMode.FULL)

        assert result.status == SyncStatus.COMPLETED.value
        assert result.delisted == 0
        assert (await get_product(session_context, "A")).is_online is True

    async def test_incremental_never_delists(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item("A"), zoho_item("B")])
        await reconciler.sync_products(SyncMode.FULL)

        client.list_items.side_effect = pages([zoho_item("A", name="Renamed")])
        result = await reconciler.sync_products(SyncMode.INCREMENTAL)

        assert result.mode == SyncMode.INCREMENTAL.value
        assert result.delisted == 0
        assert (await get_product(session_context, "A")).name == "Renamed"
        assert (await get_product(session_context, "B")).is_online is True

    async def test_incremental_stops_after_older_items(self, reconciler, client, settings):
        client.list_items.side_effect = pages([zoho_item("seed")])
        await reconciler.sync_products(SyncMode.FULL)

        older = [zoho_item(f"old-{i}", last_modified_time=OLD) for i in range(settings.incremental_stop_after_older)]
        client.list_items.reset_mock()
        client.list_items.side_effect = pages(
            [zoho_item("new")] + older + [zoho_item("never-reached")],
            [zoho_item("next-page")],
        )

        result = await reconciler.sync_products(SyncMode.INCREMENTAL)

        assert client.list_items.await_count == 1
        assert result.created == 1
        assert result.skipped == settings.incremental_stop_after_older

    async def test_newer_item_resets_older_run(self, reconciler, client, settings):
        client.list_items.side_effect = pages([zoho_item("seed")])
        await reconciler.sync_products(SyncMode.FULL)

        stop_after = settings.incremental_stop_after_older
        older = [zoho_item(f"old-{i}", last_modified_time=OLD) for i in range(stop_after - 1)]
        client.list_items.side_effect = pages(older + [zoho_item("new")] + older)

        result = await reconciler.sync_products(SyncMode.INCREMENTAL)

        assert result.created == 1
        assert result.skipped == 2 * (stop_after - 1)

    async def test_hidden_item_keeps_stock(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item("A", stock_on_hand=10)])
        await reconciler.sync_products(SyncMode.FULL)

        client.list_items.side_effect = pages([
            zoho_item("A", stock_on_hand=50, show_in_storefront=False),
            zoho_item("B"),
        ])
        await reconciler.sync_products(SyncMode.FULL)

        product = await get_product(session_context, "A")
        assert product.stock_quantity == 10
        assert product.is_online is False

    async def test_uploaded_image_untouched(self, reconciler, client, make_product, session_context):
        await make_product(
            zoho_item_id="A",
            sku="SKU-A",
            image_url="/uploads/a.jpg",
            image_source=ImageSource.UPLOADED.value,
        )
        client.list_items.side_effect = pages([zoho_item("A")])

        await reconciler.sync_products(SyncMode.FULL)

        product = await get_product(session_context, "A")
        assert product.image_url == "/uploads/a.jpg"
        assert product.image_source == ImageSource.UPLOADED.value

    async def test_invalid_item_recorded_as_error(self, reconciler, client):
        client.list_items.side_effect = pages([{"name": "no id"}, zoho_item("A")])

        result = await reconciler.sync_products(SyncMode.FULL)

        assert result.status == SyncStatus.COMPLETED.value
        assert result.errors == 1
        assert result.created == 1
        assert result.total_processed == 2

    async def test_custom_fields_mapped(self, reconciler, client, session_context):
        client.list_items.side_effect = pages([zoho_item(
            "A",
            custom_fields=[
                {"label": "Case Pack Size", "value": "12"},
                {"label": "Min Order Quantity", "value": 6},
            ],
            cf_tags="summer, sale",
        )])

        await reconciler.sync_products(SyncMode.FULL)

        product = await get_product(session_context, "A")
        assert product.case_pack_size == 12
        assert product.min_order_quantity == 6
        assert product.tags == ["summer", "sale"]

    async def test_failed_sync_recorded_and_alerted(self, reconciler, client, notifications, session_context):
        client.list_items.side_effect = ZohoAPIError("Service unavailable", status_code=503)

        result = await reconciler.sync_products(SyncMode.FULL, triggered_by="scheduler")

        assert result.status == SyncStatus.FAILED.value
        assert "Service unavailable" in result.error_messages[-1]
        notifications.send_sync_failure_alert.assert_awaited_once()

        async with session_context() as session:
            runs = SyncRunRepository(session)
            history = await runs.get_history()
            assert history[0].status == SyncStatus.FAILED.value
            assert history[0].triggered_by == "scheduler"
            # A failed run does not move the watermark
            assert await runs.last_successful_completion(SyncType.ZOHO_INVENTORY) is None

    async def test_history_lists_runs(self, reconciler, client):
        client.list_items.side_effect = pages([zoho_item("A")])
        await reconciler.sync_products(SyncMode.FULL)

        history = await reconciler.get_sync_history()

        assert len(history) == 1
        assert history[0].sync_mode == SyncMode.FULL.value
        assert history[0].created == 1
        assert history[0].completed_at is not None


class TestAuxiliaryPasses:
    async def test_categories_upserted(self, reconciler, client, session_context):
        client.list_categories = AsyncMock(return_value=[
            ZohoCategory(category_id="10", name="Sun Glasses"),
        ])

        first = await reconciler.sync_categories()
        second = await reconciler.sync_categories()

        assert first.created == 1
        assert second.updated == 1
        async with session_context() as session:
            category = await CategoryRepository(session).get_by(slug="sun-glasses")
        assert category.zoho_category_id == "10"

    async def test_category_fetch_failure_reported(self, reconciler, client):
        client.list_categories = AsyncMock(side_effect=ZohoAPIError("down", status_code=500))

        result = await reconciler.sync_categories()

        assert result.error == "down"

    async def test_group_online_when_any_product_online(self, reconciler, client, make_product):
        await make_product(zoho_group_id="g1", is_online=False)
        await make_product(zoho_group_id="g1", is_online=True)
        await make_product(zoho_group_id="g2", is_online=False)
        client.list_item_groups = AsyncMock(return_value=[
            ZohoItemGroup(group_id="g1", group_name="Aviators"),
            ZohoItemGroup(group_id="g2", group_name="Wayfarers"),
        ])

        result = await reconciler.sync_item_groups()

        assert result.created == 2

    async def test_price_lists_replace_prices(self, reconciler, client, make_product, session_context):
        product = await make_product(zoho_item_id="A")
        client.list_price_books = AsyncMock(return_value=[
            ZohoPriceBook(pricebook_id="pb1", name="Gold"),
        ])
        client.list_price_book_items = AsyncMock(return_value=[
            ZohoPriceBookItem(item_id="A", pricebook_rate=8),
            ZohoPriceBookItem(item_id="unknown", pricebook_rate=1),
        ])

        result = await reconciler.sync_price_lists()

        assert result.created == 1
        async with session_context() as session:
            price_lists = PriceListRepository(session)
            price_list = await price_lists.get_by(zoho_price_list_id="pb1")
            assert await price_lists.get_customer_price(price_list.id, product.id) == Decimal("8.00")

        client.list_price_book_items.return_value = []
        await reconciler.sync_price_lists()

        async with session_context() as session:
            assert await PriceListRepository(session).get_customer_price(price_list.id, product.id) is None
