"""
Zoho catalog reconciler - pulls items, categories, groups and price lists
from Zoho Inventory and upserts them into the local catalog.
"""
import re
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from wholesale.core.config import Settings
from wholesale.core.config import settings as default_settings
from wholesale.core.database import SessionContextFactory, utc_now
from wholesale.core.logging import get_logger
from wholesale.models.sync import SyncMode, SyncRun, SyncStatus, SyncType
from wholesale.repositories.catalog import CategoryRepository, PriceListRepository
from wholesale.repositories.product import ProductGroupRepository, ProductRepository
from wholesale.repositories.sync_run import SyncRunRepository
from wholesale.schemas.sync import CatalogSyncResult, PassResult, SyncResult
from wholesale.schemas.zoho import ZohoItem
from wholesale.services.image_cache import ImageFetchQueue
from wholesale.services.notification_service import NotificationService
from wholesale.services.zoho_client import ZohoAPIError, ZohoClient

logger = get_logger(__name__)

DEFAULT_CATEGORY = "novelty"

# Keyword buckets used only when a category name yields no usable slug
LEGACY_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("sunglasses", ("sunglass", "eyewear", "glasses")),
    ("cellular", ("cellular", "phone", "mobile", "charger", "cable", "accessori")),
    ("caps", ("cap", "hat", "headwear", "beanie")),
    ("perfumes", ("perfume", "fragrance", "cologne")),
)


def slugify(value: str) -> str:
    """Lowercase, keep a-z0-9, join words with single hyphens."""
    slug = value.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def legacy_category(category_name: Optional[str]) -> str:
    if not category_name:
        return DEFAULT_CATEGORY
    lowered = category_name.lower()
    for slug, keywords in LEGACY_CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return slug
    return DEFAULT_CATEGORY


def resolve_category_slug(category_name: Optional[str]) -> str:
    """Local category slug for a Zoho category name."""
    if category_name:
        slug = slugify(category_name)
        if slug:
            return slug
    return legacy_category(category_name)


def product_fields_from_item(item: ZohoItem) -> dict[str, Any]:
    """Mutable product columns derived from a Zoho item (stock excluded)."""
    subcategory = item.custom_field("subcategory")
    compare_at_price = item.custom_decimal_str("compare_at_price")
    return {
        "sku": item.resolved_sku,
        "name": item.display_name,
        "description": item.description or None,
        "category": resolve_category_slug(item.category_name),
        "subcategory": subcategory if isinstance(subcategory, str) and subcategory else None,
        "brand": item.resolved_brand,
        "tags": item.tags or [],
        "base_price": Decimal(item.base_price),
        "compare_at_price": Decimal(compare_at_price) if compare_at_price else None,
        "min_order_quantity": item.custom_int("min_order_quantity"),
        "case_pack_size": item.custom_int("case_pack_size"),
        "is_active": True,
        "is_online": item.show_in_storefront,
        "zoho_category_id": item.category_id,
        "zoho_group_id": item.group_id,
        "zoho_group_name": item.group_name,
        "zoho_last_sync_at": utc_now(),
    }


class ZohoReconciler:
    """
    Mirrors the Zoho catalog into the local database.

    Every item is written in its own transaction, so one bad item is
    recorded as an error without aborting the run. Image URLs are never
    written here; new products are handed to the image queue instead.
    """

    def __init__(
        self,
        client: ZohoClient,
        session_context: SessionContextFactory,
        image_queue: Optional[ImageFetchQueue] = None,
        notifications: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.client = client
        self.session_context = session_context
        self.image_queue = image_queue
        self.notifications = notifications
        self.settings = settings or default_settings

    # ============================================
    # PRODUCTS
    # ============================================

    async def sync_products(
        self,
        mode: SyncMode = SyncMode.INCREMENTAL,
        triggered_by: str = "manual",
    ) -> SyncResult:
        """
        Run one product reconciliation pass.

        Incremental mode walks pages newest-first and stops once enough
        consecutive items older than the watermark have been seen. Without
        a previous successful run there is no watermark and the pass runs
        as a full sync. Only full syncs delist products.
        """
        started = time.monotonic()

        async with self.session_context() as session:
            runs = SyncRunRepository(session)
            watermark = await runs.last_successful_completion(SyncType.ZOHO_INVENTORY)
            if mode == SyncMode.INCREMENTAL and watermark is None:
                logger.info("No previous successful sync, running full sync")
                mode = SyncMode.FULL
            run = await runs.start(SyncType.ZOHO_INVENTORY, triggered_by, mode.value)
            run_id = run.id

        result = SyncResult(
            sync_run_id=run_id,
            sync_type=SyncType.ZOHO_INVENTORY.value,
            mode=mode.value,
        )
        logger.info(
            "Starting Zoho product sync",
            mode=mode.value,
            since=watermark.isoformat() if watermark and mode == SyncMode.INCREMENTAL else None,
            triggered_by=triggered_by,
        )

        visible_ids: set[str] = set()
        try:
            await self._walk_items(mode, watermark, result, visible_ids)
            if mode == SyncMode.FULL:
                result.delisted = await self._delist_missing(visible_ids)
            result.status = SyncStatus.COMPLETED.value
        except Exception as e:
            result.status = SyncStatus.FAILED.value
            result.record_error(f"Sync failed: {e}", self.settings.sync_error_message_limit)
            logger.error("Zoho product sync failed", error=str(e), sync_run_id=run_id)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        await self._finish_run(run_id, result)

        if result.status == SyncStatus.FAILED.value and self.notifications:
            await self.notifications.send_sync_failure_alert(
                SyncType.ZOHO_INVENTORY.value,
                result.error_messages[-1] if result.error_messages else "Unknown error",
                triggered_by,
            )

        logger.info(
            "Zoho product sync finished",
            status=result.status,
            mode=mode.value,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            delisted=result.delisted,
            errors=result.errors,
            duration_ms=result.duration_ms,
        )
        return result

    async def _walk_items(
        self,
        mode: SyncMode,
        watermark: Optional[datetime],
        result: SyncResult,
        visible_ids: set[str],
    ) -> None:
        incremental = mode == SyncMode.INCREMENTAL and watermark is not None
        stop_after = self.settings.incremental_stop_after_older
        error_limit = self.settings.sync_error_message_limit
        consecutive_older = 0
        page = 1

        while True:
            item_page = await self.client.list_items(page=page)
            reached_watermark = False

            for raw in item_page.items:
                result.total_processed += 1
                try:
                    item = ZohoItem.model_validate(raw)
                except ValidationError as e:
                    result.record_error(
                        f"Item {raw.get('item_id', '?')}: invalid payload ({e.error_count()} errors)",
                        error_limit,
                    )
                    continue

                # Tracked before the status check so inactive storefront items are not delisted
                if item.show_in_storefront:
                    visible_ids.add(item.item_id)

                if incremental and item.last_modified_time is not None:
                    if item.last_modified_time < watermark:
                        consecutive_older += 1
                        result.skipped += 1
                        if consecutive_older >= stop_after:
                            reached_watermark = True
                            break
                        continue
                consecutive_older = 0

                if not item.is_active:
                    result.skipped += 1
                    continue

                try:
                    created = await self._upsert_item(item)
                except Exception as e:
                    result.record_error(f"Item {item.item_id}: {e}", error_limit)
                    logger.warning("Failed to sync Zoho item", zoho_item_id=item.item_id, error=str(e))
                    continue

                if created:
                    result.created += 1
                    if self.image_queue is not None:
                        self.image_queue.enqueue(item.item_id)
                else:
                    result.updated += 1

            if reached_watermark:
                logger.info("Reached incremental sync watermark", page=page)
                return
            if not item_page.has_more_page:
                return
            page += 1

    async def _upsert_item(self, item: ZohoItem) -> bool:
        """Write one item. Returns True when a product was created."""
        values = product_fields_from_item(item)
        # Hidden items keep their last synced stock
        if item.show_in_storefront:
            values["stock_quantity"] = item.stock_quantity
            values["low_stock_threshold"] = item.low_stock_threshold

        async with self.session_context() as session:
            products = ProductRepository(session)
            product = await products.get_by_zoho_item_id(item.item_id)
            if product is not None:
                await products.update(product, values)
                return False

            values.setdefault("stock_quantity", 0)
            values.setdefault("low_stock_threshold", 10)
            await products.create({"zoho_item_id": item.item_id, **values})
            return True

    async def _delist_missing(self, visible_ids: set[str]) -> int:
        if not visible_ids:
            logger.warning("Full sync saw no storefront items, skipping delisting")
            return 0
        async with self.session_context() as session:
            delisted = await ProductRepository(session).delist_missing(visible_ids)
        if delisted:
            logger.info("Delisted products missing from Zoho storefront", count=delisted)
        return delisted

    async def _finish_run(self, run_id: str, result: SyncResult) -> None:
        try:
            async with self.session_context() as session:
                runs = SyncRunRepository(session)
                run = await runs.get_by_id(run_id)
                if run is not None:
                    await runs.finish(run, result)
        except Exception as e:
            logger.error("Failed to finalize sync run", sync_run_id=run_id, error=str(e))

    # ============================================
    # AUXILIARY PASSES
    # ============================================

    async def sync_categories(self) -> PassResult:
        """Upsert local categories from Zoho categories. Nothing is deleted."""
        result = PassResult(name="categories")
        try:
            categories = await self.client.list_categories()
        except ZohoAPIError as e:
            result.error = str(e)
            logger.error("Failed to fetch Zoho categories", error=str(e))
            return result

        for category in categories:
            try:
                async with self.session_context() as session:
                    _, created = await CategoryRepository(session).upsert(
                        slug=resolve_category_slug(category.name),
                        name=category.name,
                        zoho_category_id=category.category_id,
                    )
            except Exception as e:
                result.errors += 1
                logger.warning("Failed to sync category", zoho_category_id=category.category_id, error=str(e))
                continue
            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info("Category sync completed", created=result.created, updated=result.updated)
        return result

    async def sync_item_groups(self) -> PassResult:
        """Upsert product groups; a group is online when any of its products is."""
        result = PassResult(name="item_groups")
        try:
            groups = await self.client.list_item_groups()
        except ZohoAPIError as e:
            result.error = str(e)
            logger.error("Failed to fetch Zoho item groups", error=str(e))
            return result

        async with self.session_context() as session:
            online_flags = await ProductRepository(session).group_online_flags()

        for group in groups:
            try:
                async with self.session_context() as session:
                    _, created = await ProductGroupRepository(session).upsert(
                        group.group_id,
                        group.group_name,
                        online_flags.get(group.group_id, False),
                    )
            except Exception as e:
                result.errors += 1
                logger.warning("Failed to sync item group", zoho_group_id=group.group_id, error=str(e))
                continue
            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info("Item group sync completed", created=result.created, updated=result.updated)
        return result

    async def sync_price_lists(self) -> PassResult:
        """Upsert price lists and replace each list's customer prices."""
        result = PassResult(name="price_lists")
        try:
            price_books = await self.client.list_price_books()
        except ZohoAPIError as e:
            result.error = str(e)
            logger.error("Failed to fetch Zoho price books", error=str(e))
            return result

        for book in price_books:
            try:
                book_items = await self.client.list_price_book_items(book.pricebook_id)
                async with self.session_context() as session:
                    price_lists = PriceListRepository(session)
                    price_list, created = await price_lists.upsert(
                        zoho_price_list_id=book.pricebook_id,
                        name=book.name,
                        description=book.description,
                        price_list_type=book.pricebook_type,
                        currency_code=book.currency_code,
                        is_active=(book.status or "").lower() == "active",
                    )
                    product_ids = await ProductRepository(session).get_ids_by_zoho_item_ids(
                        entry.item_id for entry in book_items
                    )
                    kept: set[str] = set()
                    for entry in book_items:
                        product_id = product_ids.get(entry.item_id)
                        if product_id is None:
                            continue
                        await price_lists.upsert_price(
                            price_list_id=price_list.id,
                            product_id=product_id,
                            zoho_item_id=entry.item_id,
                            custom_price=Decimal(f"{entry.pricebook_rate:.2f}"),
                        )
                        kept.add(product_id)
                    await price_lists.delete_prices_except(price_list.id, kept)
            except Exception as e:
                result.errors += 1
                logger.warning("Failed to sync price list", pricebook_id=book.pricebook_id, error=str(e))
                continue
            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info("Price list sync completed", created=result.created, updated=result.updated)
        return result

    async def run_catalog_sync(
        self,
        mode: SyncMode = SyncMode.INCREMENTAL,
        triggered_by: str = "manual",
    ) -> CatalogSyncResult:
        """Categories, then products, then groups and price lists."""
        categories = await self.sync_categories()
        products = await self.sync_products(mode, triggered_by)
        groups = await self.sync_item_groups()
        price_lists = await self.sync_price_lists()
        return CatalogSyncResult(products=products, passes=[categories, groups, price_lists])

    # ============================================
    # HISTORY
    # ============================================

    async def get_sync_history(self, limit: int = 20) -> list[SyncRun]:
        async with self.session_context() as session:
            return await SyncRunRepository(session).get_history(limit=limit)

    async def test_connection(self) -> tuple[bool, str]:
        return await self.client.test_connection()
