"""
Zoho webhook handlers for item, customer, invoice and bill notifications.

Handlers never raise: every outcome, including bad secrets, malformed
payloads and database errors, is reported as a WebhookResult. Redelivered
invoice and bill status changes are suppressed by an in-memory cache keyed
on (document type, document id, status).
"""
import math
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any, Optional

from wholesale.core.config import Settings
from wholesale.core.config import settings as default_settings
from wholesale.core.database import SessionContextFactory, utc_now
from wholesale.core.logging import get_logger
from wholesale.core.security import verify_webhook_secret
from wholesale.models.product import ImageSource, Product
from wholesale.models.user import UserStatus
from wholesale.repositories.product import ProductRepository
from wholesale.repositories.user import UserRepository
from wholesale.schemas.webhooks import (
    RECEIPT_STATUSES,
    SALE_STATUSES,
    BillWebhookPayload,
    CustomerWebhookPayload,
    DocumentLineItem,
    InvoiceWebhookPayload,
    ItemWebhookPayload,
    PayloadT,
    WebhookPayloadError,
    WebhookResult,
    parse_webhook_payload,
)
from wholesale.services.image_cache import ImageFetchQueue
from wholesale.services.webhook_stats import WebhookStats
from wholesale.services.zoho_sync import resolve_category_slug

logger = get_logger(__name__)

IdempotencyKey = tuple[str, str, str]


class WebhookIdempotencyCache:
    """Bounded, TTL-evicted set of already handled status transitions."""

    def __init__(
        self,
        max_entries: int = 10_000,
        ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[IdempotencyKey, float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: IdempotencyKey) -> bool:
        self._evict()
        return key in self._entries

    def _evict(self) -> None:
        cutoff = self._clock() - self.ttl_seconds
        # Entries are kept in insertion order, so expired ones are at the front
        while self._entries:
            key, seen_at = next(iter(self._entries.items()))
            if seen_at > cutoff:
                break
            self._entries.popitem(last=False)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def reserve(self, key: IdempotencyKey) -> bool:
        """Claim a key. Returns False when it was already handled."""
        self._evict()
        if key in self._entries:
            return False
        self._entries[key] = self._clock()
        self._evict()
        return True

    def release(self, key: IdempotencyKey) -> None:
        """Forget a key whose processing failed, so a redelivery is handled."""
        self._entries.pop(key, None)


class ZohoWebhookService:
    """Applies inbound Zoho notifications to local products and users."""

    def __init__(
        self,
        session_context: SessionContextFactory,
        settings: Optional[Settings] = None,
        image_queue: Optional[ImageFetchQueue] = None,
        stats: Optional[WebhookStats] = None,
        idempotency: Optional[WebhookIdempotencyCache] = None,
    ) -> None:
        self.session_context = session_context
        self.settings = settings or default_settings
        self.image_queue = image_queue
        self.stats = stats or WebhookStats()
        self.idempotency = idempotency or WebhookIdempotencyCache(
            max_entries=self.settings.webhook_idempotency_max_entries,
            ttl_seconds=self.settings.webhook_idempotency_ttl_seconds,
        )

    # ============================================
    # ENTRY POINTS
    # ============================================

    async def handle_item_webhook(self, payload: Any, provided_secret: Optional[str]) -> WebhookResult:
        return await self._handle("items", ItemWebhookPayload, payload, provided_secret, self._apply_item)

    async def handle_customer_webhook(self, payload: Any, provided_secret: Optional[str]) -> WebhookResult:
        return await self._handle(
            "customers", CustomerWebhookPayload, payload, provided_secret, self._apply_customer
        )

    async def handle_invoice_webhook(self, payload: Any, provided_secret: Optional[str]) -> WebhookResult:
        return await self._handle(
            "invoices", InvoiceWebhookPayload, payload, provided_secret, self._apply_invoice
        )

    async def handle_bill_webhook(self, payload: Any, provided_secret: Optional[str]) -> WebhookResult:
        return await self._handle("bills", BillWebhookPayload, payload, provided_secret, self._apply_bill)

    async def _handle(
        self,
        kind: str,
        schema: type[PayloadT],
        payload: Any,
        provided_secret: Optional[str],
        apply: Callable[[PayloadT], Awaitable[WebhookResult]],
    ) -> WebhookResult:
        event_action = "unknown"
        if isinstance(payload, dict) and payload.get("action"):
            event_action = str(payload["action"]).lower()

        if not verify_webhook_secret(provided_secret, self.settings.zoho_webhook_secret):
            logger.warning("Rejected webhook with invalid secret", kind=kind)
            result = WebhookResult(success=False, action="unauthorized", message="Invalid webhook secret")
        else:
            try:
                parsed = parse_webhook_payload(kind, schema, payload)
            except WebhookPayloadError as e:
                logger.warning("Rejected malformed webhook payload", kind=kind, error=str(e))
                result = WebhookResult(success=False, action="invalid_payload", message=str(e))
            else:
                try:
                    result = await apply(parsed)
                except Exception as e:
                    logger.error("Error processing webhook", kind=kind, error=str(e))
                    result = WebhookResult(success=False, action="error", message=str(e))

        self.stats.record(kind, event_action, result.success, result.message)
        logger.info(
            "Zoho webhook handled",
            kind=kind,
            event_action=event_action,
            result_action=result.action,
            success=result.success,
        )
        return result

    # ============================================
    # ITEMS
    # ============================================

    async def _apply_item(self, payload: ItemWebhookPayload) -> WebhookResult:
        async with self.session_context() as session:
            products = ProductRepository(session)
            product = await products.get_by_zoho_item_id(payload.item_id)

            if payload.is_delete:
                if product is None:
                    return WebhookResult(
                        success=True,
                        action="not_found",
                        message=f"Product with Zoho ID {payload.item_id} not found (already deleted or never synced)",
                    )
                await products.update(product, {"is_online": False, "is_active": False})
                return WebhookResult(
                    success=True,
                    action="delisted",
                    message=f"Product {product.sku} marked as offline/inactive",
                    product_id=product.id,
                )

            values = self._item_values(payload, product)
            if product is not None:
                await products.update(product, values)
                action = "updated"
            else:
                product = await products.create({
                    "zoho_item_id": payload.item_id,
                    "sku": f"ZOHO-{payload.item_id}",
                    "name": "Unknown Product",
                    "category": resolve_category_slug(None),
                    "base_price": Decimal("0.00"),
                    "stock_quantity": 0,
                    "low_stock_threshold": 10,
                    "min_order_quantity": 1,
                    "case_pack_size": 1,
                    "is_active": True,
                    "is_online": False,
                    **values,
                })
                action = "created"

            product_id = product.id
            sku = product.sku
            uploaded = product.has_uploaded_image

        if not uploaded and self.image_queue is not None:
            self.image_queue.enqueue(payload.item_id)

        return WebhookResult(
            success=True,
            action=action,
            message=f"Product {sku} {action} successfully",
            product_id=product_id,
        )

    @staticmethod
    def _item_values(payload: ItemWebhookPayload, product: Optional[Product]) -> dict[str, Any]:
        """Columns to write for the fields present in the payload."""
        sent = payload.model_fields_set
        values: dict[str, Any] = {"zoho_last_sync_at": utc_now()}

        if payload.sku:
            values["sku"] = payload.sku
        if payload.name:
            values["name"] = payload.name
        if "description" in sent:
            values["description"] = payload.description or None
        if payload.rate is not None:
            values["base_price"] = Decimal(f"{payload.rate:.2f}")
        if "category_name" in sent:
            values["category"] = resolve_category_slug(payload.category_name)
        if payload.brand or payload.manufacturer:
            values["brand"] = payload.brand or payload.manufacturer
        if payload.group_id:
            values["zoho_group_id"] = payload.group_id
        if payload.group_name:
            values["zoho_group_name"] = payload.group_name
        if payload.status:
            values["is_active"] = payload.status.lower() == "active"
        if payload.show_in_storefront is not None:
            values["is_online"] = payload.show_in_storefront

        visible = payload.show_in_storefront
        if visible is None:
            visible = bool(product and product.is_online)
        # Hidden items keep their last synced stock
        if visible:
            if payload.stock_on_hand is not None:
                values["stock_quantity"] = math.floor(payload.stock_on_hand)
            if payload.reorder_level:
                values["low_stock_threshold"] = math.floor(payload.reorder_level)

        # Admin uploads win over any image sent by Zoho
        if payload.image_url and not (product and product.has_uploaded_image):
            values["image_url"] = payload.image_url
            values["image_source"] = ImageSource.ZOHO.value

        return values

    # ============================================
    # CUSTOMERS
    # ============================================

    async def _apply_customer(self, payload: CustomerWebhookPayload) -> WebhookResult:
        async with self.session_context() as session:
            users = UserRepository(session)
            user = await users.get_by_zoho_customer_id(payload.contact_id)
            if user is None:
                return WebhookResult(
                    success=True,
                    action="ignored",
                    message=f"Customer with Zoho ID {payload.contact_id} not registered locally",
                )

            updates: dict[str, Any] = {"zoho_last_checked_at": utc_now()}
            if payload.is_delete:
                remote_active: Optional[bool] = False
            elif payload.status:
                remote_active = payload.status.lower() == "active"
            else:
                remote_active = None

            action = "synced"
            if remote_active is False:
                updates["zoho_is_active"] = False
                if user.status == UserStatus.APPROVED.value:
                    updates["status"] = UserStatus.SUSPENDED.value
                    action = "suspended"
            elif remote_active is True:
                # Only users suspended because of Zoho come back; rejections stay with the admin
                if user.status == UserStatus.SUSPENDED.value and not user.zoho_is_active:
                    updates["status"] = UserStatus.APPROVED.value
                    action = "reactivated"
                updates["zoho_is_active"] = True

            if not payload.is_delete:
                if payload.company_name:
                    updates["business_name"] = payload.company_name
                if payload.phone:
                    updates["phone"] = payload.phone

            await users.update(user, updates)
            email = user.email
            user_id = user.id

        message = {
            "suspended": f"Customer {email} suspended",
            "reactivated": f"Customer {email} reactivated",
        }.get(action, f"Customer {email} synced (no status change)")
        return WebhookResult(success=True, action=action, message=message, user_id=user_id)

    # ============================================
    # INVOICES AND BILLS
    # ============================================

    async def _apply_invoice(self, payload: InvoiceWebhookPayload) -> WebhookResult:
        invoice = payload.invoice
        return await self._apply_stock_document(
            "invoice",
            invoice.invoice_id,
            invoice.invoice_number,
            invoice.status,
            invoice.line_items,
            allowed_statuses=SALE_STATUSES,
            sign=-1,
        )

    async def _apply_bill(self, payload: BillWebhookPayload) -> WebhookResult:
        bill = payload.bill
        return await self._apply_stock_document(
            "bill",
            bill.bill_id,
            bill.bill_number,
            bill.status,
            bill.line_items,
            allowed_statuses=RECEIPT_STATUSES,
            sign=1,
        )

    async def _apply_stock_document(
        self,
        document_type: str,
        document_id: str,
        document_number: Optional[str],
        status: str,
        line_items: list[DocumentLineItem],
        *,
        allowed_statuses: frozenset[str],
        sign: int,
    ) -> WebhookResult:
        label = f"{document_type.capitalize()} {document_number or document_id}"
        status = status.lower()
        if status not in allowed_statuses:
            return WebhookResult(
                success=True,
                action="ignored_status",
                message=f"{label} status '{status}' does not affect stock",
            )

        key = (document_type, document_id, status)
        if not self.idempotency.reserve(key):
            return WebhookResult(
                success=True,
                action="duplicate",
                message=f"{label} with status '{status}' already processed",
            )

        try:
            adjusted, missing, unlinked = await self._adjust_stock(line_items, sign)
        except Exception:
            self.idempotency.release(key)
            raise

        message = f"{label}: adjusted stock for {adjusted} item(s)"
        if missing:
            message += f", {len(missing)} unknown item(s) skipped"
        if unlinked:
            message += f", {unlinked} line(s) without an item skipped"
        return WebhookResult(
            success=True,
            action="stock_decremented" if sign < 0 else "stock_incremented",
            message=message,
        )

    async def _adjust_stock(
        self,
        line_items: list[DocumentLineItem],
        sign: int,
    ) -> tuple[int, list[str], int]:
        """
        Apply all line items in one transaction. Sales never push stock below zero.

        Returns the adjusted count, unknown item ids and the number of lines
        without an item id (shipping, free-text).
        """
        adjusted = 0
        missing: list[str] = []
        unlinked = 0
        async with self.session_context() as session:
            products = ProductRepository(session)
            for line in line_items:
                if not line.item_id:
                    unlinked += 1
                    continue
                quantity = math.floor(line.quantity)
                if quantity <= 0:
                    continue
                found = await products.adjust_stock(
                    line.item_id,
                    sign * quantity,
                    floor_at_zero=sign < 0,
                )
                if found:
                    adjusted += 1
                else:
                    missing.append(line.item_id)
        return adjusted, missing, unlinked
