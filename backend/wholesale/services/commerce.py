"""
Commerce store - the only write path for carts and orders.

Every mutation re-reads the current product row and re-resolves the unit
price, so stock or price changes made by a sync or webhook since the item
was added are honored.
"""
import secrets
import string
import time
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from wholesale.core.logging import get_logger
from wholesale.models.cart import Cart, CartItem
from wholesale.models.order import Order, OrderItem, OrderStatus
from wholesale.models.product import Product
from wholesale.models.user import User
from wholesale.repositories.catalog import PriceListRepository
from wholesale.repositories.order import CartRepository
from wholesale.repositories.product import ProductRepository
from wholesale.schemas.commerce import (
    MAX_BULK_IMPORT_ITEMS,
    BulkImportFailure,
    BulkImportResult,
    BulkImportRow,
    BulkImportSuccess,
    ProductFilters,
    ShippingInfo,
)

logger = get_logger(__name__)

BASE36_DIGITS = string.digits + string.ascii_uppercase
ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


# ============================================
# ERRORS
# ============================================

class CommerceError(Exception):
    """A cart or order rule was violated; the message is shown to the caller."""

    status_code = 400


class RecordNotFoundError(CommerceError):
    status_code = 404


class ProductUnavailableError(CommerceError):
    pass


class OutOfStockError(CommerceError):
    pass


class InsufficientStockError(CommerceError):
    pass


class EmptyCartError(CommerceError):
    pass


class CartItemNotFoundError(RecordNotFoundError):
    pass


class CartValidationError(CommerceError):
    """Every line that failed checkout validation, raised as one error."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        super().__init__("; ".join(messages))


def validate_stock(product: Optional[Product], quantity: int) -> None:
    """Raise if the product cannot be sold in this quantity right now."""
    if product is None or not product.is_active or not product.is_online:
        name = product.name if product is not None else "Product"
        raise ProductUnavailableError(f"{name} is no longer available")
    if product.stock_quantity <= 0:
        raise OutOfStockError(f"{product.name} is out of stock")
    if quantity > product.stock_quantity:
        raise InsufficientStockError(
            f"Only {product.stock_quantity} units of {product.name} available in stock"
        )


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_order_number(now_ms: Optional[int] = None) -> str:
    """WH-<base36 millisecond timestamp>-<4 random uppercase alphanumerics>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(ORDER_SUFFIX_ALPHABET) for _ in range(4))
    return f"WH-{to_base36(now_ms)}-{suffix}"


def parse_quantity(value: object) -> Optional[int]:
    """Leading integer of a CSV quantity cell, or None when there is none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip() if value is not None else ""
    sign = ""
    if text[:1] in ("-", "+"):
        sign, text = text[0], text[1:]
    digits = ""
    for ch in text:
        if not ch.isdigit():
            break
        digits += ch
    return int(sign + digits) if digits else None


class CommerceStore:
    """Cart and order operations over a caller-owned session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.products = ProductRepository(session)
        self.carts = CartRepository(session)
        self.price_lists = PriceListRepository(session)

    async def get_products(self, filters: Optional[ProductFilters] = None) -> list[Product]:
        return await self.products.search(filters or ProductFilters())

    async def get_or_create_cart(self, user_id: str) -> Cart:
        cart = await self.carts.get_for_user(user_id)
        if cart is None:
            cart = await self.carts.create({
                "user_id": user_id,
                "item_count": 0,
                "subtotal": Decimal("0"),
            })
        return cart

    async def get_cart_with_items(self, user_id: str) -> tuple[Optional[Cart], list[tuple[CartItem, Product]]]:
        """The user's cart and its lines paired with their current products."""
        cart = await self.carts.get_for_user(user_id)
        if cart is None:
            return None, []
        items = await self.carts.get_items(cart.id)
        products = await self.products.get_many([item.product_id for item in items])
        return cart, [(item, products[item.product_id]) for item in items if item.product_id in products]

    async def resolve_unit_price(self, user: User, product: Product) -> Decimal:
        """Customer price list price when one exists, otherwise the base price."""
        if user.price_list_id:
            price = await self.price_lists.get_customer_price(user.price_list_id, product.id)
            if price is not None:
                return price
        return product.base_price

    async def add_to_cart(self, user: User, product_id: str, quantity: int) -> CartItem:
        """
        Add quantity of a product to the user's cart.

        The check covers the quantity already in the cart plus the new
        quantity; a rejected request leaves the cart unchanged.
        """
        if quantity < 1:
            raise CommerceError("Quantity must be at least 1")

        cart = await self.get_or_create_cart(user.id)
        product = await self.products.get_by_id(product_id)
        existing = await self.carts.get_item_for_product(cart.id, product_id)
        total_quantity = quantity + (existing.quantity if existing else 0)

        validate_stock(product, total_quantity)
        unit_price = await self.resolve_unit_price(user, product)

        if existing:
            item = await self.carts.update(existing, {
                "quantity": total_quantity,
                "unit_price": unit_price,
                "line_total": unit_price * total_quantity,
            })
        else:
            item = await self.carts.add_item(cart.id, product.id, quantity, unit_price)

        await self.carts.recalculate(cart)
        logger.debug("Added to cart", user_id=user.id, sku=product.sku, quantity=total_quantity)
        return item

    async def update_cart_item(self, user: User, item_id: str, quantity: int) -> CartItem:
        """Set a line's quantity, re-checking stock and price."""
        if quantity < 1:
            raise CommerceError("Quantity must be at least 1")

        cart, item = await self._get_own_item(user.id, item_id)
        product = await self.products.get_by_id(item.product_id)
        validate_stock(product, quantity)
        unit_price = await self.resolve_unit_price(user, product)

        item = await self.carts.update(item, {
            "quantity": quantity,
            "unit_price": unit_price,
            "line_total": unit_price * quantity,
        })
        await self.carts.recalculate(cart)
        return item

    async def remove_cart_item(self, user: User, item_id: str) -> Cart:
        cart, item = await self._get_own_item(user.id, item_id)
        await self.carts.delete_item(item)
        return await self.carts.recalculate(cart)

    async def clear_cart(self, user: User) -> None:
        cart = await self.carts.get_for_user(user.id)
        if cart is None:
            return
        await self.carts.clear(cart.id)
        await self.carts.recalculate(cart)

    async def _get_own_item(self, user_id: str, item_id: str) -> tuple[Cart, CartItem]:
        cart = await self.carts.get_for_user(user_id)
        item = await self.carts.get_item(cart.id, item_id) if cart else None
        if item is None:
            raise CartItemNotFoundError("Cart item not found")
        return cart, item

    async def bulk_import(self, user: User, rows: list[BulkImportRow]) -> BulkImportResult:
        """Add (sku, quantity) rows to the cart, reporting a reason for every rejected row."""
        if not rows:
            raise CommerceError("Items array is required")
        if len(rows) > MAX_BULK_IMPORT_ITEMS:
            raise CommerceError(f"Maximum {MAX_BULK_IMPORT_ITEMS} items per import")

        result = BulkImportResult()
        for row in rows:
            if not row.sku or not isinstance(row.sku, str):
                result.failed.append(BulkImportFailure(
                    sku=str(row.sku) if row.sku else "unknown",
                    quantity=row.quantity,
                    reason="Invalid SKU",
                ))
                continue

            quantity = parse_quantity(row.quantity)
            if quantity is None or quantity < 1:
                result.failed.append(BulkImportFailure(
                    sku=row.sku,
                    quantity=row.quantity,
                    reason="Invalid quantity (must be positive number)",
                ))
                continue

            product = await self.products.get_by_sku(row.sku.strip())
            reason = None
            if product is None:
                reason = "Product not found"
            elif not product.is_online or not product.is_active:
                reason = "Product not available"
            elif product.stock_quantity <= 0:
                reason = "Out of stock"
            elif quantity > product.stock_quantity:
                reason = f"Only {product.stock_quantity} in stock"

            if reason is None:
                try:
                    await self.add_to_cart(user, product.id, quantity)
                except CommerceError as e:
                    reason = str(e)

            if reason:
                result.failed.append(BulkImportFailure(sku=row.sku, quantity=quantity, reason=reason))
            else:
                result.success.append(BulkImportSuccess(
                    sku=row.sku,
                    quantity=quantity,
                    product_name=product.name,
                ))

        logger.info(
            "Bulk cart import",
            user_id=user.id,
            imported=len(result.success),
            failed=len(result.failed),
        )
        return result

    async def create_order(self, user: User, shipping: Optional[ShippingInfo] = None) -> Order:
        """
        Convert the user's cart into a pending-approval order.

        Product rows are locked and every line is re-validated first. If any
        line fails, all failures are raised together and nothing is written.
        """
        shipping = shipping or ShippingInfo()
        cart = await self.carts.get_for_user(user.id)
        items = await self.carts.get_items(cart.id) if cart else []
        if not items:
            raise EmptyCartError("Cart is empty")

        products = await self.products.get_many([item.product_id for item in items], for_update=True)

        messages = []
        for item in items:
            try:
                validate_stock(products.get(item.product_id), item.quantity)
            except CommerceError as e:
                messages.append(str(e))
        if messages:
            raise CartValidationError(messages)

        order_items = []
        subtotal = Decimal("0")
        for item in items:
            product = products[item.product_id]
            unit_price = await self.resolve_unit_price(user, product)
            line_total = unit_price * item.quantity
            subtotal += line_total
            order_items.append(OrderItem(
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                quantity=item.quantity,
                unit_price=unit_price,
                line_total=line_total,
            ))

        order = Order(
            order_number=generate_order_number(),
            user_id=user.id,
            status=OrderStatus.PENDING_APPROVAL.value,
            subtotal=subtotal,
            tax_amount=Decimal("0"),
            shipping_amount=Decimal("0"),
            total_amount=subtotal,
            shipping_address=shipping.address,
            shipping_city=shipping.city,
            shipping_state=shipping.state,
            shipping_zip_code=shipping.zip_code,
            items=order_items,
        )
        self.session.add(order)
        await self.session.flush()

        await self.carts.clear(cart.id)
        await self.carts.recalculate(cart)

        logger.info(
            "Order created",
            order_number=order.order_number,
            user_id=user.id,
            lines=len(order_items),
            total=str(subtotal),
        )
        return order
