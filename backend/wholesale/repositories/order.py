"""
Cart and order repositories.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select

from wholesale.models.cart import Cart, CartItem
from wholesale.models.order import Order
from wholesale.repositories.base import BaseRepository


class CartRepository(BaseRepository[Cart]):
    """Repository for Cart and CartItem operations."""

    model = Cart

    async def get_for_user(self, user_id: str) -> Optional[Cart]:
        """Get the user's cart, if one exists."""
        return await self.get_by(user_id=user_id)

    async def get_items(self, cart_id: str) -> list[CartItem]:
        """Cart lines in insertion order."""
        stmt = (
            select(CartItem)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.created_at, CartItem.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_item(self, cart_id: str, item_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(CartItem.cart_id == cart_id, CartItem.id == item_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_item_for_product(self, cart_id: str, product_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == product_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_item(self, cart_id: str, product_id: str, quantity: int, unit_price: Decimal) -> CartItem:
        item = CartItem(
            cart_id=cart_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            line_total=unit_price * quantity,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def delete_item(self, item: CartItem) -> None:
        await self.session.delete(item)
        await self.session.flush()

    async def clear(self, cart_id: str) -> None:
        """Remove every line from a cart."""
        await self.session.execute(
            delete(CartItem)
            .where(CartItem.cart_id == cart_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()

    async def recalculate(self, cart: Cart) -> Cart:
        """Recompute item_count and subtotal from the current lines."""
        items = await self.get_items(cart.id)
        cart.item_count = sum(item.quantity for item in items)
        cart.subtotal = sum((item.line_total for item in items), Decimal("0"))
        await self.session.flush()
        return cart


class OrderRepository(BaseRepository[Order]):
    """Repository for Order model operations."""

    model = Order

    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        return await self.get_by(order_number=order_number)

    async def get_for_user(self, user_id: str, limit: int = 50) -> list[Order]:
        """A customer's orders, newest first."""
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_status(self, status: str, limit: int = 100) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.status == status)
            .order_by(Order.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
