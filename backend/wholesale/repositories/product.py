"""
Product repository for catalog reads and sync writes.
"""
from collections.abc import Iterable, Sequence
from typing import Optional

from sqlalchemy import case, func, or_, select, update

from wholesale.models.product import Product, ProductGroup
from wholesale.repositories.base import BaseRepository
from wholesale.schemas.commerce import ProductFilters


class ProductRepository(BaseRepository[Product]):
    """Repository for Product model operations."""

    model = Product

    async def get_by_zoho_item_id(self, zoho_item_id: str) -> Optional[Product]:
        """Get a product by its Zoho item id."""
        stmt = select(Product).where(Product.zoho_item_id == zoho_item_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_sku(self, sku: str) -> Optional[Product]:
        """Get a product by SKU."""
        stmt = select(Product).where(Product.sku == sku)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, ids: Sequence[str], *, for_update: bool = False) -> dict[str, Product]:
        """Load several products keyed by id, optionally locking the rows."""
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(list(ids)))
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return {product.id: product for product in result.scalars().all()}

    async def get_ids_by_zoho_item_ids(self, zoho_item_ids: Iterable[str]) -> dict[str, str]:
        """Map Zoho item ids to local product ids."""
        ids = list(zoho_item_ids)
        if not ids:
            return {}
        stmt = select(Product.zoho_item_id, Product.id).where(Product.zoho_item_id.in_(ids))
        result = await self.session.execute(stmt)
        return {zoho_id: product_id for zoho_id, product_id in result.all()}

    async def search(self, filters: ProductFilters) -> list[Product]:
        """
        Catalog query.

        Negative and zero stock are filtered here rather than prevented at
        write time, since Zoho may report oversold items.
        """
        stmt = select(Product).where(Product.is_active.is_(True))

        if filters.online_only:
            stmt = stmt.where(Product.is_online.is_(True))
        if filters.in_stock_only:
            stmt = stmt.where(Product.stock_quantity > 0)
        if filters.category:
            stmt = stmt.where(Product.category == filters.category)
        if filters.brand:
            stmt = stmt.where(Product.brand == filters.brand)
        if filters.group_id:
            stmt = stmt.where(Product.zoho_group_id == filters.group_id)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Product.name).like(pattern),
                    func.lower(Product.sku).like(pattern),
                    func.lower(Product.brand).like(pattern),
                )
            )

        stmt = stmt.order_by(Product.name).offset(filters.offset).limit(filters.limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delist_missing(self, visible_zoho_item_ids: set[str]) -> int:
        """
        Take offline every synced product not in the given visible set.

        Only online products carrying a Zoho id are touched; the caller must
        pass the complete visible set from a full sync.
        """
        stmt = (
            update(Product)
            .where(
                Product.zoho_item_id.is_not(None),
                Product.is_online.is_(True),
            )
            .values(is_online=False, is_active=False)
            .execution_options(synchronize_session=False)
        )
        if visible_zoho_item_ids:
            stmt = stmt.where(Product.zoho_item_id.not_in(list(visible_zoho_item_ids)))
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def adjust_stock(self, zoho_item_id: str, delta: int, *, floor_at_zero: bool) -> bool:
        """
        Atomically add delta to a product's stock.

        With floor_at_zero the result is clamped at 0. Returns False when no
        product carries the Zoho id.
        """
        new_value = Product.stock_quantity + delta
        if floor_at_zero:
            new_value = case((new_value < 0, 0), else_=new_value)
        stmt = (
            update(Product)
            .where(Product.zoho_item_id == zoho_item_id)
            .values(stock_quantity=new_value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def group_online_flags(self) -> dict[str, bool]:
        """Whether each Zoho group has at least one online product."""
        stmt = (
            select(Product.zoho_group_id, func.max(case((Product.is_online.is_(True), 1), else_=0)))
            .where(Product.zoho_group_id.is_not(None))
            .group_by(Product.zoho_group_id)
        )
        result = await self.session.execute(stmt)
        return {group_id: bool(flag) for group_id, flag in result.all()}


class ProductGroupRepository(BaseRepository[ProductGroup]):
    """Repository for ProductGroup model operations."""

    model = ProductGroup

    async def upsert(self, zoho_group_id: str, name: str, is_online: bool) -> tuple[ProductGroup, bool]:
        """Create or update a group. Returns (group, created)."""
        group = await self.get_by(zoho_group_id=zoho_group_id)
        if group:
            group.zoho_group_name = name
            group.is_online = is_online
            await self.session.flush()
            return group, False
        group = await self.create({
            "zoho_group_id": zoho_group_id,
            "zoho_group_name": name,
            "is_online": is_online,
        })
        return group, True
