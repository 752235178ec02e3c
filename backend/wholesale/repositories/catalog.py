"""
Category and price list repositories.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select

from wholesale.core.database import utc_now
from wholesale.models.category import Category
from wholesale.models.pricing import CustomerPrice, PriceList
from wholesale.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category model operations."""

    model = Category

    async def upsert(
        self,
        *,
        slug: str,
        name: str,
        zoho_category_id: Optional[str] = None,
    ) -> tuple[Category, bool]:
        """
        Create or update a category, matching on Zoho id first, then slug.
        Returns (category, created).
        """
        category = None
        if zoho_category_id:
            category = await self.get_by(zoho_category_id=zoho_category_id)
        if category is None:
            category = await self.get_by(slug=slug)

        if category:
            category.name = name
            if zoho_category_id:
                category.zoho_category_id = zoho_category_id
            await self.session.flush()
            return category, False

        category = await self.create({
            "slug": slug,
            "name": name,
            "zoho_category_id": zoho_category_id,
        })
        return category, True


class PriceListRepository(BaseRepository[PriceList]):
    """Repository for PriceList and CustomerPrice operations."""

    model = PriceList

    async def upsert(
        self,
        *,
        zoho_price_list_id: str,
        name: str,
        description: Optional[str],
        price_list_type: Optional[str],
        currency_code: str,
        is_active: bool,
    ) -> tuple[PriceList, bool]:
        """Create or update a price list by Zoho id. Returns (price_list, created)."""
        values = {
            "name": name,
            "description": description,
            "price_list_type": price_list_type,
            "currency_code": currency_code,
            "is_active": is_active,
            "zoho_last_synced_at": utc_now(),
        }
        price_list = await self.get_by(zoho_price_list_id=zoho_price_list_id)
        if price_list:
            await self.update(price_list, values)
            return price_list, False
        price_list = await self.create({"zoho_price_list_id": zoho_price_list_id, **values})
        return price_list, True

    async def upsert_price(
        self,
        *,
        price_list_id: str,
        product_id: str,
        zoho_item_id: Optional[str],
        custom_price: Decimal,
    ) -> bool:
        """Set a product's price within a list. Returns True when created."""
        stmt = select(CustomerPrice).where(
            CustomerPrice.price_list_id == price_list_id,
            CustomerPrice.product_id == product_id,
        )
        result = await self.session.execute(stmt)
        price = result.scalar_one_or_none()
        if price:
            price.custom_price = custom_price
            price.zoho_item_id = zoho_item_id
            await self.session.flush()
            return False
        self.session.add(CustomerPrice(
            price_list_id=price_list_id,
            product_id=product_id,
            zoho_item_id=zoho_item_id,
            custom_price=custom_price,
        ))
        await self.session.flush()
        return True

    async def delete_prices_except(self, price_list_id: str, keep_product_ids: set[str]) -> int:
        """Drop prices of a list for products no longer in it."""
        stmt = delete(CustomerPrice).where(CustomerPrice.price_list_id == price_list_id)
        if keep_product_ids:
            stmt = stmt.where(CustomerPrice.product_id.not_in(list(keep_product_ids)))
        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0

    async def get_customer_price(self, price_list_id: str, product_id: str) -> Optional[Decimal]:
        """Price for a product within an active price list, if one is set."""
        stmt = (
            select(CustomerPrice.custom_price)
            .join(PriceList, PriceList.id == CustomerPrice.price_list_id)
            .where(
                CustomerPrice.price_list_id == price_list_id,
                CustomerPrice.product_id == product_id,
                PriceList.is_active.is_(True),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
