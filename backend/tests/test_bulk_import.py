"""
Tests for CSV bulk import into the cart.
"""
from decimal import Decimal

import pytest

from wholesale.schemas.commerce import BulkImportRow
from wholesale.services.commerce import CommerceError, CommerceStore


@pytest.fixture
async def user(make_user):
    return await make_user()


@pytest.fixture
def store(db_session) -> CommerceStore:
    return CommerceStore(db_session)


class TestBulkImport:
    async def test_rows_required(self, user, store):
        with pytest.raises(CommerceError, match="Items array is required"):
            await store.bulk_import(user, [])

    async def test_row_limit(self, user, store):
        rows = [BulkImportRow(sku=f"SKU-{i}", quantity=1) for i in range(101)]

        with pytest.raises(CommerceError, match="Maximum 100 items per import"):
            await store.bulk_import(user, rows)

    async def test_valid_rows_added_to_cart(self, make_product, user, store):
        await make_product(sku="CAP-1", name="Black Cap", base_price=Decimal("3.00"), stock_quantity=20)

        result = await store.bulk_import(user, [BulkImportRow(sku=" CAP-1 ", quantity="4")])

        assert result.failed == []
        assert len(result.success) == 1
        assert result.success[0].product_name == "Black Cap"
        assert result.success[0].quantity == 4
        assert result.message == "Imported 1 items, 0 failed"
        cart, items = await store.get_cart_with_items(user.id)
        assert cart.item_count == 4
        assert cart.subtotal == Decimal("12.00")

    async def test_each_bad_row_gets_a_reason(self, make_product, user, store):
        await make_product(sku="OFF-1", is_online=False)
        await make_product(sku="OUT-1", stock_quantity=0)
        await make_product(sku="LOW-1", stock_quantity=2)
        await make_product(sku="OK-1", stock_quantity=10)

        result = await store.bulk_import(user, [
            BulkImportRow(sku=None, quantity=1),
            BulkImportRow(sku="OK-1", quantity="abc"),
            BulkImportRow(sku="OK-1", quantity=0),
            BulkImportRow(sku="NOPE", quantity=1),
            BulkImportRow(sku="OFF-1", quantity=1),
            BulkImportRow(sku="OUT-1", quantity=1),
            BulkImportRow(sku="LOW-1", quantity=5),
            BulkImportRow(sku="OK-1", quantity=2),
        ])

        assert [(f.sku, f.reason) for f in result.failed] == [
            ("unknown", "Invalid SKU"),
            ("OK-1", "Invalid quantity (must be positive number)"),
            ("OK-1", "Invalid quantity (must be positive number)"),
            ("NOPE", "Product not found"),
            ("OFF-1", "Product not available"),
            ("OUT-1", "Out of stock"),
            ("LOW-1", "Only 2 in stock"),
        ]
        assert [s.sku for s in result.success] == ["OK-1"]

    async def test_cart_quantity_counts_against_stock(self, make_product, user, store):
        product = await make_product(sku="W-1", name="Widget", stock_quantity=5)
        await store.add_to_cart(user, product.id, 4)

        result = await store.bulk_import(user, [BulkImportRow(sku="W-1", quantity=3)])

        assert result.success == []
        assert result.failed[0].reason == "Only 5 units of Widget available in stock"
