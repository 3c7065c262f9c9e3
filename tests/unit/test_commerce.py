"""Unit tests for the store back office."""

import asyncio

import pytest
from pydantic import ValidationError

from stargate_portal.commerce import CommerceService, to_cents
from stargate_portal.config.settings import CommerceSettings
from stargate_portal.core.types import OrderStatus


@pytest.fixture
def commerce(test_storage_backend):
    return CommerceService(test_storage_backend)


class TestShipping:
    """Test shipping estimates."""

    @pytest.mark.parametrize("quantity, country, expected", [
        (1, "US", 10.0),
        (5, "us", 10.0),
        (8, "US", 16.0),
        (1, "CA", 25.0),
        (7, "DE", 29.0),
    ])
    def test_calculate_shipping(self, quantity, country, expected):
        """Test the base rate, surcharge and weight rate."""
        service = CommerceService(storage=None)
        assert service.calculate_shipping([{"quantity": quantity}], country) == expected

    def test_custom_settings(self):
        """Test shipping follows the commerce settings."""
        service = CommerceService(storage=None, settings=CommerceSettings(base_shipping=4.5, home_country="GB"))
        assert service.calculate_shipping([{"quantity": 1}]) == 4.5

    def test_to_cents(self):
        """Test conversion to integer cents."""
        assert to_cents(12.5) == 1250
        assert to_cents(19.99) == 1999


class TestProducts:
    """Test the product catalog."""

    @pytest.mark.asyncio
    async def test_add_product(self, commerce):
        """Test products are stored in the project's catalog."""
        product = await commerce.add_product("p1", "Gift Card", 25.0, inventory=10, sku="GC-25")

        assert product.currency == "usd"
        assert (await commerce.get_product(product.id)).sku == "GC-25"
        assert [p.id for p in await commerce.list_products("p1")] == [product.id]

    @pytest.mark.asyncio
    async def test_negative_values(self, commerce):
        """Test negative prices and inventory are rejected."""
        with pytest.raises(ValueError, match="Inventory"):
            await commerce.add_product("p1", "Mug", 5.0, inventory=-1)
        with pytest.raises(ValidationError):
            await commerce.add_product("p1", "Mug", -5.0)


class TestOrders:
    """Test the order lifecycle."""

    @pytest.mark.asyncio
    async def test_create_order(self, commerce):
        """Test order totals are computed in cents and inventory is reserved."""
        product = await commerce.add_product("p1", "Olive Oil", 12.5, inventory=5)

        order = await commerce.create_order(
            "p1",
            [{"product_id": product.id, "quantity": 1}, {"product_id": product.id, "quantity": 1}],
            customer_email="guest@example.com",
        )

        assert order.status == OrderStatus.PENDING
        assert len(order.items) == 1
        assert order.items[0].quantity == 2
        assert order.items[0].unit_amount == 1250
        assert order.subtotal == 2500
        assert order.shipping == 1000
        assert order.total == 3500
        assert (await commerce.get_product(product.id)).inventory == 3

    @pytest.mark.asyncio
    async def test_order_validation(self, commerce):
        """Test bad orders raise and reserve nothing."""
        product = await commerce.add_product("p1", "Olive Oil", 12.5, inventory=1)

        with pytest.raises(ValueError, match="at least one item"):
            await commerce.create_order("p1", [])
        with pytest.raises(ValueError, match="quantity must be positive"):
            await commerce.create_order("p1", [{"product_id": product.id, "quantity": 0}])
        with pytest.raises(ValueError, match="not found"):
            await commerce.create_order("p1", [{"product_id": "missing"}])
        with pytest.raises(ValueError, match="not found"):
            await commerce.create_order("p2", [{"product_id": product.id}])
        with pytest.raises(ValueError, match="Insufficient inventory"):
            await commerce.create_order("p1", [{"product_id": product.id, "quantity": 2}])

        assert (await commerce.get_product(product.id)).inventory == 1
        assert await commerce.list_orders("p1") == []

    @pytest.mark.asyncio
    async def test_untracked_inventory(self, commerce):
        """Test products without inventory accept any quantity."""
        product = await commerce.add_product("p1", "Catering", 100.0)
        order = await commerce.create_order("p1", [{"product_id": product.id, "quantity": 50}])
        assert order.subtotal == 500000
        assert (await commerce.get_product(product.id)).inventory is None

    @pytest.mark.asyncio
    async def test_concurrent_orders_for_last_unit(self, commerce):
        """Test two simultaneous orders cannot both take the last unit."""
        product = await commerce.add_product("p1", "Truffle Salt", 18.0, inventory=1)
        items = [{"product_id": product.id, "quantity": 1}]

        results = await asyncio.gather(
            commerce.create_order("p1", items),
            commerce.create_order("p1", items),
            return_exceptions=True,
        )

        errors = [result for result in results if isinstance(result, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ValueError)
        assert "Insufficient inventory" in str(errors[0])
        assert len(await commerce.list_orders("p1")) == 1
        assert (await commerce.get_product(product.id)).inventory == 0

    @pytest.mark.asyncio
    async def test_status_transitions(self, commerce):
        """Test the allowed lifecycle and a rejected jump."""
        product = await commerce.add_product("p1", "Olive Oil", 12.5)
        order = await commerce.create_order("p1", [{"product_id": product.id}])

        with pytest.raises(ValueError, match="from pending to shipped"):
            await commerce.update_order_status(order.id, "shipped")

        for status in ("paid", "shipped", "delivered"):
            order = await commerce.update_order_status(order.id, status)
        assert order.status == OrderStatus.DELIVERED

        with pytest.raises(ValueError):
            await commerce.update_order_status(order.id, OrderStatus.CANCELLED)
        assert await commerce.update_order_status("missing", "paid") is None

    @pytest.mark.asyncio
    async def test_cancel_restocks(self, commerce):
        """Test cancelling returns items to inventory."""
        product = await commerce.add_product("p1", "Olive Oil", 12.5, inventory=4)
        order = await commerce.create_order("p1", [{"product_id": product.id, "quantity": 3}])

        await commerce.update_order_status(order.id, "cancelled")

        assert (await commerce.get_product(product.id)).inventory == 4
        assert [o.id for o in await commerce.list_orders("p1", status="cancelled")] == [order.id]

    @pytest.mark.asyncio
    async def test_sales_summary(self, commerce):
        """Test revenue only counts paid orders."""
        oil = await commerce.add_product("p1", "Olive Oil", 12.5)
        card = await commerce.add_product("p1", "Gift Card", 50.0)

        paid = await commerce.create_order("p1", [{"product_id": card.id}])
        await commerce.update_order_status(paid.id, "paid")
        await commerce.create_order("p1", [{"product_id": oil.id, "quantity": 2}])

        summary = await commerce.get_sales_summary("p1")

        assert summary["order_count"] == 2
        assert summary["paid_order_count"] == 1
        assert summary["total_revenue"] == 60.0
        assert summary["average_order_value"] == 60.0
        assert summary["orders_by_status"]["pending"] == 1
        assert summary["orders_by_status"]["paid"] == 1
        assert summary["top_products"] == [
            {"product_id": card.id, "name": "Gift Card", "quantity": 1, "revenue": 50.0}
        ]

    @pytest.mark.asyncio
    async def test_empty_summary(self, commerce):
        """Test a store without orders."""
        summary = await commerce.get_sales_summary("p1")
        assert summary["total_revenue"] == 0.0
        assert summary["average_order_value"] == 0.0
        assert summary["top_products"] == []
