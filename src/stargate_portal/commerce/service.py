"""Store back office: products, shipping, orders and sales reporting."""

import asyncio
import uuid
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..config.settings import CommerceSettings
from ..core.types import Order, OrderItem, OrderStatus, Product
from ..observability.logging_config import LoggerMixin

# Allowed order status transitions
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
}

# Orders counted as revenue
REVENUE_STATUSES = {OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED}


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


class CommerceService(LoggerMixin):
    """Product catalog and order management on top of the storage backend."""

    def __init__(self, storage, settings: Optional[CommerceSettings] = None):
        self.storage = storage
        self.settings = settings or CommerceSettings()
        # Held while stock is checked and reserved, or returned
        self._stock_lock = asyncio.Lock()

    # Products

    async def add_product(
        self,
        project_id: str,
        name: str,
        price: float,
        description: str = "",
        inventory: Optional[int] = None,
        category: Optional[str] = None,
        sku: Optional[str] = None,
        images: Optional[List[str]] = None,
    ) -> Product:
        """Add a product to a project's catalog.

        Raises:
            ValueError: If the price or inventory is negative.
        """
        if inventory is not None and inventory < 0:
            raise ValueError("Inventory cannot be negative")

        product = Product(
            id=str(uuid.uuid4()),
            project_id=project_id,
            name=name,
            description=description,
            price=price,
            currency=self.settings.currency,
            category=category,
            sku=sku,
            images=images or [],
            inventory=inventory,
        )
        await self.storage.save_product(product)
        self.logger.info("Product added", project_id=project_id, product_id=product.id, price=price)
        return product

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self.storage.get_product(product_id)

    async def list_products(self, project_id: str) -> List[Product]:
        return await self.storage.list_products(project_id)

    # Shipping

    def calculate_shipping(self, items: Iterable[Dict[str, Any]], country: Optional[str] = None) -> float:
        """Flat shipping estimate in currency units.

        A base rate, a surcharge outside the home country, and a per-pound
        rate for the weight above the free allowance.
        """
        settings = self.settings
        country = (country or settings.home_country).upper()

        weight = sum(int(item.get("quantity", 1)) * settings.weight_per_item_lbs for item in items)
        shipping = settings.base_shipping
        if country != settings.home_country.upper():
            shipping += settings.international_surcharge
        if weight > settings.free_weight_lbs:
            shipping += (weight - settings.free_weight_lbs) * settings.per_lb_rate
        return round(shipping, 2)

    # Orders

    async def create_order(
        self,
        project_id: str,
        items: List[Dict[str, Any]],
        customer_email: Optional[str] = None,
        shipping_country: Optional[str] = None,
        shipping_address: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Order:
        """Create a pending order priced from the stored products.

        Args:
            items: ``{"product_id": ..., "quantity": ...}`` entries.

        Raises:
            ValueError: For an empty order, unknown product, bad quantity or
                insufficient inventory. Nothing is reserved in that case.
        """
        if not items:
            raise ValueError("Order must contain at least one item")

        quantities: Dict[str, int] = defaultdict(int)
        for item in items:
            quantity = int(item.get("quantity", 1))
            if quantity <= 0:
                raise ValueError("Item quantity must be positive")
            quantities[item["product_id"]] += quantity

        async with self._stock_lock:
            products: Dict[str, Product] = {}
            for product_id, quantity in quantities.items():
                product = await self.storage.get_product(product_id)
                if product is None or product.project_id != project_id:
                    raise ValueError(f"Product {product_id} not found")
                if product.inventory is not None and product.inventory < quantity:
                    raise ValueError(
                        f"Insufficient inventory for {product.name}: {product.inventory} available, {quantity} requested"
                    )
                products[product_id] = product

            line_items = []
            for product_id, quantity in quantities.items():
                product = products[product_id]
                unit_amount = to_cents(product.price)
                line_items.append(
                    OrderItem(
                        product_id=product_id,
                        name=product.name,
                        quantity=quantity,
                        unit_amount=unit_amount,
                        total_amount=unit_amount * quantity,
                    )
                )

            country = (shipping_country or self.settings.home_country).upper()
            subtotal = sum(item.total_amount for item in line_items)
            shipping = to_cents(self.calculate_shipping(
                [{"quantity": quantity} for quantity in quantities.values()], country
            ))
            order = Order(
                id=str(uuid.uuid4()),
                project_id=project_id,
                user_id=user_id,
                customer_email=customer_email,
                items=line_items,
                currency=self.settings.currency,
                shipping_country=country,
                subtotal=subtotal,
                shipping=shipping,
                total=subtotal + shipping,
                shipping_address=shipping_address or {},
            )

            for product_id, quantity in quantities.items():
                product = products[product_id]
                if product.inventory is not None:
                    product.inventory -= quantity
                    await self.storage.save_product(product)

            await self.storage.save_order(order)

        self.logger.info("Order created", order_id=order.id, project_id=project_id, total_cents=order.total)
        return order

    async def get_order(self, order_id: str) -> Optional[Order]:
        return await self.storage.get_order(order_id)

    async def list_orders(self, project_id: str, status: Optional[str] = None) -> List[Order]:
        return await self.storage.list_orders(project_id=project_id, status=status)

    async def update_order_status(self, order_id: str, status) -> Optional[Order]:
        """Move an order along its lifecycle.

        Cancelling returns the items to inventory.

        Returns:
            The updated order, or None when it does not exist.

        Raises:
            ValueError: For a transition the lifecycle does not allow.
        """
        new_status = OrderStatus(status)
        order = await self.storage.get_order(order_id)
        if order is None:
            return None

        if new_status not in ORDER_TRANSITIONS.get(order.status, set()):
            raise ValueError(f"Cannot change order status from {order.status.value} to {new_status.value}")

        if new_status == OrderStatus.CANCELLED:
            await self._restock(order)

        previous = order.status
        order.status = new_status
        order.updated_at = datetime.now()
        await self.storage.save_order(order)
        self.logger.info("Order status changed", order_id=order_id, previous=previous.value, status=new_status.value)
        return order

    async def _restock(self, order: Order) -> None:
        async with self._stock_lock:
            for item in order.items:
                product = await self.storage.get_product(item.product_id)
                if product is None or product.inventory is None:
                    continue
                product.inventory += item.quantity
                await self.storage.save_product(product)

    # Reporting

    async def get_sales_summary(self, project_id: str, top: int = 5) -> Dict[str, Any]:
        """Revenue, order counts by status, average order value and top products."""
        orders = await self.storage.list_orders(project_id=project_id, limit=10000)

        by_status = Counter(order.status.value for order in orders)
        paid_orders = [order for order in orders if order.status in REVENUE_STATUSES]
        revenue = sum(order.total for order in paid_orders)

        product_totals: Dict[str, Dict[str, Any]] = {}
        for order in paid_orders:
            for item in order.items:
                entry = product_totals.setdefault(
                    item.product_id, {"product_id": item.product_id, "name": item.name, "quantity": 0, "revenue": 0.0}
                )
                entry["quantity"] += item.quantity
                entry["revenue"] += item.total_amount / 100

        top_products = sorted(product_totals.values(), key=lambda entry: entry["revenue"], reverse=True)[:top]
        return {
            "currency": self.settings.currency,
            "total_revenue": revenue / 100,
            "order_count": len(orders),
            "paid_order_count": len(paid_orders),
            "orders_by_status": {status.value: by_status.get(status.value, 0) for status in OrderStatus},
            "average_order_value": round(revenue / len(paid_orders) / 100, 2) if paid_orders else 0.0,
            "top_products": top_products,
        }
