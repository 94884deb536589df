"""Repository and read helpers for the Order aggregate."""

from collections import Counter

from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.exceptions import NotFoundError
from marketplace.order.order import Order, OrderStatus


@marketplace.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id.

    Sibling orders of a checkout come back in the order their seller first
    appeared in the cart.
    """

    def find_by_group(self, order_group_id: str) -> list[Order]:
        orders = self._dao.query.filter(order_group_id=order_group_id).limit(None).all().items
        return sorted(orders, key=lambda order: order.group_position or 0)

    def find_by_number(self, order_number: str) -> list[Order]:
        orders = self._dao.query.filter(order_number=order_number).limit(None).all().items
        return sorted(orders, key=lambda order: order.group_position or 0)

    def find_by_seller(self, seller_id: str) -> list[Order]:
        return self._dao.query.filter(seller_id=seller_id).limit(None).all().items


def get_order(order_id: str) -> Order:
    """Raises NotFoundError when no order has ``order_id``."""
    return current_domain.repository_for(Order).get(order_id)


def orders_in_group(order_group_id: str) -> list[Order]:
    return current_domain.repository_for(Order).find_by_group(order_group_id)


def orders_by_number(order_number: str) -> list[Order]:
    orders = current_domain.repository_for(Order).find_by_number(order_number)
    if not orders:
        raise NotFoundError(f"No orders with number `{order_number}`")
    return orders


def status_counts(seller_id: str) -> dict[str, int]:
    """Count a seller's orders per status, including statuses with zero orders."""
    counts = Counter(order.status for order in current_domain.repository_for(Order).find_by_seller(seller_id))
    result = {status.value: counts.get(status.value, 0) for status in OrderStatus}
    result["total"] = sum(counts.values())
    return result
