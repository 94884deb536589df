"""Order fulfillment — status transitions and the notifications they trigger.

``TransitionOrder`` moves one order along an edge of the fulfillment graph
inside a unit of work. ``FulfillmentStateMachine`` is the service callers
use: it processes the command and, once the change is committed, hands the
notifications for that edge to the dispatcher.

Notifications per edge:
    pending → processing    seller new-order, buyer confirmation
    processing → shipped    buyer shipping update (with tracking number)
    shipped → delivered     buyer delivered, buyer review invitation
    * → cancelled           seller and buyer cancellation notice
    cancelled → refunded    buyer refund notice (with refund amount)
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.exceptions import InvalidTransitionError
from marketplace.notification.kinds import NotificationKind, RecipientRole
from marketplace.order.order import Order, OrderStatus, parse_status
from marketplace.order.repository import get_order

logger = structlog.get_logger(__name__)

_NOTIFICATION_PLAN = {
    OrderStatus.PROCESSING: [
        (NotificationKind.SELLER_NEW_ORDER, RecipientRole.SELLER),
        (NotificationKind.ORDER_CONFIRMATION, RecipientRole.BUYER),
    ],
    OrderStatus.SHIPPED: [
        (NotificationKind.SHIPPING_UPDATE, RecipientRole.BUYER),
    ],
    OrderStatus.DELIVERED: [
        (NotificationKind.ORDER_DELIVERED, RecipientRole.BUYER),
        (NotificationKind.REVIEW_INVITATION, RecipientRole.BUYER),
    ],
    OrderStatus.CANCELLED: [
        (NotificationKind.ORDER_CANCELLED, RecipientRole.SELLER),
        (NotificationKind.ORDER_CANCELLED, RecipientRole.BUYER),
    ],
    OrderStatus.REFUNDED: [
        (NotificationKind.REFUND_ISSUED, RecipientRole.BUYER),
    ],
}


def order_stock_items(order) -> list[dict]:
    """Quantities per product on an order, in line order."""
    totals: dict[str, int] = {}
    for item in order.items:
        key = str(item.product_id)
        totals[key] = totals.get(key, 0) + item.quantity
    return [{"product_id": product_id, "quantity": quantity} for product_id, quantity in totals.items()]


@marketplace.command(part_of="Order")
class TransitionOrder:
    order_id = Identifier(required=True)
    target_status = String(required=True, max_length=20)
    notes = Text()
    tracking_number = String(max_length=255)


@marketplace.command(part_of="Order")
class RecordRefund:
    order_id = Identifier(required=True)
    refund_id = String(required=True, max_length=255)
    notes = Text()


@marketplace.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(TransitionOrder)
    def transition_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.transition_to(
            command.target_status,
            notes=command.notes,
            tracking_number=command.tracking_number,
        )
        repo.add(order)
        return previous.value

    @handle(RecordRefund)
    def record_refund(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.record_refund(command.refund_id, notes=command.notes)
        repo.add(order)
        return previous.value


class FulfillmentStateMachine:
    def __init__(self, dispatcher, stock):
        self.dispatcher = dispatcher
        self.stock = stock

    def transition(self, order_id, target_status, notes=None, tracking_number=None) -> bool:
        """Apply one status change and notify the parties involved.

        Raises:
            InvalidTransitionError: not an edge of the graph; nothing is written.
            NotFoundError: no order with ``order_id``.
        """
        target = parse_status(target_status)
        try:
            previous = current_domain.process(
                TransitionOrder(
                    order_id=order_id,
                    target_status=target.value,
                    notes=notes,
                    tracking_number=tracking_number,
                ),
                asynchronous=False,
            )
        except InvalidTransitionError as exc:
            logger.warning(
                "Order transition rejected",
                order_id=str(order_id),
                target_status=target.value,
                error=exc.messages,
            )
            raise

        order = get_order(order_id)
        logger.info(
            "Order transitioned",
            order_id=str(order_id),
            order_group_id=order.order_group_id,
            previous_status=previous,
            new_status=target.value,
        )

        # Stock is taken when payment is confirmed, so a paid order going
        # back to cancelled returns it.
        if target == OrderStatus.CANCELLED and order.is_paid:
            self.restock(order)

        self.notify_transition(order, OrderStatus(previous), target)
        return True

    def restock(self, order) -> bool:
        try:
            self.stock.restock(order_stock_items(order))
        except Exception as exc:
            logger.error("Restock failed", order_id=str(order.id), error=str(exc))
            return False
        return True

    def notify_transition(self, order, previous: OrderStatus, target: OrderStatus, extra: dict | None = None):
        """Dispatch the notifications for ``previous → target``. Never raises."""
        extra = dict(extra or {})
        extra.setdefault("previous_status", previous.value)
        if target == OrderStatus.REFUNDED:
            extra.setdefault("refund_amount", f"{order.total:.2f}")

        for kind, role in _NOTIFICATION_PLAN.get(target, []):
            try:
                self.dispatcher.dispatch(kind, role, order, extra)
            except Exception as exc:
                logger.error(
                    "Notification dispatch failed",
                    order_id=str(order.id),
                    kind=kind.value,
                    recipient_role=role.value,
                    error=str(exc),
                )
