"""Cancellation negotiation — buyer requests, seller or admin resolves.

A request leaves the order status untouched. Approval refunds the payment
(when one was collected), cancels the order, puts stock back and notifies
both parties. Rejection only records the decision and tells the buyer.
"""

from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.checkout.session import CheckoutSession
from marketplace.domain import marketplace
from marketplace.exceptions import GatewayError, InvalidStateError
from marketplace.notification.kinds import NotificationKind, RecipientRole
from marketplace.order.order import Order, OrderStatus, PaymentStatus
from marketplace.order.repository import get_order

logger = structlog.get_logger(__name__)

MAX_NOTE_LENGTH = 500


class CancellationDecision(Enum):
    APPROVE = "approve"
    REJECT = "reject"


def _clean(value, field_name, required=False):
    text = (value or "").strip()
    if required and not text:
        raise ValidationError({field_name: [f"{field_name.capitalize()} is required"]})
    if len(text) > MAX_NOTE_LENGTH:
        raise ValidationError({field_name: [f"{field_name.capitalize()} must be at most {MAX_NOTE_LENGTH} characters"]})
    return text or None


def parse_decision(value) -> CancellationDecision:
    if isinstance(value, CancellationDecision):
        return value
    try:
        return CancellationDecision(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"decision": [f"Unknown decision: {value}"]}) from None


@marketplace.command(part_of="Order")
class RequestCancellation:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=MAX_NOTE_LENGTH)


@marketplace.command(part_of="Order")
class ApproveCancellation:
    order_id = Identifier(required=True)
    notes = String(max_length=MAX_NOTE_LENGTH)
    refund_id = String(max_length=255)


@marketplace.command(part_of="Order")
class RejectCancellation:
    order_id = Identifier(required=True)
    notes = String(max_length=MAX_NOTE_LENGTH)


@marketplace.command_handler(part_of=Order)
class CancellationHandler:
    @handle(RequestCancellation)
    def request_cancellation(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.request_cancellation(command.reason)
        repo.add(order)

    @handle(ApproveCancellation)
    def approve_cancellation(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.approve_cancellation(command.notes)
        if command.refund_id:
            order.record_refund(command.refund_id, notes=command.notes)
        repo.add(order)
        return previous.value

    @handle(RejectCancellation)
    def reject_cancellation(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject_cancellation(command.notes)
        repo.add(order)


class CancellationNegotiator:
    def __init__(self, gateway, state_machine, dispatcher):
        self.gateway = gateway
        self.state_machine = state_machine
        self.dispatcher = dispatcher

    def request_cancellation(self, order_id, reason) -> Order:
        """Record the buyer's request and tell the seller.

        Raises:
            ValidationError: blank or overlong reason.
            InvalidStateError: order already shipped, finished, or has a pending request.
        """
        reason = _clean(reason, "reason", required=True)
        try:
            current_domain.process(RequestCancellation(order_id=order_id, reason=reason), asynchronous=False)
        except InvalidStateError as exc:
            logger.warning("Cancellation request rejected", order_id=str(order_id), error=exc.messages)
            raise

        order = get_order(order_id)
        logger.info("Cancellation requested", order_id=str(order_id), order_group_id=order.order_group_id)
        self.dispatcher.dispatch(NotificationKind.CANCELLATION_REQUESTED, RecipientRole.SELLER, order)
        return order

    def resolve_cancellation(self, order_id, decision, notes=None) -> Order:
        """Approve or reject the pending request on an order.

        Raises:
            ValidationError: unknown decision or overlong notes.
            InvalidStateError: no pending request, or the order moved on.
            GatewayError: the refund failed; the order is left as it was.
        """
        decision = parse_decision(decision)
        notes = _clean(notes, "notes")

        order = get_order(order_id)
        try:
            order.assert_cancellation_pending()
        except InvalidStateError as exc:
            logger.warning(
                "Cancellation resolution rejected",
                order_id=str(order_id),
                decision=decision.value,
                error=exc.messages,
            )
            raise

        if decision == CancellationDecision.REJECT:
            current_domain.process(RejectCancellation(order_id=order_id, notes=notes), asynchronous=False)
            order = get_order(order_id)
            logger.info("Cancellation rejected", order_id=str(order_id))
            self.dispatcher.dispatch(NotificationKind.CANCELLATION_REJECTED, RecipientRole.BUYER, order)
            return order

        return self._approve(order, notes)

    def _approve(self, order: Order, notes) -> Order:
        order_id = str(order.id)
        paid = order.payment_status == PaymentStatus.SUCCEEDED.value

        refund_id = None
        if paid:
            refund = self.gateway.refund(
                order_id=order_id,
                amount=order.total,
                currency=order.currency,
                gateway_session_id=self._gateway_session_id(order),
            )
            if not refund.success:
                logger.error("Refund failed, cancellation not approved", order_id=order_id, reason=refund.failure_reason)
                raise GatewayError(refund.failure_reason or "Refund failed", order_ids=[order_id])
            refund_id = refund.gateway_refund_id

        previous = current_domain.process(
            ApproveCancellation(order_id=order_id, notes=notes, refund_id=refund_id),
            asynchronous=False,
        )
        order = get_order(order_id)
        logger.info("Cancellation approved", order_id=order_id, refund_id=refund_id, status=order.status)

        if paid:
            self.state_machine.restock(order)

        self.state_machine.notify_transition(order, OrderStatus(previous), OrderStatus.CANCELLED)
        if refund_id:
            self.state_machine.notify_transition(order, OrderStatus.CANCELLED, OrderStatus.REFUNDED)
        return order

    @staticmethod
    def _gateway_session_id(order: Order) -> str | None:
        if not order.checkout_id:
            return None
        return current_domain.repository_for(CheckoutSession).get(order.checkout_id).gateway_session_id
