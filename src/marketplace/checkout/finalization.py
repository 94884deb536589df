"""Payment callback handling — settle a checkout once the gateway reports.

The gateway reports the outcome of a hosted checkout session once (in
practice, at least once). ``PaymentCallbackProcessor.finalize_from_callback``
applies it to every order of the checkout:

    paid     → orders pending → processing, fee records collected,
               stock committed, seller + buyer notified
    failed   → orders pending → cancelled, fee records failed,
               buyer told the payment failed

An order cancelled before a payment was captured is refunded
(cancelled → refunded) and its fee record failed.

A CheckoutSession is finalized only once; replays are no-ops.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from marketplace.checkout.session import CheckoutSession
from marketplace.domain import marketplace
from marketplace.exceptions import InvalidStateError, NotFoundError
from marketplace.fee.platform_fee import FeeStatus, PlatformFeeRecord
from marketplace.notification.kinds import NotificationKind, RecipientRole
from marketplace.order.fulfillment import RecordRefund, order_stock_items
from marketplace.order.order import Order, OrderStatus
from marketplace.order.repository import get_order

logger = structlog.get_logger(__name__)

PAID_STATUSES = {"paid", "succeeded", "complete", "no_payment_required"}
FAILED_STATUSES = {"failed", "expired", "canceled", "unpaid"}

# Stripe checkout events → payment status reported to finalize_from_callback
_EVENT_STATUSES = {
    "checkout.session.async_payment_succeeded": "paid",
    "checkout.session.async_payment_failed": "failed",
    "checkout.session.expired": "expired",
}


def callback_from_event(event: dict) -> tuple[str, str] | None:
    """Extract ``(session_id, payment_status)`` from a gateway webhook event.

    Returns None for events that do not settle a checkout, including a
    completed session whose payment is still processing.
    """
    event_type = event.get("type")
    session = (event.get("data") or {}).get("object") or {}
    session_id = session.get("id")
    if not session_id:
        return None

    if event_type == "checkout.session.completed":
        payment_status = session.get("payment_status")
        if payment_status in PAID_STATUSES:
            return session_id, payment_status
        return None
    if event_type in _EVENT_STATUSES:
        return session_id, _EVENT_STATUSES[event_type]
    return None


def payment_succeeded(payment_status: str) -> bool:
    status = (payment_status or "").strip().lower()
    if status in PAID_STATUSES:
        return True
    if status in FAILED_STATUSES:
        return False
    raise ValidationError({"payment_status": [f"Unknown payment status: {payment_status}"]})


@marketplace.command(part_of="CheckoutSession")
class FinalizeCheckoutPayment:
    checkout_id = Identifier(required=True)
    paid = Boolean(required=True)
    payment_status = String(required=True, max_length=50)


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutFinalizationHandler:
    @handle(FinalizeCheckoutPayment)
    def finalize_checkout_payment(self, command):
        session_repo = current_domain.repository_for(CheckoutSession)
        order_repo = current_domain.repository_for(Order)
        fee_repo = current_domain.repository_for(PlatformFeeRecord)

        session = session_repo.get(command.checkout_id)
        session.finalize(command.paid, command.payment_status)
        session_repo.add(session)

        settled, refund_due = [], []
        for order_id in session.order_id_list:
            order = order_repo.get(order_id)
            if order.status == OrderStatus.PENDING.value:
                if command.paid:
                    order.confirm_payment()
                else:
                    order.fail_payment()
                settled.append(order_id)
            elif command.paid and order.status == OrderStatus.CANCELLED.value and not order.is_paid:
                # Captured after the order was cancelled; the buyer is owed a refund
                order.record_late_payment()
                refund_due.append(order_id)
            else:
                logger.warning(
                    "Order no longer pending, payment outcome not applied",
                    order_id=order_id,
                    status=order.status,
                )
                continue
            order_repo.add(order)

            for fee in fee_repo.find_by_order(order_id):
                if fee.status != FeeStatus.PENDING.value:
                    continue
                if command.paid and order_id in settled:
                    fee.collect()
                else:
                    fee.fail()
                fee_repo.add(fee)

        return {"settled": settled, "refund_due": refund_due}


class PaymentCallbackProcessor:
    def __init__(self, stock, state_machine, dispatcher, gateway):
        self.stock = stock
        self.state_machine = state_machine
        self.dispatcher = dispatcher
        self.gateway = gateway

    def finalize_from_callback(self, session_id: str, payment_status: str) -> bool:
        """Apply a gateway payment outcome to the checkout's orders.

        A payment captured for an order that was cancelled in the meantime
        is refunded; if that refund fails the order is left ``cancelled``
        with ``payment_status=succeeded`` for reconciliation.

        Returns:
            True if the checkout was settled by this call, False if it had
            already been settled.

        Raises:
            NotFoundError: no checkout has this gateway session id.
            ValidationError: unrecognized payment status.
        """
        paid = payment_succeeded(payment_status)
        session = current_domain.repository_for(CheckoutSession).find_by_gateway_session(session_id)
        if session is None:
            raise NotFoundError(f"No checkout for gateway session `{session_id}`")

        if session.is_finalized:
            logger.info("Duplicate payment callback ignored", checkout_id=str(session.id), status=session.status)
            return False

        try:
            outcome = current_domain.process(
                FinalizeCheckoutPayment(checkout_id=str(session.id), paid=paid, payment_status=payment_status),
                asynchronous=False,
            )
        except InvalidStateError:
            logger.info("Concurrent payment callback ignored", checkout_id=str(session.id))
            return False

        logger.info(
            "Checkout payment settled",
            checkout_id=str(session.id),
            order_group_id=session.order_group_id,
            paid=paid,
            settled_orders=len(outcome["settled"]),
            refunds_due=len(outcome["refund_due"]),
        )

        for order_id in outcome["settled"]:
            order = get_order(order_id)
            if paid:
                self._commit_stock(order)
                self.state_machine.notify_transition(order, OrderStatus.PENDING, OrderStatus.PROCESSING)
            else:
                self.dispatcher.dispatch(NotificationKind.PAYMENT_FAILED, RecipientRole.BUYER, order)

        for order_id in outcome["refund_due"]:
            self._refund_late_payment(get_order(order_id), session.gateway_session_id)
        return True

    def _refund_late_payment(self, order, gateway_session_id):
        order_id = str(order.id)
        refund = self.gateway.refund(
            order_id=order_id,
            amount=order.total,
            currency=order.currency,
            gateway_session_id=gateway_session_id,
        )
        if not refund.success:
            logger.error(
                "Refund of payment for cancelled order failed, needs reconciliation",
                order_id=order_id,
                order_group_id=order.order_group_id,
                reason=refund.failure_reason,
            )
            return

        current_domain.process(
            RecordRefund(
                order_id=order_id,
                refund_id=refund.gateway_refund_id,
                notes="Payment received after cancellation",
            ),
            asynchronous=False,
        )
        logger.info("Payment for cancelled order refunded", order_id=order_id, refund_id=refund.gateway_refund_id)
        self.state_machine.notify_transition(get_order(order_id), OrderStatus.CANCELLED, OrderStatus.REFUNDED)

    def _commit_stock(self, order):
        try:
            self.stock.commit(order_stock_items(order))
        except Exception as exc:
            logger.error("Stock commit failed after payment", order_id=str(order.id), error=str(exc))
