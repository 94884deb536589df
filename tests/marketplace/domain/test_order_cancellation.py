"""Tests for cancellation negotiation on the Order aggregate."""

import pytest

from marketplace.exceptions import InvalidStateError
from marketplace.order.events import CancellationRequested, CancellationResolved, OrderStatusChanged
from marketplace.order.order import CancellationStatus, Order, OrderStatus, PaymentStatus


def _order(status=OrderStatus.PENDING):
    order = Order.place(
        order_number="ORD-20260101-ABCDEF",
        order_group_id="group-001",
        seller_id="seller-a",
        payment_mode="split",
        items_data=[{"product_id": "prod-a1", "quantity": 1, "unit_price": "100.00"}],
        pricing={
            "subtotal": "100.00",
            "tax": "16.00",
            "tax_rate": "16.0",
            "tax_region": "MX",
            "shipping": "99.00",
            "total": "215.00",
            "currency": "MXN",
        },
        buyer={"email": "ana@example.com"},
        shipping_address={"street": "1 St", "city": "C", "postal_code": "00000", "country": "MX"},
    )
    if status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order.confirm_payment()
    if status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        order.transition_to(OrderStatus.SHIPPED)
    if status == OrderStatus.DELIVERED:
        order.transition_to(OrderStatus.DELIVERED)
    if status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
        order.transition_to(OrderStatus.CANCELLED)
    if status == OrderStatus.REFUNDED:
        order.transition_to(OrderStatus.REFUNDED)
    order._events.clear()
    return order


class TestRequestCancellation:
    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.PROCESSING])
    def test_allowed_while_negotiable(self, status):
        order = _order(status)
        order.request_cancellation("Changed my mind")
        assert order.cancellation_status == CancellationStatus.REQUESTED.value
        assert order.cancellation_reason == "Changed my mind"
        assert order.status == status.value

    def test_raises_cancellation_requested(self):
        order = _order()
        order.request_cancellation("Too slow")
        assert isinstance(order._events[0], CancellationRequested)
        assert order._events[0].reason == "Too slow"

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED],
    )
    def test_rejected_after_shipping_or_when_terminal(self, status):
        order = _order(status)
        with pytest.raises(InvalidStateError) as exc:
            order.request_cancellation("Too late")
        assert "status" in exc.value.messages
        assert order.cancellation_status == CancellationStatus.NONE.value
        assert order._events == []

    def test_second_request_while_pending_is_refused(self):
        order = _order()
        order.request_cancellation("First")
        with pytest.raises(InvalidStateError) as exc:
            order.request_cancellation("Second")
        assert "cancellation_status" in exc.value.messages
        assert order.cancellation_reason == "First"

    def test_rejected_request_can_be_reopened(self):
        order = _order()
        order.request_cancellation("First")
        order.reject_cancellation("Already packed")
        order.request_cancellation("Please, really")
        assert order.cancellation_status == CancellationStatus.REQUESTED.value
        assert order.cancellation_notes is None


class TestResolveCancellation:
    def test_approve_cancels_order(self):
        order = _order(OrderStatus.PROCESSING)
        order.request_cancellation("Ordered twice")
        order._events.clear()

        previous = order.approve_cancellation("OK")

        assert previous == OrderStatus.PROCESSING
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_status == CancellationStatus.APPROVED.value
        assert order.cancellation_notes == "OK"
        assert [type(e) for e in order._events] == [CancellationResolved, OrderStatusChanged]

    def test_reject_leaves_status(self):
        order = _order(OrderStatus.PROCESSING)
        order.request_cancellation("Ordered twice")
        order.reject_cancellation("Already shipped to carrier")
        assert order.status == OrderStatus.PROCESSING.value
        assert order.cancellation_status == CancellationStatus.REJECTED.value
        assert order.cancellation_notes == "Already shipped to carrier"

    def test_resolve_without_request_is_refused(self):
        order = _order()
        with pytest.raises(InvalidStateError):
            order.approve_cancellation()
        with pytest.raises(InvalidStateError):
            order.reject_cancellation()
        assert order.status == OrderStatus.PENDING.value

    def test_record_refund_after_approval(self):
        order = _order(OrderStatus.PROCESSING)
        order.request_cancellation("Ordered twice")
        order.approve_cancellation()
        order.record_refund("re_123")
        assert order.status == OrderStatus.REFUNDED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refund_id == "re_123"
