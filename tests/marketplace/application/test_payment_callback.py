"""Application tests for settling a checkout from the payment callback."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from marketplace.checkout.finalization import callback_from_event
from marketplace.checkout.session import CheckoutSession, CheckoutStatus
from marketplace.exceptions import NotFoundError
from marketplace.fee.platform_fee import FeeStatus, PlatformFeeRecord
from marketplace.notification.kinds import NotificationKind
from marketplace.order.order import Order, OrderStatus, PaymentStatus


def _orders(result):
    return [current_domain.repository_for(Order).get(order_id) for order_id in result.order_ids]


def _fees(result):
    repo = current_domain.repository_for(PlatformFeeRecord)
    return [fee for order_id in result.order_ids for fee in repo.find_by_order(order_id)]


class TestPaidCallback:
    def test_orders_move_to_processing(self, services, make_request):
        result = services.checkout.create_checkout(make_request())
        assert services.payments.finalize_from_callback(result.session_id, "paid") is True

        for order in _orders(result):
            assert order.status == OrderStatus.PROCESSING.value
            assert order.payment_status == PaymentStatus.SUCCEEDED.value

        session = current_domain.repository_for(CheckoutSession).get(result.checkout_id)
        assert session.status == CheckoutStatus.COMPLETED.value
        assert session.payment_status == "paid"

    def test_fee_records_collected(self, services, make_request):
        result = services.checkout.create_checkout(make_request())
        services.payments.finalize_from_callback(result.session_id, "succeeded")
        assert [fee.status for fee in _fees(result)] == [FeeStatus.COLLECTED.value] * 2

    def test_stock_committed(self, services, make_request, stock):
        result = services.checkout.create_checkout(make_request())
        services.payments.finalize_from_callback(result.session_id, "paid")
        assert stock.levels["prod-a1"] == 8
        assert stock.levels["prod-b1"] == 9

    def test_sellers_and_buyer_notified(self, services, make_request, sender):
        result = services.checkout.create_checkout(make_request())
        services.payments.finalize_from_callback(result.session_id, "paid")

        assert len(sender.messages(kind=NotificationKind.SELLER_NEW_ORDER.value)) == 2
        assert len(sender.messages(kind=NotificationKind.ORDER_CONFIRMATION.value)) == 2
        assert {m["to"] for m in sender.messages(kind=NotificationKind.SELLER_NEW_ORDER.value)} == {
            "seller-a@example.com",
            "seller-b@example.com",
        }

    def test_replay_is_a_no_op(self, services, make_request, sender, stock):
        result = services.checkout.create_checkout(make_request())
        assert services.payments.finalize_from_callback(result.session_id, "paid") is True
        assert services.payments.finalize_from_callback(result.session_id, "paid") is False

        assert len(_fees(result)) == 2
        assert all(fee.status == FeeStatus.COLLECTED.value for fee in _fees(result))
        assert len(sender.messages(kind=NotificationKind.ORDER_CONFIRMATION.value)) == 2
        assert len(stock.calls_for("commit")) == 2

    def test_late_failure_after_success_is_ignored(self, services, make_request):
        result = services.checkout.create_checkout(make_request())
        services.payments.finalize_from_callback(result.session_id, "paid")
        assert services.payments.finalize_from_callback(result.session_id, "expired") is False
        assert all(o.status == OrderStatus.PROCESSING.value for o in _orders(result))

    def test_platform_collect_checkout_has_no_fees(self, services, make_request, sellers):
        sellers.register("seller-b", charges_enabled=False)
        result = services.checkout.create_checkout(make_request())
        services.payments.finalize_from_callback(result.session_id, "paid")
        assert _fees(result) == []

    def test_order_cancelled_before_payment_is_refunded(self, services, make_request, gateway, sender):
        result = services.checkout.create_checkout(make_request())
        services.fulfillment.transition(result.order_ids[1], "cancelled")

        services.payments.finalize_from_callback(result.session_id, "paid")

        orders = _orders(result)
        assert orders[0].status == OrderStatus.PROCESSING.value
        assert orders[1].status == OrderStatus.REFUNDED.value
        assert orders[1].payment_status == PaymentStatus.REFUNDED.value
        assert orders[1].refund_id.startswith("re_fake_")

        (refund,) = gateway.calls_for("refund")
        assert refund["order_id"] == result.order_ids[1]
        assert refund["gateway_session_id"] == result.session_id
        assert [fee.status for fee in _fees(result)] == [FeeStatus.COLLECTED.value, FeeStatus.FAILED.value]
        assert sender.messages(kind=NotificationKind.REFUND_ISSUED.value, to="ana@example.com")

    def test_approved_cancellation_before_payment_is_refunded(self, services, make_request, gateway, stock):
        result = services.checkout.create_checkout(make_request())
        services.cancellations.request_cancellation(result.order_ids[0], "Ordered by mistake")
        services.cancellations.resolve_cancellation(result.order_ids[0], "approve")
        assert gateway.calls_for("refund") == []

        services.payments.finalize_from_callback(result.session_id, "paid")

        order = _orders(result)[0]
        assert order.status == OrderStatus.REFUNDED.value
        assert len(gateway.calls_for("refund")) == 1
        assert _fees(result)[0].status == FeeStatus.FAILED.value
        assert stock.levels["prod-a1"] == 10
        assert stock.levels["prod-b1"] == 9
        assert stock.calls_for("restock") == []

    def test_failed_refund_of_late_payment_is_left_for_reconciliation(self, services, make_request, gateway):
        result = services.checkout.create_checkout(make_request())
        services.fulfillment.transition(result.order_ids[1], "cancelled")
        gateway.configure(should_succeed=True, refunds_succeed=False)

        assert services.payments.finalize_from_callback(result.session_id, "paid") is True

        order = _orders(result)[1]
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.SUCCEEDED.value
        assert _fees(result)[1].status == FeeStatus.FAILED.value


class TestFailedCallback:
    @pytest.mark.parametrize("status", ["failed", "expired"])
    def test_orders_cancelled_and_fees_failed(self, services, make_request, sender, status):
        result = services.checkout.create_checkout(make_request())
        assert services.payments.finalize_from_callback(result.session_id, status) is True

        for order in _orders(result):
            assert order.status == OrderStatus.CANCELLED.value
            assert order.payment_status == PaymentStatus.FAILED.value
        assert [fee.status for fee in _fees(result)] == [FeeStatus.FAILED.value] * 2
        assert [m["kind"] for m in sender.sent] == [NotificationKind.PAYMENT_FAILED.value] * 2

    def test_stock_untouched(self, services, make_request, stock):
        result = services.checkout.create_checkout(make_request())
        services.payments.finalize_from_callback(result.session_id, "failed")
        assert stock.calls_for("commit") == []
        assert stock.calls_for("restock") == []


class TestCallbackErrors:
    def test_unknown_session(self, services):
        with pytest.raises(NotFoundError):
            services.payments.finalize_from_callback("cs_unknown", "paid")

    def test_unknown_status(self, services, make_request):
        result = services.checkout.create_checkout(make_request())
        with pytest.raises(ValidationError):
            services.payments.finalize_from_callback(result.session_id, "pending-review")

    def test_stock_commit_failure_does_not_block_settlement(self, services, make_request, stock):
        result = services.checkout.create_checkout(make_request())
        stock.configure(fail_on={"commit"})
        assert services.payments.finalize_from_callback(result.session_id, "paid") is True
        assert all(o.status == OrderStatus.PROCESSING.value for o in _orders(result))


class TestCallbackFromEvent:
    def test_completed_and_paid(self):
        event = {"type": "checkout.session.completed", "data": {"object": {"id": "cs_1", "payment_status": "paid"}}}
        assert callback_from_event(event) == ("cs_1", "paid")

    def test_completed_but_payment_processing(self):
        event = {"type": "checkout.session.completed", "data": {"object": {"id": "cs_1", "payment_status": "unpaid"}}}
        assert callback_from_event(event) is None

    def test_async_failure(self):
        event = {"type": "checkout.session.async_payment_failed", "data": {"object": {"id": "cs_1"}}}
        assert callback_from_event(event) == ("cs_1", "failed")

    def test_expired(self):
        event = {"type": "checkout.session.expired", "data": {"object": {"id": "cs_1"}}}
        assert callback_from_event(event) == ("cs_1", "expired")

    def test_unrelated_event(self):
        assert callback_from_event({"type": "customer.created", "data": {"object": {"id": "cus_1"}}}) is None
