"""Tests for the payment gateway adapters and factory."""

from decimal import Decimal
from unittest import mock

import pytest
import stripe

from marketplace.gateway import build_gateway
from marketplace.gateway.fake_adapter import TEST_SIGNATURE, FakeGateway
from marketplace.gateway.port import CheckoutSessionRequest, GatewayLineItem
from marketplace.gateway.stripe_adapter import StripeGateway
from marketplace.settings import Settings


def _request(**overrides):
    kwargs = {
        "line_items": [
            GatewayLineItem(name="Mug", unit_amount=Decimal("100.00"), quantity=2),
            GatewayLineItem(name="Tax", unit_amount=Decimal("32.00"), quantity=1),
        ],
        "shipping_hint": Decimal("99.00"),
        "success_url": "https://shop.test/success",
        "cancel_url": "https://shop.test/cancel",
        "currency": "MXN",
        "customer_email": "ana@example.com",
        "metadata": {"checkout_id": "chk-1", "order_ids": "o-1,o-2"},
        "idempotency_key": "checkout-chk-1",
    }
    kwargs.update(overrides)
    return CheckoutSessionRequest(**kwargs)


class TestFakeGateway:
    def test_creates_session(self):
        gateway = FakeGateway()
        result = gateway.create_checkout_session(_request())
        assert result.success
        assert result.session_id.startswith("cs_fake_")
        assert result.url.endswith(result.session_id)

    def test_configured_failure(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=False, failure_reason="Down")
        result = gateway.create_checkout_session(_request())
        assert not result.success
        assert result.failure_reason == "Down"
        assert not gateway.refund("o-1", Decimal("10"), "MXN", "cs_1").success

    def test_refunds_can_fail_independently(self):
        gateway = FakeGateway()
        gateway.configure(should_succeed=True, refunds_succeed=False)
        assert gateway.create_checkout_session(_request()).success
        assert not gateway.refund("o-1", Decimal("10"), "MXN", "cs_1").success

    def test_signature(self):
        gateway = FakeGateway()
        assert gateway.verify_webhook_signature(b"{}", TEST_SIGNATURE)
        assert not gateway.verify_webhook_signature(b"{}", "forged")


class TestStripeGateway:
    def test_session_parameters_in_minor_units(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        session = mock.Mock(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")

        with mock.patch.object(stripe.checkout.Session, "create", return_value=session) as create:
            result = gateway.create_checkout_session(_request(transfer_group="group-1"))

        assert result.success
        assert result.session_id == "cs_test_1"
        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["idempotency_key"] == "checkout-chk-1"
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"][0] == {
            "price_data": {"currency": "mxn", "product_data": {"name": "Mug"}, "unit_amount": 10000},
            "quantity": 2,
        }
        assert kwargs["shipping_options"][0]["shipping_rate_data"]["fixed_amount"] == {
            "amount": 9900,
            "currency": "mxn",
        }
        assert kwargs["metadata"] == {"checkout_id": "chk-1", "order_ids": "o-1,o-2"}
        assert kwargs["customer_email"] == "ana@example.com"
        assert kwargs["payment_intent_data"] == {"transfer_group": "group-1"}

    def test_session_error_is_reported(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        with mock.patch.object(stripe.checkout.Session, "create", side_effect=stripe.StripeError("card network down")):
            result = gateway.create_checkout_session(_request())
        assert not result.success
        assert "card network down" in result.failure_reason

    def test_refund_uses_session_payment_intent(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        session = mock.Mock(payment_intent="pi_123")
        refund = mock.Mock(id="re_123", status="succeeded")

        with (
            mock.patch.object(stripe.checkout.Session, "retrieve", return_value=session),
            mock.patch.object(stripe.Refund, "create", return_value=refund) as create,
        ):
            result = gateway.refund("o-1", 331.0, "MXN", "cs_test_1")

        assert result.success
        assert result.gateway_refund_id == "re_123"
        kwargs = create.call_args.kwargs
        assert kwargs["payment_intent"] == "pi_123"
        assert kwargs["amount"] == 33100

    def test_refund_without_session(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        assert not gateway.refund("o-1", 10.0, "MXN", None).success

    def test_refund_error(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        with mock.patch.object(stripe.checkout.Session, "retrieve", side_effect=stripe.StripeError("nope")):
            result = gateway.refund("o-1", 10.0, "MXN", "cs_test_1")
        assert not result.success

    def test_webhook_signature(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_123")
        with mock.patch.object(stripe.Webhook, "construct_event", return_value={}) as construct:
            assert gateway.verify_webhook_signature(b"{}", "t=1,v1=abc")
        construct.assert_called_once_with(b"{}", "t=1,v1=abc", "whsec_123")

        with mock.patch.object(
            stripe.Webhook,
            "construct_event",
            side_effect=stripe.SignatureVerificationError("bad", "t=1,v1=abc"),
        ):
            assert not gateway.verify_webhook_signature(b"{}", "t=1,v1=abc")


class TestBuildGateway:
    def test_fake_by_default(self):
        assert isinstance(build_gateway(Settings()), FakeGateway)

    def test_stripe_requires_credentials(self):
        with pytest.raises(RuntimeError):
            build_gateway(Settings(gateway="stripe"))

    def test_stripe(self):
        gateway = build_gateway(Settings(gateway="stripe", stripe_api_key="sk", stripe_webhook_secret="wh"))
        assert isinstance(gateway, StripeGateway)

    def test_unknown(self):
        with pytest.raises(ValueError):
            build_gateway(Settings(gateway="paypal"))
