"""Stripe payment gateway adapter.

Uses Stripe Checkout for the hosted payment page, the Refunds API for
cancellations and Stripe's signing secret for webhook verification. All
amounts are sent in minor units.
"""

import stripe
import structlog

from marketplace.checkout.pricing import to_minor_units
from marketplace.gateway.port import (
    CheckoutSessionRequest,
    CheckoutSessionResult,
    PaymentGateway,
    RefundResult,
)

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResult:
        currency = request.currency.lower()
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": item.name},
                        "unit_amount": to_minor_units(item.unit_amount),
                    },
                    "quantity": item.quantity,
                }
                for item in request.line_items
            ],
            "shipping_options": [
                {
                    "shipping_rate_data": {
                        "type": "fixed_amount",
                        "display_name": "Shipping",
                        "fixed_amount": {"amount": to_minor_units(request.shipping_hint), "currency": currency},
                    }
                }
            ],
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": request.metadata,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email
        if request.transfer_group:
            params["payment_intent_data"] = {"transfer_group": request.transfer_group}

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                idempotency_key=request.idempotency_key,
                **params,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session failed", error=str(exc), error_type=type(exc).__name__)
            return CheckoutSessionResult(success=False, failure_reason=str(exc))

        return CheckoutSessionResult(success=True, session_id=session.id, url=session.url)

    def refund(self, order_id, amount, currency, gateway_session_id) -> RefundResult:
        if not gateway_session_id:
            return RefundResult(success=False, failure_reason="No checkout session to refund")

        try:
            session = stripe.checkout.Session.retrieve(gateway_session_id, api_key=self.api_key)
            refund = stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=session.payment_intent,
                amount=to_minor_units(amount),
                metadata={"order_id": str(order_id)},
                idempotency_key=f"refund-{order_id}",
            )
        except stripe.StripeError as exc:
            logger.error("Stripe refund failed", order_id=str(order_id), error=str(exc))
            return RefundResult(success=False, gateway_status="failed", failure_reason=str(exc))

        return RefundResult(success=True, gateway_refund_id=refund.id, gateway_status=refund.status)

    def verify_webhook_signature(self, payload, signature: str) -> bool:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Webhook signature invalid", error=str(exc))
            return False
        return True
