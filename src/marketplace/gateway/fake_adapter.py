"""Configurable fake payment gateway for development and testing.

Simulates a hosted checkout gateway without any external calls. It can be
configured at runtime to succeed or fail per operation and records every
call for test assertions.
"""

from uuid import uuid4

from marketplace.gateway.port import (
    CheckoutSessionRequest,
    CheckoutSessionResult,
    PaymentGateway,
    RefundResult,
)

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, base_url: str = "https://checkout.example.test/pay") -> None:
        self.base_url = base_url
        self.should_succeed: bool = True
        self.refunds_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        refunds_succeed: bool | None = None,
        failure_reason: str = "Gateway unavailable",
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.refunds_succeed = should_succeed if refunds_succeed is None else refunds_succeed
        self.failure_reason = failure_reason

    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResult:
        self.calls.append({"method": "create_checkout_session", "request": request})

        if not self.should_succeed:
            return CheckoutSessionResult(success=False, failure_reason=self.failure_reason)

        session_id = f"cs_fake_{uuid4().hex[:16]}"
        return CheckoutSessionResult(success=True, session_id=session_id, url=f"{self.base_url}/{session_id}")

    def refund(self, order_id, amount, currency, gateway_session_id) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "order_id": order_id,
                "amount": amount,
                "currency": currency,
                "gateway_session_id": gateway_session_id,
            }
        )

        if self.refunds_succeed:
            return RefundResult(
                success=True,
                gateway_refund_id=f"re_fake_{uuid4().hex[:12]}",
                gateway_status="succeeded",
            )
        return RefundResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)

    def verify_webhook_signature(self, payload, signature: str) -> bool:  # noqa: ARG002
        return signature == TEST_SIGNATURE

    def calls_for(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def reset(self) -> None:
        self.calls.clear()
        self.configure()
