"""Payment gateway port (abstract interface).

Defines the contract that hosted-checkout gateway adapters implement, so
the checkout and cancellation flows can run against FakeGateway (dev/test)
or StripeGateway (production) unchanged.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class GatewayLineItem:
    """One line shown on the hosted checkout page."""

    name: str
    unit_amount: Decimal
    quantity: int


@dataclass(frozen=True)
class CheckoutSessionResult:
    """Result of a hosted checkout session request."""

    success: bool
    session_id: str | None = None
    url: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    gateway_refund_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CheckoutSessionRequest:
    line_items: list[GatewayLineItem]
    shipping_hint: Decimal
    success_url: str
    cancel_url: str
    currency: str
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    idempotency_key: str | None = None
    transfer_group: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResult:
        """Open a hosted checkout session the buyer is redirected to."""
        ...

    @abstractmethod
    def refund(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        gateway_session_id: str | None,
    ) -> RefundResult:
        """Refund ``amount`` of the payment collected by a checkout session."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
