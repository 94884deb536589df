"""Payment gateway factory.

build_gateway() picks the implementation named in settings:
- FakeGateway for development and testing
- StripeGateway for production
"""

from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.gateway.port import PaymentGateway


def build_gateway(settings) -> PaymentGateway:
    """Create the adapter named by ``settings.gateway``."""
    if settings.gateway == "stripe":
        from marketplace.gateway.stripe_adapter import StripeGateway

        if not settings.stripe_api_key or not settings.stripe_webhook_secret:
            raise RuntimeError("STRIPE_API_KEY and STRIPE_WEBHOOK_SECRET must be set to use the Stripe gateway")
        return StripeGateway(api_key=settings.stripe_api_key, webhook_secret=settings.stripe_webhook_secret)
    if settings.gateway != "fake":
        raise ValueError(f"Unknown payment gateway: {settings.gateway}")
    return FakeGateway()
