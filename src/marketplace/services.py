"""Service container — wires the marketplace collaborators together.

Nothing here is module-level state: the app builds one container at
startup, and tests build their own with fakes.
"""

from dataclasses import dataclass

import structlog

from marketplace.accounts.fake_adapter import FakeSellerDirectory
from marketplace.catalog.fake_adapter import FakeStock
from marketplace.checkout.builder import CheckoutSessionBuilder
from marketplace.checkout.finalization import PaymentCallbackProcessor
from marketplace.checkout.pricing import PricingEngine
from marketplace.checkout.rate_limit import CheckoutRateLimiter
from marketplace.gateway import build_gateway
from marketplace.notification.dispatcher import NotificationDispatcher
from marketplace.notification.fake_sender import FakeNotificationSender
from marketplace.order.cancellation import CancellationNegotiator
from marketplace.order.fulfillment import FulfillmentStateMachine
from marketplace.settings import Settings, load_settings

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    pricing: PricingEngine
    stock: object
    seller_directory: object
    gateway: object
    sender: object
    dispatcher: NotificationDispatcher
    rate_limiter: CheckoutRateLimiter
    checkout: CheckoutSessionBuilder
    fulfillment: FulfillmentStateMachine
    cancellations: CancellationNegotiator
    payments: PaymentCallbackProcessor

    def shutdown(self):
        self.dispatcher.shutdown(wait=True)


def build_services(
    settings: Settings | None = None,
    stock=None,
    seller_directory=None,
    gateway=None,
    sender=None,
    synchronous_notifications: bool = False,
    clock=None,
) -> Services:
    """Build the container; collaborators not passed in get their default adapter."""
    settings = settings or load_settings()
    stock = stock if stock is not None else FakeStock()
    seller_directory = seller_directory if seller_directory is not None else FakeSellerDirectory()
    gateway = gateway if gateway is not None else build_gateway(settings)
    sender = sender if sender is not None else FakeNotificationSender()

    pricing = PricingEngine(settings.pricing)
    dispatcher = NotificationDispatcher(
        sender,
        seller_directory,
        max_workers=settings.notification_workers,
        max_pending=settings.notification_max_pending,
        synchronous=synchronous_notifications,
    )
    rate_limiter = CheckoutRateLimiter(
        max_requests=settings.checkout_rate_limit,
        window_seconds=settings.checkout_rate_window_seconds,
    )
    fulfillment = FulfillmentStateMachine(dispatcher, stock)

    if settings.synthetic_checkout:
        logger.warning("Synthetic checkout sessions enabled", environment=settings.environment)

    return Services(
        settings=settings,
        pricing=pricing,
        stock=stock,
        seller_directory=seller_directory,
        gateway=gateway,
        sender=sender,
        dispatcher=dispatcher,
        rate_limiter=rate_limiter,
        checkout=CheckoutSessionBuilder(
            pricing,
            stock,
            seller_directory,
            gateway,
            settings,
            rate_limiter=rate_limiter,
            synthetic_sessions=settings.synthetic_checkout,
            clock=clock,
        ),
        fulfillment=fulfillment,
        cancellations=CancellationNegotiator(gateway, fulfillment, dispatcher),
        payments=PaymentCallbackProcessor(stock, fulfillment, dispatcher, gateway),
    )
