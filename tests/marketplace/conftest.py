import pytest
from protean.integrations.pytest import DomainFixture

from marketplace.accounts.fake_adapter import FakeSellerDirectory
from marketplace.catalog.fake_adapter import FakeStock
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.notification.fake_sender import FakeNotificationSender
from marketplace.services import build_services
from marketplace.settings import Settings


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture
def stock():
    return FakeStock({"prod-a1": 10, "prod-a2": 10, "prod-b1": 10, "prod-c1": 10})


@pytest.fixture
def sellers():
    directory = FakeSellerDirectory()
    directory.register("seller-a", email="seller-a@example.com")
    directory.register("seller-b", email="seller-b@example.com")
    directory.register("seller-c", email="seller-c@example.com")
    return directory


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def sender():
    return FakeNotificationSender()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def services(settings, stock, sellers, gateway, sender):
    container = build_services(
        settings=settings,
        stock=stock,
        seller_directory=sellers,
        gateway=gateway,
        sender=sender,
        synchronous_notifications=True,
    )
    yield container
    container.shutdown()


ADDRESS = {
    "recipient": "Ana Buyer",
    "street": "Av. Reforma 1",
    "city": "Ciudad de Mexico",
    "state": "CMX",
    "postal_code": "06600",
    "country": "MX",
}


@pytest.fixture
def make_request():
    """Build a CheckoutRequest; ``lines`` are (product, seller, qty, price) tuples."""
    from marketplace.checkout.builder import BuyerInfo, CheckoutRequest
    from marketplace.checkout.splitter import CartItem

    def _make(lines=None, email="ana@example.com", **overrides):
        lines = lines or [("prod-a1", "seller-a", 2, "100.00"), ("prod-b1", "seller-b", 1, "50.00")]
        defaults = {
            "items": [
                CartItem(product_id=p, seller_id=s, quantity=q, unit_price=price, display_name=f"Item {p}")
                for p, s, q, price in lines
            ],
            "buyer": BuyerInfo(email=email, name="Ana Buyer"),
            "shipping_address": dict(ADDRESS),
        }
        defaults.update(overrides)
        return CheckoutRequest(**defaults)

    return _make


@pytest.fixture
def paid_checkout(services, make_request):
    """A two-seller checkout whose payment was confirmed."""

    def _paid(**kwargs):
        result = services.checkout.create_checkout(make_request(**kwargs))
        services.payments.finalize_from_callback(result.session_id, "paid")
        return result

    return _paid
