"""Error taxonomy for the marketplace core.

Validation-shaped errors reuse Protean's ``ValidationError`` (a dict of
field name to messages). Errors that carry structured payloads derive from
``MarketplaceError``. Unknown ids surface as Protean's ``ObjectNotFoundError``,
re-exported here as ``NotFoundError``.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError, ValidationError

NotFoundError = ObjectNotFoundError


class EmptyCartError(ValidationError):
    """A checkout or split was requested for a cart with no lines."""


class InvalidTransitionError(ValidationError):
    """The requested status change is not an edge of the fulfillment graph."""


class InvalidStateError(ValidationError):
    """The order is not in a state that allows the requested operation."""


class MarketplaceError(Exception):
    """Base class for non-validation marketplace errors."""


@dataclass(frozen=True)
class StockShortfall:
    product_id: str
    requested: int
    available: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }


class StockError(MarketplaceError):
    """One or more cart lines cannot be fulfilled from available stock."""

    def __init__(self, shortfalls: list[StockShortfall]):
        self.shortfalls = list(shortfalls)
        detail = ", ".join(f"{s.product_id} (requested {s.requested}, available {s.available})" for s in self.shortfalls)
        super().__init__(f"Insufficient stock: {detail}")


class GatewayError(MarketplaceError):
    """The payment gateway rejected or failed a request."""

    def __init__(self, message: str, checkout_id: str | None = None, order_ids: list[str] | None = None):
        self.checkout_id = checkout_id
        self.order_ids = list(order_ids or [])
        super().__init__(message)


class RateLimitExceeded(MarketplaceError):
    def __init__(self, key: str, retry_after: int):
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"Too many checkout attempts, retry in {retry_after}s")


class NotificationFailure(MarketplaceError):
    """A notification could not be delivered. Never propagated to callers."""
