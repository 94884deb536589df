"""Marketplace bounded context — multi-vendor checkout and order fulfillment.

Splits carts into seller-scoped orders, prices each seller group, routes
payment (split-payment or platform-collect), and drives orders through the
fulfillment life cycle and the pre-shipment cancellation negotiation.
"""

import structlog
from protean.domain import Domain

from marketplace.utils.logging import configure_logging

configure_logging()

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
