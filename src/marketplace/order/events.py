"""Domain events for the Order aggregate.

These events are the order audit trail: every placement, status change and
cancellation negotiation step is recorded as an immutable fact.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A seller-scoped order was created at checkout, awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    order_group_id = String(required=True)
    seller_id = Identifier(required=True)
    payment_mode = String(required=True)
    subtotal = Float(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    total = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along one edge of the fulfillment graph."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_group_id = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    tracking_number = String()
    notes = Text()
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class PaymentStatusRecorded:
    """The gateway reported the payment outcome for the order's checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_status = String(required=True)
    recorded_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class CancellationRequested:
    """The buyer asked the seller to cancel the order before shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    requested_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class CancellationResolved:
    """The seller approved or rejected a pending cancellation request."""

    __version__ = 1

    order_id = Identifier(required=True)
    decision = String(required=True)
    notes = Text()
    resolved_at = DateTime(required=True)
