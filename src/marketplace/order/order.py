"""Order aggregate — one seller-scoped order produced by a checkout.

Every checkout produces one Order per seller. Orders of the same checkout
share an ``order_number`` (human readable) and an ``order_group_id``
(opaque). Orders are never deleted: cancellation and refund are recorded
as statuses.

State Machine (6 states):
    PENDING → PROCESSING → SHIPPED → DELIVERED
    PENDING / PROCESSING / SHIPPED → CANCELLED → REFUNDED

Cancellation negotiation (only while PENDING or PROCESSING):
    NONE → REQUESTED → APPROVED (order becomes CANCELLED)
    NONE → REQUESTED → REJECTED (order status unchanged; may be re-requested)
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.checkout.pricing import round_money
from marketplace.domain import marketplace
from marketplace.exceptions import InvalidStateError, InvalidTransitionError
from marketplace.order.events import (
    CancellationRequested,
    CancellationResolved,
    OrderPlaced,
    OrderStatusChanged,
    PaymentStatusRecorded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMode(Enum):
    SPLIT = "split"
    PLATFORM_COLLECT = "platform_collect"


class CancellationStatus(Enum):
    NONE = "none"
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

# States in which a cancellation can be negotiated
_NEGOTIABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


def parse_status(value) -> OrderStatus:
    """Coerce a status name into ``OrderStatus``; unknown names are illegal targets."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidTransitionError({"status": [f"Unknown order status: {value}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class BuyerContact:
    """Buyer contact details captured at checkout (guest or registered)."""

    name = String(max_length=200)
    email = String(required=True, max_length=254)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class PostalAddress:
    """A shipping or billing address snapshot.

    Captured at checkout and never updated afterwards, regardless of later
    changes to the buyer's address book.
    """

    recipient = String(max_length=200)
    street = String(required=True, max_length=255)
    apartment = String(max_length=100)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)


@marketplace.value_object(part_of="Order")
class TaxBreakdown:
    rate = Float(required=True, min_value=0.0)
    amount = Float(required=True, min_value=0.0)
    region_code = String(required=True, max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order")
class OrderLineItem:
    """One cart line materialized on a seller order.

    Duplicate product lines from the cart stay separate line items.
    """

    product_id = Identifier(required=True)
    display_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.01)
    line_total = Float(required=True, min_value=0.0)

    @invariant.post
    def line_total_is_unit_price_times_quantity(self):
        if self.unit_price is None or self.quantity is None or self.line_total is None:
            return
        unit_price = Decimal(str(self.unit_price))
        if unit_price != round_money(unit_price):
            raise ValidationError({"unit_price": ["Unit price cannot have more than 2 decimal places"]})
        expected = unit_price * self.quantity
        if Decimal(str(self.line_total)) != expected:
            raise ValidationError({"line_total": [f"Line total must be {expected}"]})


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Order:
    order_number = String(required=True, max_length=40)
    order_group_id = String(required=True, max_length=64)
    group_position = Integer(default=0, min_value=0)
    checkout_id = Identifier()
    seller_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_mode = String(choices=PaymentMode, required=True)
    items = HasMany(OrderLineItem)
    subtotal = Float(required=True, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    tax_breakdown = ValueObject(TaxBreakdown)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="MXN")
    buyer = ValueObject(BuyerContact)
    shipping_address = ValueObject(PostalAddress)
    billing_address = ValueObject(PostalAddress)
    notes = Text()
    tracking_number = String(max_length=255)
    refund_id = String(max_length=255)
    cancellation_status = String(choices=CancellationStatus, default=CancellationStatus.NONE.value)
    cancellation_reason = String(max_length=500)
    cancellation_notes = String(max_length=500)
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        order_group_id,
        seller_id,
        payment_mode,
        items_data,
        pricing,
        buyer,
        shipping_address,
        billing_address=None,
        group_position=0,
        checkout_id=None,
        notes=None,
    ):
        """Create a pending order for one seller group of a checkout.

        Args:
            items_data: List of dicts with product_id, display_name, quantity,
                        unit_price.
            pricing: Dict with subtotal, tax, tax_rate, tax_region, shipping,
                     total and currency, already rounded to cents.
            buyer: Dict with name, email, phone.
            shipping_address / billing_address: Address dicts.
        """
        now = datetime.now(UTC)

        order = cls(
            order_number=order_number,
            order_group_id=order_group_id,
            group_position=group_position,
            checkout_id=checkout_id,
            seller_id=seller_id,
            payment_mode=payment_mode,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=float(pricing["subtotal"]),
            tax=float(pricing["tax"]),
            tax_breakdown=TaxBreakdown(
                rate=float(pricing["tax_rate"]),
                amount=float(pricing["tax"]),
                region_code=pricing["tax_region"],
            ),
            shipping=float(pricing["shipping"]),
            total=float(pricing["total"]),
            currency=pricing["currency"],
            buyer=BuyerContact(**buyer),
            shipping_address=PostalAddress(**shipping_address),
            billing_address=PostalAddress(**billing_address) if billing_address else None,
            notes=notes,
            cancellation_status=CancellationStatus.NONE.value,
            created_at=now,
            updated_at=now,
        )

        for item in items_data:
            unit_price = Decimal(str(item["unit_price"]))
            order.add_items(
                OrderLineItem(
                    product_id=item["product_id"],
                    display_name=item.get("display_name") or "",
                    quantity=item["quantity"],
                    unit_price=float(unit_price),
                    line_total=float(unit_price * item["quantity"]),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                order_group_id=order_group_id,
                seller_id=str(seller_id),
                payment_mode=payment_mode,
                subtotal=order.subtotal,
                tax=order.tax,
                shipping=order.shipping,
                total=order.total,
                currency=order.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Fulfillment state machine
    # -------------------------------------------------------------------
    def can_transition_to(self, target_status: OrderStatus) -> bool:
        return can_transition(OrderStatus(self.status), target_status)

    def transition_to(self, target_status, notes=None, tracking_number=None):
        """Move the order along one edge of the fulfillment graph.

        Raises InvalidTransitionError, leaving the order untouched, when
        ``(current, target)`` is not an allowed edge.

        Returns:
            The previous ``OrderStatus``.
        """
        target = parse_status(target_status)
        current = OrderStatus(self.status)
        if not can_transition(current, target):
            raise InvalidTransitionError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        now = datetime.now(UTC)
        self.status = target.value
        if notes:
            self.notes = notes
        if tracking_number:
            self.tracking_number = tracking_number
        if target == OrderStatus.CANCELLED:
            self.cancelled_at = now
        if target == OrderStatus.REFUNDED and self.payment_status == PaymentStatus.SUCCEEDED.value:
            self.payment_status = PaymentStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_group_id=self.order_group_id,
                previous_status=current.value,
                new_status=target.value,
                tracking_number=tracking_number,
                notes=notes,
                changed_at=now,
            )
        )
        return current

    # -------------------------------------------------------------------
    # Payment outcome (reported by the gateway callback)
    # -------------------------------------------------------------------
    def _record_payment_status(self, payment_status: PaymentStatus):
        now = datetime.now(UTC)
        self.payment_status = payment_status.value
        self.updated_at = now
        self.raise_(
            PaymentStatusRecorded(
                order_id=str(self.id),
                payment_status=payment_status.value,
                recorded_at=now,
            )
        )

    def confirm_payment(self):
        """Payment captured: pending → processing."""
        self._record_payment_status(PaymentStatus.SUCCEEDED)
        return self.transition_to(OrderStatus.PROCESSING)

    def fail_payment(self, reason="Payment failed"):
        """Payment failed or expired: pending → cancelled."""
        self._record_payment_status(PaymentStatus.FAILED)
        return self.transition_to(OrderStatus.CANCELLED, notes=reason)

    def record_late_payment(self):
        """Payment captured after the order was already cancelled.

        The order stays cancelled and the captured amount is owed back to
        the buyer.
        """
        if self.status != OrderStatus.CANCELLED.value or self.payment_status != PaymentStatus.PENDING.value:
            raise InvalidStateError({"payment_status": ["Only an unpaid cancelled order can record a late payment"]})
        self._record_payment_status(PaymentStatus.SUCCEEDED)

    @property
    def is_paid(self) -> bool:
        return self.payment_status in (PaymentStatus.SUCCEEDED.value, PaymentStatus.REFUNDED.value)

    # -------------------------------------------------------------------
    # Cancellation negotiation
    # -------------------------------------------------------------------
    def _assert_negotiable(self):
        current = OrderStatus(self.status)
        if current not in _NEGOTIABLE_STATES:
            raise InvalidStateError(
                {
                    "status": [
                        f"Cannot negotiate cancellation of an order in {current.value} state. "
                        f"Cancellation can only be requested while: "
                        f"{', '.join(sorted(s.value for s in _NEGOTIABLE_STATES))}"
                    ]
                }
            )

    def request_cancellation(self, reason):
        """Buyer asks for cancellation; the order status itself does not change."""
        self._assert_negotiable()
        if self.cancellation_status == CancellationStatus.REQUESTED.value:
            raise InvalidStateError({"cancellation_status": ["A cancellation request is already pending"]})

        now = datetime.now(UTC)
        self.cancellation_status = CancellationStatus.REQUESTED.value
        self.cancellation_reason = reason
        self.cancellation_notes = None
        self.updated_at = now

        self.raise_(
            CancellationRequested(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                reason=reason,
                requested_at=now,
            )
        )

    def assert_cancellation_pending(self):
        self._assert_negotiable()
        if self.cancellation_status != CancellationStatus.REQUESTED.value:
            raise InvalidStateError({"cancellation_status": ["There is no pending cancellation request"]})

    def _resolve_cancellation(self, status: CancellationStatus, notes):
        now = datetime.now(UTC)
        self.cancellation_status = status.value
        self.cancellation_notes = notes
        self.updated_at = now
        self.raise_(
            CancellationResolved(
                order_id=str(self.id),
                decision=status.value,
                notes=notes,
                resolved_at=now,
            )
        )

    def approve_cancellation(self, notes=None):
        """Approve the pending request and cancel the order.

        Returns:
            The previous ``OrderStatus``.
        """
        self.assert_cancellation_pending()
        self._resolve_cancellation(CancellationStatus.APPROVED, notes)
        return self.transition_to(OrderStatus.CANCELLED, notes=notes)

    def record_refund(self, refund_id, notes=None):
        """Money returned to the buyer: cancelled → refunded."""
        self.refund_id = refund_id
        return self.transition_to(OrderStatus.REFUNDED, notes=notes)

    def reject_cancellation(self, notes=None):
        self.assert_cancellation_pending()
        self._resolve_cancellation(CancellationStatus.REJECTED, notes)
