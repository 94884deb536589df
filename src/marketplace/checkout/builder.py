"""Checkout session builder — turns a multi-seller cart into pending orders
and a hosted payment session.

Flow for a new checkout:
    validate input → check stock → split by seller → price each group →
    persist orders (+ fee records) atomically → request gateway session

Orders are persisted before the gateway is contacted. If the gateway
request fails the orders stay ``pending`` and the CheckoutSession is marked
``gateway_failed``; retrying with the same idempotency key reuses them.
"""

import json
import re
import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from marketplace.checkout.placement import AttachGatewaySession, MarkGatewayFailed, PlaceCheckout
from marketplace.checkout.pricing import round_money
from marketplace.checkout.session import CheckoutSession
from marketplace.checkout.splitter import CartItem, split_cart
from marketplace.exceptions import EmptyCartError, GatewayError, StockError, StockShortfall
from marketplace.gateway.port import CheckoutSessionRequest, GatewayLineItem
from marketplace.order.order import PaymentMode
from marketplace.order.repository import get_order

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
REQUIRED_ADDRESS_FIELDS = ("street", "city", "postal_code", "country")


@dataclass(frozen=True)
class BuyerInfo:
    email: str
    name: str | None = None
    phone: str | None = None


@dataclass
class CheckoutRequest:
    items: list[CartItem]
    buyer: BuyerInfo
    shipping_address: dict
    billing_address: dict | None = None
    seller_shipping_selections: dict[str, Decimal] = field(default_factory=dict)
    idempotency_key: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    checkout_id: str
    session_id: str
    redirect_url: str
    order_ids: list[str]
    order_group_id: str
    order_number: str
    payment_mode: str
    total: Decimal
    currency: str
    synthetic: bool = False


def generate_order_number(now: datetime) -> str:
    """``ORD-YYYYMMDD-XXXXXX``: the checkout date plus 6 random base32 characters."""
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"ORD-{now:%Y%m%d}-{suffix}"


def generate_order_group_id() -> str:
    return secrets.token_urlsafe(18)


def stock_requests(items: list[CartItem]) -> list[dict]:
    """Total requested quantity per product, in first-seen order."""
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return [{"product_id": product_id, "quantity": quantity} for product_id, quantity in totals.items()]


def _validate(request: CheckoutRequest):
    errors = {}
    email = (request.buyer.email or "").strip() if request.buyer else ""
    if not email:
        errors["buyer_email"] = ["Buyer email is required"]
    elif not EMAIL_PATTERN.match(email):
        errors["buyer_email"] = ["Buyer email is invalid"]

    address = request.shipping_address or {}
    missing = [name for name in REQUIRED_ADDRESS_FIELDS if not str(address.get(name) or "").strip()]
    if missing:
        errors["shipping_address"] = [f"Missing {name}" for name in missing]

    if errors:
        raise ValidationError(errors)


class CheckoutSessionBuilder:
    def __init__(
        self,
        pricing,
        stock,
        seller_directory,
        gateway,
        settings,
        rate_limiter=None,
        synthetic_sessions: bool = False,
        clock=None,
    ):
        if synthetic_sessions and settings.is_production:
            raise ValueError("Synthetic checkout sessions cannot be enabled in production")

        self.pricing = pricing
        self.stock = stock
        self.seller_directory = seller_directory
        self.gateway = gateway
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.synthetic_sessions = synthetic_sessions
        self._clock = clock or (lambda: datetime.now(UTC))

    def create_checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """Persist one pending order per seller and open a payment session.

        Raises:
            ValidationError: empty cart, missing/invalid buyer email or address.
            RateLimitExceeded: too many checkouts by this buyer.
            StockError: at least one product lacks stock; nothing persisted.
            GatewayError: orders were persisted but the gateway session failed.
        """
        if not request.items:
            raise EmptyCartError({"cart": ["Cart is empty"]})
        _validate(request)

        if request.idempotency_key:
            existing = current_domain.repository_for(CheckoutSession).find_by_idempotency_key(request.idempotency_key)
            if existing is not None:
                return self._resume(existing)

        if self.rate_limiter is not None:
            self.rate_limiter.check(request.buyer.email.strip().lower())

        self._check_stock(request.items)

        groups = split_cart(request.items)
        accounts = [self.seller_directory.payment_account(group.seller_id) for group in groups]
        split = all(account.can_receive_split_payments for account in accounts)
        payment_mode = PaymentMode.SPLIT if split else PaymentMode.PLATFORM_COLLECT

        address = request.shipping_address
        region = self.pricing.resolve_region(address.get("country"), address.get("state"))

        priced_groups = []
        total = Decimal("0")
        for group, account in zip(groups, accounts):
            pricing = self.pricing.price_group(
                group,
                region,
                shipping_selection=request.seller_shipping_selections.get(group.seller_id),
                fee_rate_override=account.fee_rate_override if split else None,
            ).rounded()
            total += pricing["total"]
            priced_groups.append(
                {
                    "seller_id": group.seller_id,
                    "items": [
                        {
                            "product_id": item.product_id,
                            "display_name": item.display_name,
                            "quantity": item.quantity,
                            "unit_price": str(item.unit_price),
                        }
                        for item in group.items
                    ],
                    "pricing": {key: str(value) for key, value in pricing.items()},
                }
            )

        checkout_id = str(uuid4())
        buyer = request.buyer
        result = current_domain.process(
            PlaceCheckout(
                checkout_id=checkout_id,
                request_key=request.idempotency_key,
                order_number=generate_order_number(self._clock()),
                order_group_id=generate_order_group_id(),
                payment_mode=payment_mode.value,
                buyer=json.dumps({"name": buyer.name, "email": buyer.email.strip(), "phone": buyer.phone}),
                shipping_address=json.dumps(request.shipping_address),
                billing_address=json.dumps(request.billing_address) if request.billing_address else None,
                groups=json.dumps(priced_groups),
                total=float(total),
                currency=self.pricing.settings.currency,
                notes=request.notes,
            ),
            asynchronous=False,
        )

        checkout = current_domain.repository_for(CheckoutSession).get(result["checkout_id"])
        return self._open_gateway_session(checkout)

    def _check_stock(self, items: list[CartItem]):
        levels = self.stock.validate_stock(stock_requests(items))
        shortfalls = [
            StockShortfall(product_id=level.product_id, requested=level.requested, available=level.available)
            for level in levels
            if level.shortfall > 0
        ]
        if shortfalls:
            logger.info(
                "Checkout rejected for insufficient stock",
                shortfalls=[shortfall.to_dict() for shortfall in shortfalls],
            )
            raise StockError(shortfalls)

    def _resume(self, checkout: CheckoutSession) -> CheckoutResult:
        """Replay of an idempotency key: return the stored result or retry the gateway."""
        if checkout.has_gateway_session:
            logger.info(
                "Checkout replayed from idempotency key",
                checkout_id=str(checkout.id),
                order_group_id=checkout.order_group_id,
            )
            return self._result(checkout)

        logger.info("Retrying gateway session for existing checkout", checkout_id=str(checkout.id))
        return self._open_gateway_session(checkout)

    def _gateway_request(self, checkout: CheckoutSession) -> CheckoutSessionRequest:
        orders = [get_order(order_id) for order_id in checkout.order_id_list]

        line_items = [
            GatewayLineItem(
                name=item.display_name or str(item.product_id),
                unit_amount=round_money(item.unit_price),
                quantity=item.quantity,
            )
            for order in orders
            for item in order.items
        ]
        tax = sum((round_money(order.tax or 0) for order in orders), Decimal("0"))
        if tax > 0:
            line_items.append(GatewayLineItem(name="Tax", unit_amount=tax, quantity=1))
        shipping = sum((round_money(order.shipping or 0) for order in orders), Decimal("0"))

        split = checkout.payment_mode == PaymentMode.SPLIT.value
        return CheckoutSessionRequest(
            line_items=line_items,
            shipping_hint=shipping,
            success_url=self.settings.success_url,
            cancel_url=self.settings.cancel_url,
            currency=checkout.currency,
            customer_email=checkout.buyer_email,
            metadata={
                "checkout_id": str(checkout.id),
                "order_group_id": checkout.order_group_id,
                "order_number": checkout.order_number,
                "order_ids": ",".join(checkout.order_id_list),
                "payment_mode": checkout.payment_mode,
            },
            idempotency_key=f"checkout-{checkout.id}",
            transfer_group=checkout.order_group_id if split else None,
        )

    def _open_gateway_session(self, checkout: CheckoutSession) -> CheckoutResult:
        checkout_id = str(checkout.id)

        if self.synthetic_sessions:
            session_id = f"cs_synthetic_{checkout_id}"
            url = self.settings.success_url.replace("{CHECKOUT_SESSION_ID}", session_id)
            synthetic = True
        else:
            response = self.gateway.create_checkout_session(self._gateway_request(checkout))
            if not response.success:
                logger.error(
                    "Gateway session request failed",
                    checkout_id=checkout_id,
                    order_group_id=checkout.order_group_id,
                    reason=response.failure_reason,
                )
                current_domain.process(
                    MarkGatewayFailed(checkout_id=checkout_id, reason=response.failure_reason),
                    asynchronous=False,
                )
                raise GatewayError(
                    response.failure_reason or "Payment gateway rejected the checkout session",
                    checkout_id=checkout_id,
                    order_ids=checkout.order_id_list,
                )
            session_id, url, synthetic = response.session_id, response.url, False

        current_domain.process(
            AttachGatewaySession(
                checkout_id=checkout_id,
                gateway_session_id=session_id,
                redirect_url=url,
                synthetic=synthetic,
            ),
            asynchronous=False,
        )
        checkout = current_domain.repository_for(CheckoutSession).get(checkout_id)
        logger.info(
            "Checkout session opened",
            checkout_id=checkout_id,
            order_group_id=checkout.order_group_id,
            gateway_session_id=session_id,
            synthetic=synthetic,
        )
        return self._result(checkout)

    @staticmethod
    def _result(checkout: CheckoutSession) -> CheckoutResult:
        return CheckoutResult(
            checkout_id=str(checkout.id),
            session_id=checkout.gateway_session_id,
            redirect_url=checkout.redirect_url,
            order_ids=checkout.order_id_list,
            order_group_id=checkout.order_group_id,
            order_number=checkout.order_number,
            payment_mode=checkout.payment_mode,
            total=round_money(checkout.total),
            currency=checkout.currency,
            synthetic=bool(checkout.synthetic),
        )
