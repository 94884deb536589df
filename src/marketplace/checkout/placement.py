"""Checkout placement — commands and handler that persist a checkout.

``PlaceCheckout`` writes every seller order, every platform fee record and
the CheckoutSession inside one unit of work, so a checkout is persisted
completely or not at all. The gateway outcome is recorded afterwards with
``AttachGatewaySession`` or ``MarkGatewayFailed``.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.checkout.session import CheckoutSession
from marketplace.domain import marketplace
from marketplace.fee.platform_fee import PlatformFeeRecord
from marketplace.order.order import Order, PaymentMode

logger = structlog.get_logger(__name__)


def _load(value):
    return json.loads(value) if isinstance(value, str) else value


@marketplace.command(part_of="CheckoutSession")
class PlaceCheckout:
    checkout_id = Identifier(required=True)
    request_key = String(max_length=255)  # caller idempotency key
    order_number = String(required=True, max_length=40)
    order_group_id = String(required=True, max_length=64)
    payment_mode = String(required=True, max_length=20)
    buyer = Text(required=True)  # JSON: {name, email, phone}
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict
    groups = Text(required=True)  # JSON: [{seller_id, items: [...], pricing: {...}}]
    total = Float(required=True)
    currency = String(max_length=3, default="MXN")
    notes = Text()


@marketplace.command(part_of="CheckoutSession")
class AttachGatewaySession:
    checkout_id = Identifier(required=True)
    gateway_session_id = String(required=True, max_length=255)
    redirect_url = String(required=True, max_length=2048)
    synthetic = Boolean(default=False)


@marketplace.command(part_of="CheckoutSession")
class MarkGatewayFailed:
    checkout_id = Identifier(required=True)
    reason = String(max_length=500)


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutPlacementHandler:
    @handle(PlaceCheckout)
    def place_checkout(self, command):
        buyer = _load(command.buyer)
        shipping_address = _load(command.shipping_address)
        billing_address = _load(command.billing_address) if command.billing_address else None
        groups = _load(command.groups)
        split = command.payment_mode == PaymentMode.SPLIT.value

        order_repo = current_domain.repository_for(Order)
        fee_repo = current_domain.repository_for(PlatformFeeRecord)

        order_ids = []
        for position, group in enumerate(groups):
            order = Order.place(
                order_number=command.order_number,
                order_group_id=command.order_group_id,
                seller_id=group["seller_id"],
                payment_mode=command.payment_mode,
                items_data=group["items"],
                pricing=group["pricing"],
                buyer=buyer,
                shipping_address=shipping_address,
                billing_address=billing_address,
                group_position=position,
                checkout_id=command.checkout_id,
                notes=command.notes,
            )
            order_repo.add(order)
            order_ids.append(str(order.id))

            if split:
                fee_repo.add(
                    PlatformFeeRecord.record(
                        order_id=str(order.id),
                        seller_id=group["seller_id"],
                        order_group_id=command.order_group_id,
                        pricing=group["pricing"],
                    )
                )

        session = CheckoutSession.open(
            checkout_id=command.checkout_id,
            buyer_email=buyer["email"],
            order_group_id=command.order_group_id,
            order_number=command.order_number,
            order_ids=order_ids,
            payment_mode=command.payment_mode,
            total=command.total,
            currency=command.currency,
            idempotency_key=command.request_key,
        )
        current_domain.repository_for(CheckoutSession).add(session)

        logger.info(
            "Checkout placed",
            checkout_id=str(command.checkout_id),
            order_group_id=command.order_group_id,
            order_number=command.order_number,
            order_count=len(order_ids),
            payment_mode=command.payment_mode,
        )
        return {"checkout_id": str(command.checkout_id), "order_ids": order_ids}

    @handle(AttachGatewaySession)
    def attach_gateway_session(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.checkout_id)
        session.attach_gateway_session(command.gateway_session_id, command.redirect_url, synthetic=command.synthetic)
        repo.add(session)

    @handle(MarkGatewayFailed)
    def mark_gateway_failed(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.checkout_id)
        session.mark_gateway_failed(command.reason)
        repo.add(session)
