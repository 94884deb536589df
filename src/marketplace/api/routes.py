"""FastAPI routes for the marketplace — checkout, orders and cancellations."""

import json

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from marketplace.api.schemas import (
    CheckoutResponse,
    CreateCheckoutRequest,
    OrderGroupResponse,
    OrderLineItemResponse,
    OrderResponse,
    RequestCancellationRequest,
    ResolveCancellationRequest,
    StatusCountsResponse,
    StatusResponse,
    TaxBreakdownResponse,
    TransitionOrderRequest,
    WebhookResponse,
)
from marketplace.checkout.builder import BuyerInfo, CheckoutRequest
from marketplace.checkout.finalization import callback_from_event
from marketplace.checkout.splitter import CartItem
from marketplace.order.repository import get_order, orders_by_number, status_counts
from marketplace.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def _order_response(order) -> OrderResponse:
    breakdown = order.tax_breakdown
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        order_group_id=order.order_group_id,
        seller_id=str(order.seller_id),
        status=order.status,
        payment_status=order.payment_status,
        payment_mode=order.payment_mode,
        subtotal=order.subtotal,
        tax=order.tax or 0.0,
        tax_breakdown=(
            TaxBreakdownResponse(rate=breakdown.rate, amount=breakdown.amount, region_code=breakdown.region_code)
            if breakdown
            else None
        ),
        shipping=order.shipping or 0.0,
        total=order.total,
        currency=order.currency,
        cancellation_status=order.cancellation_status,
        cancellation_reason=order.cancellation_reason,
        cancellation_notes=order.cancellation_notes,
        tracking_number=order.tracking_number,
        notes=order.notes,
        items=[
            OrderLineItemResponse(
                product_id=str(item.product_id),
                display_name=item.display_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in order.items
        ],
    )


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
def create_checkout(body: CreateCheckoutRequest, services: Services = Depends(get_services)) -> CheckoutResponse:
    request = CheckoutRequest(
        items=[
            CartItem(
                product_id=item.product_id,
                seller_id=item.seller_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                display_name=item.display_name,
            )
            for item in body.items
        ],
        buyer=BuyerInfo(email=body.buyer.email, name=body.buyer.name, phone=body.buyer.phone),
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        seller_shipping_selections=dict(body.seller_shipping_selections),
        idempotency_key=body.idempotency_key,
        notes=body.notes,
    )
    result = services.checkout.create_checkout(request)
    return CheckoutResponse(
        checkout_id=result.checkout_id,
        session_id=result.session_id,
        redirect_url=result.redirect_url,
        order_ids=result.order_ids,
        order_group_id=result.order_group_id,
        order_number=result.order_number,
        payment_mode=result.payment_mode,
        total=result.total,
        currency=result.currency,
    )


@checkout_router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
    services: Services = Depends(get_services),
) -> WebhookResponse:
    """Settle a checkout from the payment gateway's callback."""
    payload = await request.body()
    if not services.gateway.verify_webhook_signature(payload, stripe_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from None

    callback = callback_from_event(event)
    if callback is None:
        return WebhookResponse(status="ignored")

    session_id, payment_status = callback
    # May call the gateway to refund a late payment
    settled = await run_in_threadpool(services.payments.finalize_from_callback, session_id, payment_status)
    return WebhookResponse(settled=settled)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/number/{order_number}", response_model=OrderGroupResponse)
async def get_orders_by_number(order_number: str) -> OrderGroupResponse:
    """All seller orders of one checkout."""
    orders = orders_by_number(order_number)
    return OrderGroupResponse(
        order_number=order_number,
        order_group_id=orders[0].order_group_id,
        orders=[_order_response(order) for order in orders],
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_by_id(order_id: str) -> OrderResponse:
    return _order_response(get_order(order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def transition_order(
    order_id: str,
    body: TransitionOrderRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    services.fulfillment.transition(order_id, body.status, notes=body.notes, tracking_number=body.tracking_number)
    return _order_response(get_order(order_id))


@order_router.post("/{order_id}/cancellation", response_model=OrderResponse)
async def request_cancellation(
    order_id: str,
    body: RequestCancellationRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.cancellations.request_cancellation(order_id, body.reason)
    return _order_response(order)


@order_router.put("/{order_id}/cancellation", response_model=OrderResponse)
def resolve_cancellation(
    order_id: str,
    body: ResolveCancellationRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.cancellations.resolve_cancellation(order_id, body.decision, notes=body.notes)
    return _order_response(order)


# ---------------------------------------------------------------------------
# Seller Router
# ---------------------------------------------------------------------------
seller_router = APIRouter(prefix="/sellers", tags=["sellers"])


@seller_router.get("/{seller_id}/orders/stats", response_model=StatusCountsResponse)
async def seller_order_stats(seller_id: str) -> StatusCountsResponse:
    return StatusCountsResponse(seller_id=seller_id, counts=status_counts(seller_id))
