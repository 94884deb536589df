"""Pydantic request/response schemas for the marketplace API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands and aggregates.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    recipient: str | None = None
    street: str
    apartment: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = Field(min_length=2, max_length=2)
    phone: str | None = None


class BuyerSchema(BaseModel):
    email: str
    name: str | None = None
    phone: str | None = None


class CartItemSchema(BaseModel):
    product_id: str
    seller_id: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(gt=0)
    display_name: str = ""


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CreateCheckoutRequest(BaseModel):
    items: list[CartItemSchema]
    buyer: BuyerSchema
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    seller_shipping_selections: dict[str, Decimal] = Field(default_factory=dict)
    idempotency_key: str | None = Field(default=None, max_length=255)
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"product_id": "prod-001", "seller_id": "seller-a", "quantity": 2, "unit_price": "100.00"},
                        {"product_id": "prod-002", "seller_id": "seller-b", "quantity": 1, "unit_price": "50.00"},
                    ],
                    "buyer": {"email": "ana@example.com", "name": "Ana"},
                    "shipping_address": {
                        "street": "Av. Reforma 1",
                        "city": "CDMX",
                        "state": "CMX",
                        "postal_code": "06600",
                        "country": "MX",
                    },
                    "idempotency_key": "cart-7f1c",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    checkout_id: str
    session_id: str
    redirect_url: str
    order_ids: list[str]
    order_group_id: str
    order_number: str
    payment_mode: str
    total: Decimal
    currency: str


class WebhookResponse(BaseModel):
    status: str = "ok"
    settled: bool = False


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineItemResponse(BaseModel):
    product_id: str
    display_name: str | None = None
    quantity: int
    unit_price: float
    line_total: float


class TaxBreakdownResponse(BaseModel):
    rate: float
    amount: float
    region_code: str


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    order_group_id: str
    seller_id: str
    status: str
    payment_status: str
    payment_mode: str
    subtotal: float
    tax: float
    tax_breakdown: TaxBreakdownResponse | None = None
    shipping: float
    total: float
    currency: str
    cancellation_status: str
    cancellation_reason: str | None = None
    cancellation_notes: str | None = None
    tracking_number: str | None = None
    notes: str | None = None
    items: list[OrderLineItemResponse]


class OrderGroupResponse(BaseModel):
    order_number: str
    order_group_id: str
    orders: list[OrderResponse]


class TransitionOrderRequest(BaseModel):
    status: str
    notes: str | None = None
    tracking_number: str | None = Field(default=None, max_length=255)


class RequestCancellationRequest(BaseModel):
    reason: str


class ResolveCancellationRequest(BaseModel):
    decision: str
    notes: str | None = None


class StatusCountsResponse(BaseModel):
    seller_id: str
    counts: dict[str, int]


class StatusResponse(BaseModel):
    status: str = "ok"
