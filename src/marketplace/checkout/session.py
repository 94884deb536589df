"""CheckoutSession aggregate — reconciliation record for one checkout.

Maps a gateway session back to the orders created for it, remembers the
caller's idempotency key and records how the checkout ended.

State Machine:
    OPEN → COMPLETED        (payment callback: paid)
    OPEN → PAYMENT_FAILED   (payment callback: failed / expired)
    OPEN → GATEWAY_FAILED   (session request to the gateway failed)
    GATEWAY_FAILED → OPEN   (gateway request retried with the same key)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Float, String, Text

from marketplace.domain import marketplace
from marketplace.exceptions import InvalidStateError


class CheckoutStatus(Enum):
    OPEN = "open"
    GATEWAY_FAILED = "gateway_failed"
    COMPLETED = "completed"
    PAYMENT_FAILED = "payment_failed"


_FINAL_STATUSES = {CheckoutStatus.COMPLETED.value, CheckoutStatus.PAYMENT_FAILED.value}


@marketplace.aggregate
class CheckoutSession:
    idempotency_key = String(max_length=255)
    buyer_email = String(required=True, max_length=254)
    order_group_id = String(required=True, max_length=64)
    order_number = String(required=True, max_length=40)
    order_ids = Text(required=True)  # JSON: ordered list of order ids
    payment_mode = String(required=True, max_length=20)
    total = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="MXN")
    status = String(choices=CheckoutStatus, default=CheckoutStatus.OPEN.value)
    gateway_session_id = String(max_length=255)
    redirect_url = String(max_length=2048)
    synthetic = Boolean(default=False)
    failure_reason = String(max_length=500)
    payment_status = String(max_length=50)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(
        cls,
        checkout_id,
        buyer_email,
        order_group_id,
        order_number,
        order_ids,
        payment_mode,
        total,
        currency,
        idempotency_key=None,
    ):
        now = datetime.now(UTC)
        return cls(
            id=checkout_id,
            idempotency_key=idempotency_key,
            buyer_email=buyer_email,
            order_group_id=order_group_id,
            order_number=order_number,
            order_ids=json.dumps([str(order_id) for order_id in order_ids]),
            payment_mode=payment_mode,
            total=float(total),
            currency=currency,
            status=CheckoutStatus.OPEN.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def order_id_list(self) -> list[str]:
        return json.loads(self.order_ids) if self.order_ids else []

    @property
    def has_gateway_session(self) -> bool:
        return bool(self.gateway_session_id)

    @property
    def is_finalized(self) -> bool:
        return self.status in _FINAL_STATUSES

    def attach_gateway_session(self, session_id, url, synthetic=False):
        if self.is_finalized:
            raise InvalidStateError({"status": [f"Checkout is already {self.status}"]})
        self.gateway_session_id = session_id
        self.redirect_url = url
        self.synthetic = synthetic
        self.status = CheckoutStatus.OPEN.value
        self.failure_reason = None
        self.updated_at = datetime.now(UTC)

    def mark_gateway_failed(self, reason):
        if self.is_finalized:
            raise InvalidStateError({"status": [f"Checkout is already {self.status}"]})
        self.status = CheckoutStatus.GATEWAY_FAILED.value
        self.failure_reason = (reason or "")[:500]
        self.updated_at = datetime.now(UTC)

    def finalize(self, paid: bool, payment_status: str):
        if self.is_finalized:
            raise InvalidStateError({"status": [f"Checkout is already {self.status}"]})
        self.status = CheckoutStatus.COMPLETED.value if paid else CheckoutStatus.PAYMENT_FAILED.value
        self.payment_status = payment_status
        self.updated_at = datetime.now(UTC)


@marketplace.repository(part_of=CheckoutSession)
class CheckoutSessionRepository:
    def find_by_idempotency_key(self, idempotency_key: str) -> CheckoutSession | None:
        sessions = self._dao.query.filter(idempotency_key=idempotency_key).limit(None).all().items
        return sessions[0] if sessions else None

    def find_by_gateway_session(self, gateway_session_id: str) -> CheckoutSession | None:
        sessions = self._dao.query.filter(gateway_session_id=gateway_session_id).limit(None).all().items
        return sessions[0] if sessions else None
