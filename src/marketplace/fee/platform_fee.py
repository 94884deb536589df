"""PlatformFeeRecord aggregate — the platform's commission on one order.

Recorded only for checkouts paid in split-payment mode, one per order.

State Machine:
    PENDING → COLLECTED   (payment confirmed)
    PENDING → FAILED      (payment failed or expired)
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace
from marketplace.exceptions import InvalidStateError


class FeeStatus(Enum):
    PENDING = "pending"
    COLLECTED = "collected"
    FAILED = "failed"


@marketplace.aggregate
class PlatformFeeRecord:
    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    order_group_id = String(required=True, max_length=64)
    order_total = Float(required=True, min_value=0.0)
    fee_rate = Float(required=True, min_value=0.0)
    fee_amount = Float(required=True, min_value=0.0)
    seller_net_amount = Float(required=True)
    currency = String(max_length=3, default="MXN")
    status = String(choices=FeeStatus, default=FeeStatus.PENDING.value)
    created_at = DateTime()
    settled_at = DateTime()

    @classmethod
    def record(cls, order_id, seller_id, order_group_id, pricing):
        """Create a pending fee record from a seller group's rounded pricing."""
        return cls(
            order_id=order_id,
            seller_id=seller_id,
            order_group_id=order_group_id,
            order_total=float(pricing["total"]),
            fee_rate=float(pricing["fee_rate"]),
            fee_amount=float(pricing["fee_amount"]),
            seller_net_amount=float(pricing["seller_net_amount"]),
            currency=pricing["currency"],
            status=FeeStatus.PENDING.value,
            created_at=datetime.now(UTC),
        )

    def _settle(self, status: FeeStatus):
        if self.status != FeeStatus.PENDING.value:
            raise InvalidStateError({"status": [f"Fee record is already {self.status}"]})
        self.status = status.value
        self.settled_at = datetime.now(UTC)

    def collect(self):
        self._settle(FeeStatus.COLLECTED)

    def fail(self):
        self._settle(FeeStatus.FAILED)


@marketplace.repository(part_of=PlatformFeeRecord)
class PlatformFeeRecordRepository:
    def find_by_order(self, order_id: str) -> list[PlatformFeeRecord]:
        return self._dao.query.filter(order_id=order_id).limit(None).all().items

    def find_by_group(self, order_group_id: str) -> list[PlatformFeeRecord]:
        return self._dao.query.filter(order_group_id=order_group_id).limit(None).all().items
