"""Tests for the PlatformFeeRecord aggregate."""

import pytest

from marketplace.exceptions import InvalidStateError
from marketplace.fee.platform_fee import FeeStatus, PlatformFeeRecord

PRICING = {
    "total": "331.00",
    "fee_rate": "10.0",
    "fee_amount": "20.00",
    "seller_net_amount": "311.00",
    "currency": "MXN",
}


def _record():
    return PlatformFeeRecord.record(order_id="order-1", seller_id="seller-a", order_group_id="g-1", pricing=PRICING)


class TestPlatformFeeRecord:
    def test_recorded_pending(self):
        record = _record()
        assert record.status == FeeStatus.PENDING.value
        assert record.order_total == 331.0
        assert record.fee_rate == 10.0
        assert record.fee_amount == 20.0
        assert record.seller_net_amount == 311.0

    def test_collect(self):
        record = _record()
        record.collect()
        assert record.status == FeeStatus.COLLECTED.value
        assert record.settled_at is not None

    def test_fail(self):
        record = _record()
        record.fail()
        assert record.status == FeeStatus.FAILED.value

    def test_settles_only_once(self):
        record = _record()
        record.collect()
        with pytest.raises(InvalidStateError):
            record.collect()
        with pytest.raises(InvalidStateError):
            record.fail()
        assert record.status == FeeStatus.COLLECTED.value
