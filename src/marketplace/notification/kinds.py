"""Closed set of notification kinds and recipient roles."""

from enum import Enum


class NotificationKind(Enum):
    SELLER_NEW_ORDER = "seller_new_order"
    ORDER_CONFIRMATION = "order_confirmation"
    SHIPPING_UPDATE = "shipping_update"
    ORDER_DELIVERED = "order_delivered"
    REVIEW_INVITATION = "review_invitation"
    ORDER_CANCELLED = "order_cancelled"
    REFUND_ISSUED = "refund_issued"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLATION_REJECTED = "cancellation_rejected"
    PAYMENT_FAILED = "payment_failed"


class RecipientRole(Enum):
    BUYER = "buyer"
    SELLER = "seller"
