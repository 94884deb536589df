"""Message templates — one per NotificationKind.

Each template renders a subject and body from a plain-data order snapshot.
"""

from marketplace.notification.kinds import NotificationKind


def _item_lines(context: dict) -> str:
    return "\n".join(
        f"  {item['quantity']} x {item['display_name'] or item['product_id']} @ {item['unit_price']}"
        for item in context.get("items", [])
    )


class SellerNewOrderTemplate:
    kind = NotificationKind.SELLER_NEW_ORDER

    @staticmethod
    def render(context: dict) -> dict:
        address = context.get("shipping_address") or {}
        return {
            "subject": f"New order {context['order_number']}",
            "body": (
                f"You have a new paid order {context['order_number']}.\n\n"
                f"{_item_lines(context)}\n\n"
                f"Total: {context['currency']} {context['total']}\n"
                f"Ship to: {address.get('recipient') or context.get('buyer_name') or ''}, "
                f"{address.get('street', '')}, {address.get('city', '')} {address.get('postal_code', '')}"
            ),
        }


class OrderConfirmationTemplate:
    kind = NotificationKind.ORDER_CONFIRMATION

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Order {context['order_number']} confirmed",
            "body": (
                f"Your payment was received and order {context['order_number']} is being prepared.\n\n"
                f"{_item_lines(context)}\n\n"
                f"Subtotal: {context['subtotal']}\n"
                f"Tax: {context['tax']}\n"
                f"Shipping: {context['shipping']}\n"
                f"Order Total: {context['currency']} {context['total']}"
            ),
        }


class ShippingUpdateTemplate:
    kind = NotificationKind.SHIPPING_UPDATE

    @staticmethod
    def render(context: dict) -> dict:
        tracking_number = context.get("tracking_number") or "N/A"
        return {
            "subject": f"Order {context['order_number']} has shipped",
            "body": (
                f"Great news! Your order {context['order_number']} has shipped.\n\n"
                f"Tracking Number: {tracking_number}"
            ),
        }


class OrderDeliveredTemplate:
    kind = NotificationKind.ORDER_DELIVERED

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Order {context['order_number']} delivered",
            "body": f"Your order {context['order_number']} was delivered. Enjoy!",
        }


class ReviewInvitationTemplate:
    kind = NotificationKind.REVIEW_INVITATION

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": "How was your order?",
            "body": (
                f"Tell other buyers what you think about the products in order {context['order_number']}.\n\n"
                f"{_item_lines(context)}"
            ),
        }


class OrderCancelledTemplate:
    kind = NotificationKind.ORDER_CANCELLED

    @staticmethod
    def render(context: dict) -> dict:
        reason = context.get("cancellation_notes") or context.get("notes") or context.get("cancellation_reason")
        body = f"Order {context['order_number']} has been cancelled."
        if reason:
            body += f"\n\nReason: {reason}"
        return {"subject": f"Order {context['order_number']} cancelled", "body": body}


class RefundIssuedTemplate:
    kind = NotificationKind.REFUND_ISSUED

    @staticmethod
    def render(context: dict) -> dict:
        amount = context.get("refund_amount", context["total"])
        return {
            "subject": f"Refund for order {context['order_number']}",
            "body": (
                f"A refund of {context['currency']} {amount} for order {context['order_number']} "
                "has been issued to your original payment method."
            ),
        }


class CancellationRequestedTemplate:
    kind = NotificationKind.CANCELLATION_REQUESTED

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Cancellation requested for order {context['order_number']}",
            "body": (
                f"The buyer asked to cancel order {context['order_number']}.\n\n"
                f"Reason: {context.get('cancellation_reason') or 'not given'}\n\n"
                "Approve or reject the request from your dashboard."
            ),
        }


class CancellationRejectedTemplate:
    kind = NotificationKind.CANCELLATION_REJECTED

    @staticmethod
    def render(context: dict) -> dict:
        body = f"Your cancellation request for order {context['order_number']} was declined."
        if context.get("cancellation_notes"):
            body += f"\n\nSeller notes: {context['cancellation_notes']}"
        return {"subject": f"Cancellation request for order {context['order_number']}", "body": body}


class PaymentFailedTemplate:
    kind = NotificationKind.PAYMENT_FAILED

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "subject": f"Payment for order {context['order_number']} failed",
            "body": (
                f"We could not process the payment for order {context['order_number']}, "
                "so the order was cancelled. No charge was made."
            ),
        }


TEMPLATE_REGISTRY: dict[NotificationKind, type] = {
    template.kind: template
    for template in (
        SellerNewOrderTemplate,
        OrderConfirmationTemplate,
        ShippingUpdateTemplate,
        OrderDeliveredTemplate,
        ReviewInvitationTemplate,
        OrderCancelledTemplate,
        RefundIssuedTemplate,
        CancellationRequestedTemplate,
        CancellationRejectedTemplate,
        PaymentFailedTemplate,
    )
}


def get_template(kind: NotificationKind):
    """Look up a template class by notification kind."""
    template_cls = TEMPLATE_REGISTRY.get(kind)
    if template_cls is None:
        raise ValueError(f"No template registered for notification kind: {kind}")
    return template_cls
