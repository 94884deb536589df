"""Plain-data order snapshots for notification delivery."""


def _address(address) -> dict | None:
    if address is None:
        return None
    return {
        "recipient": address.recipient,
        "street": address.street,
        "apartment": address.apartment,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def snapshot_order(order, extra: dict | None = None) -> dict:
    """Copy what a message needs out of the Order aggregate.

    Taken on the caller's thread, so delivery workers never touch the
    aggregate or need a domain context.
    """
    buyer = order.buyer
    payload = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "order_group_id": order.order_group_id,
        "seller_id": str(order.seller_id),
        "status": order.status,
        "payment_status": order.payment_status,
        "subtotal": f"{order.subtotal:.2f}",
        "tax": f"{order.tax or 0:.2f}",
        "shipping": f"{order.shipping or 0:.2f}",
        "total": f"{order.total:.2f}",
        "currency": order.currency,
        "tracking_number": order.tracking_number,
        "notes": order.notes,
        "cancellation_reason": order.cancellation_reason,
        "cancellation_notes": order.cancellation_notes,
        "buyer_name": buyer.name if buyer else None,
        "buyer_email": buyer.email if buyer else None,
        "items": [
            {
                "product_id": str(item.product_id),
                "display_name": item.display_name,
                "quantity": item.quantity,
                "unit_price": f"{item.unit_price:.2f}",
                "line_total": f"{item.line_total:.2f}",
            }
            for item in order.items
        ],
        "shipping_address": _address(order.shipping_address),
    }
    if extra:
        payload.update(extra)
    return payload
