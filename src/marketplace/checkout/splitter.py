"""Cart splitting — groups cart lines into seller-scoped vendor groups.

Groups keep the order in which each seller first appears in the cart, and
lines keep their cart order inside a group. Duplicate product lines for the
same seller are kept as separate lines.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from protean.exceptions import ValidationError

from marketplace.exceptions import EmptyCartError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class CartItem:
    """A single cart line as supplied by the caller."""

    product_id: str
    seller_id: str
    quantity: int
    unit_price: Decimal
    display_name: str = ""

    def __post_init__(self):
        errors = {}
        if not self.product_id:
            errors["product_id"] = ["Product id is required"]
        if not self.seller_id:
            errors["seller_id"] = ["Seller id is required"]
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            errors["quantity"] = ["Quantity must be a positive integer"]

        try:
            price = Decimal(str(self.unit_price))
        except (ArithmeticError, ValueError):
            price = None
        if price is None or not price.is_finite() or price <= 0:
            errors["unit_price"] = ["Unit price must be greater than zero"]
        elif price != price.quantize(CENT):
            errors["unit_price"] = ["Unit price cannot have more than 2 decimal places"]
        else:
            object.__setattr__(self, "unit_price", price)

        if errors:
            raise ValidationError(errors)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class VendorGroup:
    seller_id: str
    items: list[CartItem] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))


def split_cart(items: list[CartItem]) -> list[VendorGroup]:
    """Group cart lines by seller, preserving first-seen seller order."""
    if not items:
        raise EmptyCartError({"cart": ["Cart is empty"]})

    groups: dict[str, VendorGroup] = {}
    for item in items:
        group = groups.get(item.seller_id)
        if group is None:
            group = groups[item.seller_id] = VendorGroup(seller_id=item.seller_id)
        group.items.append(item)

    return list(groups.values())


def cart_subtotal(items: list[CartItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))
