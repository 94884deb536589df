"""Tests for splitting a cart into seller groups."""

from decimal import Decimal

import pytest
from protean.exceptions import ValidationError

from marketplace.checkout.splitter import CartItem, cart_subtotal, split_cart
from marketplace.exceptions import EmptyCartError


def _item(product_id, seller_id, quantity=1, unit_price="10.00"):
    return CartItem(product_id=product_id, seller_id=seller_id, quantity=quantity, unit_price=unit_price)


class TestSplitCart:
    def test_groups_follow_first_seen_seller_order(self):
        items = [
            _item("p1", "seller-b"),
            _item("p2", "seller-a"),
            _item("p3", "seller-b"),
            _item("p4", "seller-c"),
        ]
        groups = split_cart(items)
        assert [g.seller_id for g in groups] == ["seller-b", "seller-a", "seller-c"]
        assert [i.product_id for i in groups[0].items] == ["p1", "p3"]

    def test_every_item_lands_in_exactly_one_group(self):
        items = [_item(f"p{n}", f"seller-{n % 3}") for n in range(9)]
        groups = split_cart(items)
        grouped = [item for group in groups for item in group.items]
        assert sorted(i.product_id for i in grouped) == sorted(i.product_id for i in items)

    def test_duplicate_product_lines_are_not_merged(self):
        items = [_item("p1", "seller-a", 1), _item("p1", "seller-a", 2)]
        groups = split_cart(items)
        assert len(groups) == 1
        assert [i.quantity for i in groups[0].items] == [1, 2]

    def test_empty_cart_raises(self):
        with pytest.raises(EmptyCartError) as exc:
            split_cart([])
        assert "cart" in exc.value.messages

    def test_empty_cart_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            split_cart([])

    def test_group_subtotal_sums_line_totals(self):
        groups = split_cart([_item("p1", "s", 2, "100.00"), _item("p2", "s", 3, "0.10")])
        assert groups[0].subtotal == Decimal("200.30")


class TestCartItem:
    def test_unit_price_is_coerced_to_decimal(self):
        item = _item("p1", "s", 3, 19.99)
        assert item.unit_price == Decimal("19.99")
        assert item.line_total == Decimal("59.97")

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_rejects_non_positive_or_non_integer_quantity(self, quantity):
        with pytest.raises(ValidationError) as exc:
            _item("p1", "s", quantity)
        assert "quantity" in exc.value.messages

    @pytest.mark.parametrize("price", ["0.333", "19.995", "0.001"])
    def test_rejects_sub_cent_price(self, price):
        with pytest.raises(ValidationError) as exc:
            _item("p1", "s", 3, price)
        assert "unit_price" in exc.value.messages

    @pytest.mark.parametrize("price", ["0", "-5", "abc", "NaN"])
    def test_rejects_non_positive_price(self, price):
        with pytest.raises(ValidationError) as exc:
            _item("p1", "s", 1, price)
        assert "unit_price" in exc.value.messages

    def test_requires_seller(self):
        with pytest.raises(ValidationError) as exc:
            _item("p1", "")
        assert "seller_id" in exc.value.messages

    def test_cart_subtotal(self):
        assert cart_subtotal([_item("p1", "a", 2, "100"), _item("p2", "b", 1, "50")]) == Decimal("250")
