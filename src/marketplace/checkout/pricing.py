"""Pricing engine — tax, shipping and platform commission per seller group.

All functions are pure. Amounts are kept as unrounded ``Decimal`` values while
they are being combined and are rounded to cents (half away from zero) only
when a ``GroupPricing`` is rounded for persistence or display.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from marketplace.checkout.splitter import VendorGroup
from marketplace.settings import PricingSettings

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(amount) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    """Convert an amount to integer cents, as payment gateways expect."""
    return int(round_money(amount) * HUNDRED)


@dataclass(frozen=True)
class TaxQuote:
    rate: Decimal
    amount: Decimal
    region_code: str


@dataclass(frozen=True)
class GroupPricing:
    """Money for one seller group. Values are unrounded until ``rounded()``."""

    seller_id: str
    currency: str
    subtotal: Decimal
    tax: TaxQuote
    shipping: Decimal
    fee_rate: Decimal
    fee_amount: Decimal

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax.amount + self.shipping

    def rounded(self) -> dict:
        subtotal = round_money(self.subtotal)
        tax = round_money(self.tax.amount)
        shipping = round_money(self.shipping)
        total = subtotal + tax + shipping
        fee_amount = round_money(self.fee_amount)
        return {
            "seller_id": self.seller_id,
            "currency": self.currency,
            "subtotal": subtotal,
            "tax": tax,
            "tax_rate": self.tax.rate,
            "tax_region": self.tax.region_code,
            "shipping": shipping,
            "total": total,
            "fee_rate": self.fee_rate,
            "fee_amount": fee_amount,
            "seller_net_amount": total - fee_amount,
        }


class PricingEngine:
    def __init__(self, settings: PricingSettings):
        self.settings = settings

    def resolve_region(self, country: str | None, state: str | None = None) -> str:
        """Pick the most specific region code known to the rate table.

        Falls back to the country code (or ``DEFAULT``) when neither the
        ``COUNTRY-STATE`` nor the ``COUNTRY`` key has a configured rate.
        """
        country = (country or "").strip().upper()
        state = (state or "").strip().upper()
        if country and state and f"{country}-{state}" in self.settings.tax_rates:
            return f"{country}-{state}"
        return country or "DEFAULT"

    def tax(self, subtotal, region_code: str | None) -> TaxQuote:
        """Tax for a subtotal; unknown regions use the default rate."""
        code = (region_code or "DEFAULT").upper()
        rate = self.settings.tax_rates.get(code, self.settings.default_tax_rate)
        return TaxQuote(rate=rate, amount=Decimal(str(subtotal)) * rate / HUNDRED, region_code=code)

    def shipping(self, subtotal, seller_shipping_selection=None) -> Decimal:
        """Seller-selected shipping cost if present, else the platform flat cost."""
        if seller_shipping_selection is not None:
            return Decimal(str(seller_shipping_selection))

        threshold = self.settings.free_shipping_threshold
        if threshold is not None and Decimal(str(subtotal)) > threshold:
            return Decimal("0")
        return self.settings.default_shipping_cost

    def commission(self, subtotal, fee_rate_override=None) -> tuple[Decimal, Decimal]:
        """Return ``(rate, fee_amount)``; fee_amount = subtotal × rate / 100."""
        rate = Decimal(str(fee_rate_override)) if fee_rate_override is not None else self.settings.platform_fee_rate
        return rate, Decimal(str(subtotal)) * rate / HUNDRED

    def price_group(
        self,
        group: VendorGroup,
        region_code: str | None,
        shipping_selection=None,
        fee_rate_override=None,
    ) -> GroupPricing:
        subtotal = group.subtotal
        fee_rate, fee_amount = self.commission(subtotal, fee_rate_override)
        return GroupPricing(
            seller_id=group.seller_id,
            currency=self.settings.currency,
            subtotal=subtotal,
            tax=self.tax(subtotal, region_code),
            shipping=self.shipping(subtotal, shipping_selection),
            fee_rate=fee_rate,
            fee_amount=fee_amount,
        )
