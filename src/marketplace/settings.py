"""Runtime settings for the marketplace core.

Values come from the ``[custom]`` section of ``domain.toml`` with the
defaults below; a few deployment switches are read from the environment.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal

from marketplace.domain import marketplace

DEFAULT_TAX_RATES = {
    "MX": "16.0",
    "MX-BC": "8.0",
    "MX-BCS": "8.0",
    "MX-SON": "8.0",
    "MX-CHH": "8.0",
    "MX-TAM": "8.0",
}


def _decimal(value) -> Decimal:
    return Decimal(str(value))


@dataclass(frozen=True)
class PricingSettings:
    """Rates and flat amounts used by the pricing engine.

    Rates are percentages. ``free_shipping_threshold`` is disabled (None)
    unless configured.
    """

    currency: str = "MXN"
    default_tax_rate: Decimal = Decimal("16.0")
    tax_rates: dict[str, Decimal] = field(default_factory=lambda: {k: Decimal(v) for k, v in DEFAULT_TAX_RATES.items()})
    default_shipping_cost: Decimal = Decimal("99.00")
    free_shipping_threshold: Decimal | None = None
    platform_fee_rate: Decimal = Decimal("10.0")


@dataclass(frozen=True)
class Settings:
    pricing: PricingSettings = field(default_factory=PricingSettings)
    success_url: str = "http://localhost:3000/success?session_id={CHECKOUT_SESSION_ID}"
    cancel_url: str = "http://localhost:3000/checkout/cancel"
    notification_workers: int = 4
    notification_max_pending: int = 256
    checkout_rate_limit: int = 10
    checkout_rate_window_seconds: int = 60
    gateway: str = "fake"
    stripe_api_key: str | None = None
    stripe_webhook_secret: str | None = None
    synthetic_checkout: bool = False
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _custom_config() -> dict:
    custom = marketplace.config.get("custom") or {}
    return dict(custom)


def load_settings() -> Settings:
    """Build settings from domain config and environment variables."""
    custom = _custom_config()
    environment = os.environ.get("PROTEAN_ENV", "development").lower()

    tax_rates = {k: Decimal(v) for k, v in DEFAULT_TAX_RATES.items()}
    tax_rates.update({str(k).upper(): _decimal(v) for k, v in (custom.get("tax_rates") or {}).items()})

    threshold = custom.get("free_shipping_threshold")
    pricing = PricingSettings(
        currency=str(custom.get("currency", "MXN")).upper(),
        default_tax_rate=_decimal(custom.get("default_tax_rate", "16.0")),
        tax_rates=tax_rates,
        default_shipping_cost=_decimal(custom.get("default_shipping_cost", "99.00")),
        free_shipping_threshold=_decimal(threshold) if threshold is not None else None,
        platform_fee_rate=_decimal(custom.get("platform_fee_rate", "10.0")),
    )

    # Synthetic checkout sessions are a test/automation bypass and can never
    # be switched on in production.
    synthetic = os.environ.get("MARKETPLACE_SYNTHETIC_CHECKOUT") == "1" and environment != "production"

    return Settings(
        pricing=pricing,
        success_url=custom.get("success_url", Settings.success_url),
        cancel_url=custom.get("cancel_url", Settings.cancel_url),
        notification_workers=int(custom.get("notification_workers", 4)),
        notification_max_pending=int(custom.get("notification_max_pending", 256)),
        checkout_rate_limit=int(custom.get("checkout_rate_limit", 10)),
        checkout_rate_window_seconds=int(custom.get("checkout_rate_window_seconds", 60)),
        gateway=os.environ.get("MARKETPLACE_GATEWAY", "stripe" if environment == "production" else "fake"),
        stripe_api_key=os.environ.get("STRIPE_API_KEY"),
        stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET"),
        synthetic_checkout=synthetic,
        environment=environment,
    )
