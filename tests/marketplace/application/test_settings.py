"""Tests for settings loaded from domain config and the environment."""

from decimal import Decimal

from marketplace.settings import load_settings


class TestLoadSettings:
    def test_pricing_defaults_from_domain_config(self):
        settings = load_settings()
        assert settings.pricing.currency == "MXN"
        assert settings.pricing.default_tax_rate == Decimal("16.0")
        assert settings.pricing.default_shipping_cost == Decimal("99.0")
        assert settings.pricing.platform_fee_rate == Decimal("10.0")
        assert settings.pricing.free_shipping_threshold is None
        assert settings.pricing.tax_rates["MX-BC"] == Decimal("8.0")

    def test_environment(self):
        settings = load_settings()
        assert settings.environment == "test"
        assert settings.gateway == "fake"
        assert not settings.is_production

    def test_synthetic_checkout_flag(self, monkeypatch):
        monkeypatch.setenv("MARKETPLACE_SYNTHETIC_CHECKOUT", "1")
        assert load_settings().synthetic_checkout

    def test_synthetic_checkout_never_in_production(self, monkeypatch):
        monkeypatch.setenv("MARKETPLACE_SYNTHETIC_CHECKOUT", "1")
        monkeypatch.setenv("PROTEAN_ENV", "production")
        settings = load_settings()
        assert settings.is_production
        assert not settings.synthetic_checkout
        assert settings.gateway == "stripe"
