"""
Tests for billing configuration.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from planwise.billing.config import BillingConfig, PaymentConfig, TaxConfig
from planwise.billing.core.enums import ProrationBehavior
from planwise.settings import Settings, reset_settings


@pytest.mark.unit
class TestBillingConfig:
    """Test billing configuration defaults and loading"""

    def test_defaults(self):
        config = BillingConfig()

        assert config.tax.default_tax_rate == Decimal("0.10")
        assert config.currency.default_currency == "USD"
        assert config.invoice.due_days_default == 14
        assert config.payment.max_retry_attempts == 3
        assert config.payment.simulated_success_rate == 0.9
        assert config.subscription.proration_behavior == ProrationBehavior.NONE
        assert config.subscription.enable_trials is True

    def test_tax_rate_bounds(self):
        with pytest.raises(ValidationError):
            TaxConfig(default_tax_rate=Decimal("1.5"))

    def test_retry_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            PaymentConfig(max_retry_attempts=0)

    def test_from_settings(self):
        settings = Settings(
            billing=Settings.BillingSettings(
                tax_rate=Decimal("0.2"),
                invoice_due_days=30,
                max_retry_attempts=5,
                proration_enabled=True,
            )
        )

        config = BillingConfig.from_settings(settings)

        assert config.tax.default_tax_rate == Decimal("0.2")
        assert config.invoice.due_days_default == 30
        assert config.payment.max_retry_attempts == 5
        assert config.subscription.proration_behavior == ProrationBehavior.CREATE_PRORATIONS

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("BILLING__TAX_RATE", "0.25")
        reset_settings()

        config = BillingConfig.from_settings()

        assert config.tax.default_tax_rate == Decimal("0.25")
