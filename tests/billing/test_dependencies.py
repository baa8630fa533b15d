"""
Tests for billing service wiring.
"""

import random

import pytest

from planwise.billing.config import BillingConfig, CurrencyConfig, PaymentConfig
from planwise.billing.dependencies import build_billing_services
from planwise.billing.payments.providers import SimulatedPaymentGateway

from tests.billing.helpers import START, FrozenClock


@pytest.mark.unit
class TestBuildBillingServices:
    """Test building the billing components"""

    def test_defaults_to_simulated_gateway(self):
        config = BillingConfig(payment=PaymentConfig(simulated_success_rate=0.5))

        services = build_billing_services(config=config)

        gateway = services.payments.gateway
        assert isinstance(gateway, SimulatedPaymentGateway)
        assert gateway.success_rate == 0.5

    def test_components_share_state(self, gateway):
        clock = FrozenClock()
        services = build_billing_services(config=BillingConfig(), gateway=gateway, clock=clock)

        assert services.payments.gateway is gateway
        assert services.subscriptions.locks is services.locks
        assert services.invoices.locks is services.locks
        assert services.payments.locks is services.locks
        assert services.invoices.metrics is services.metrics
        assert services.plan_changes.catalog is services.catalog
        assert services.subscriptions.calculator is services.calculator
        assert services.invoices.clock() == START

    def test_default_catalog(self):
        services = build_billing_services(config=BillingConfig(), rng=random.Random(7))

        plan_ids = [plan.plan_id for plan in services.catalog.get_plans()]
        assert plan_ids == ["free", "basic", "premium", "enterprise"]

    def test_builds_are_independent(self):
        first = build_billing_services(config=BillingConfig())
        second = build_billing_services(config=BillingConfig())

        assert first.subscriptions is not second.subscriptions
        assert first.locks is not second.locks

    def test_config_read_from_settings(self, monkeypatch):
        monkeypatch.setenv("BILLING__TAX_RATE", "0.05")

        services = build_billing_services()

        assert str(services.config.tax.default_tax_rate) == "0.05"

    @pytest.mark.asyncio
    async def test_default_catalog_uses_configured_currency(self, gateway):
        config = BillingConfig(currency=CurrencyConfig(default_currency="EUR"))
        services = build_billing_services(config=config, gateway=gateway, clock=FrozenClock())

        assert {plan.currency for plan in services.catalog.get_plans()} == {"EUR"}

        result = await services.plan_changes.create_subscription("user-1", "basic")
        await services.payment_methods.add_payment_method("user-1", "pm_card", "credit_card")
        transaction = await services.payments.process_payment("user-1", result.invoice.invoice_id)

        assert result.invoice.currency == "EUR"
        assert transaction.currency == "EUR"
        assert gateway.calls[0]["currency"] == "EUR"
