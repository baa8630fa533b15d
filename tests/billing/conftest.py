"""Shared billing fixtures: frozen clock, deterministic gateway, wired services."""

import pytest
import pytest_asyncio

from planwise.billing.config import BillingConfig
from planwise.billing.core.enums import PaymentMethodType
from planwise.billing.dependencies import BillingServices, build_billing_services
from planwise.billing.payments.providers import MockPaymentGateway
from tests.billing.helpers import FrozenClock


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def billing_config() -> BillingConfig:
    return BillingConfig()


@pytest.fixture
def gateway() -> MockPaymentGateway:
    return MockPaymentGateway()


@pytest.fixture
def services(billing_config, gateway, clock) -> BillingServices:
    return build_billing_services(config=billing_config, gateway=gateway, clock=clock)


@pytest_asyncio.fixture
async def card(services):
    """Default credit card of user-1."""
    return await services.payment_methods.add_payment_method(
        "user-1", "pm_card", PaymentMethodType.CREDIT_CARD, {"last4": "4242"}
    )


@pytest_asyncio.fixture
async def basic_subscription(services):
    """user-1 subscribed monthly to Basic, with its open invoice."""
    return await services.plan_changes.create_subscription("user-1", "basic")
