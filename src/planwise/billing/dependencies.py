"""
Billing service wiring.

Builds every billing component with shared locks, clock, metrics and
configuration. Nothing here is global: each call returns a fresh,
independent set of services.
"""

import random
from dataclasses import dataclass

from planwise.billing.catalog.defaults import default_plans
from planwise.billing.catalog.service import PlanCatalog
from planwise.billing.config import BillingConfig
from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.invoicing.service import InvoiceGenerator
from planwise.billing.metrics import BillingMetrics
from planwise.billing.payment_methods.service import PaymentMethodService
from planwise.billing.payments.providers import PaymentGateway, SimulatedPaymentGateway
from planwise.billing.payments.service import PaymentProcessor
from planwise.billing.plan_changes.service import PlanChangeCoordinator
from planwise.billing.subscriptions.cycles import BillingCycleCalculator
from planwise.billing.subscriptions.service import SubscriptionStore
from planwise.billing.usage.service import ResourceUsageTracker


@dataclass(frozen=True)
class BillingServices:
    """Container of wired billing components."""

    config: BillingConfig
    catalog: PlanCatalog
    calculator: BillingCycleCalculator
    subscriptions: SubscriptionStore
    usage: ResourceUsageTracker
    invoices: InvoiceGenerator
    payment_methods: PaymentMethodService
    payments: PaymentProcessor
    plan_changes: PlanChangeCoordinator
    locks: UserLockRegistry
    metrics: BillingMetrics


def build_billing_services(
    config: BillingConfig | None = None,
    gateway: PaymentGateway | None = None,
    clock: Clock = utcnow,
    catalog: PlanCatalog | None = None,
    metrics: BillingMetrics | None = None,
    rng: random.Random | None = None,
) -> BillingServices:
    """Wire the billing components.

    Args:
        config: Billing configuration, read from settings when omitted.
        gateway: Payment gateway; a ``SimulatedPaymentGateway`` configured
            from ``config.payment`` when omitted.
        clock: Source of the current time for every component.
        catalog: Plan catalog; the default plans, priced in the configured
            currency, when omitted.
        metrics: Shared metrics collector.
        rng: Random source for the simulated gateway.
    """
    config = config or BillingConfig.from_settings()
    catalog = catalog or PlanCatalog(default_plans(config.currency.default_currency))
    metrics = metrics or BillingMetrics()
    gateway = gateway or SimulatedPaymentGateway(
        success_rate=config.payment.simulated_success_rate,
        latency_seconds=config.payment.simulated_latency_seconds,
        rng=rng,
    )

    locks = UserLockRegistry()
    calculator = BillingCycleCalculator()
    subscriptions = SubscriptionStore(
        catalog, locks, calculator=calculator, config=config.subscription, clock=clock
    )
    usage = ResourceUsageTracker(subscriptions, catalog, locks, metrics=metrics, clock=clock)
    invoices = InvoiceGenerator(
        locks, config=config, calculator=calculator, metrics=metrics, clock=clock
    )
    payment_methods = PaymentMethodService(locks, clock=clock)
    payments = PaymentProcessor(
        invoices,
        subscriptions,
        payment_methods,
        gateway,
        locks,
        config=config,
        metrics=metrics,
        clock=clock,
    )
    plan_changes = PlanChangeCoordinator(
        catalog, subscriptions, invoices, usage, config=config, metrics=metrics
    )

    return BillingServices(
        config=config,
        catalog=catalog,
        calculator=calculator,
        subscriptions=subscriptions,
        usage=usage,
        invoices=invoices,
        payment_methods=payment_methods,
        payments=payments,
        plan_changes=plan_changes,
        locks=locks,
        metrics=metrics,
    )
