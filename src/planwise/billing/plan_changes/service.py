"""
Plan change coordinator.

Top-level orchestration of subscribe, change and cancel flows. The
coordinator holds no locks itself: each component it calls serializes its
own per-user mutations.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import structlog
from pydantic import ValidationError

from planwise.billing.catalog.models import Plan
from planwise.billing.catalog.service import PlanCatalog
from planwise.billing.config import BillingConfig
from planwise.billing.core.enums import (
    BillingCycle,
    InvoiceStatus,
    PlanChangeDirection,
    ProrationBehavior,
    SubscriptionStatus,
)
from planwise.billing.exceptions import (
    BillingValidationError,
    PlanNotFoundError,
    SubscriptionNotFoundError,
)
from planwise.billing.invoicing.models import Invoice
from planwise.billing.invoicing.service import InvoiceGenerator
from planwise.billing.metrics import BillingMetrics
from planwise.billing.plan_changes.models import (
    CancellationResult,
    FeatureAccessChange,
    PlanChangeResult,
    SubscriptionChangeRequest,
    SubscriptionFeature,
    SubscriptionResult,
)
from planwise.billing.subscriptions.models import Subscription
from planwise.billing.subscriptions.service import SubscriptionStore
from planwise.billing.usage.service import ResourceUsageTracker
from planwise.logging import log_audit_event

logger = structlog.get_logger(__name__)


class PlanChangeCoordinator:
    """Coordinates catalog, subscriptions, invoices and usage for plan changes."""

    def __init__(
        self,
        catalog: PlanCatalog,
        subscriptions: SubscriptionStore,
        invoices: InvoiceGenerator,
        usage: ResourceUsageTracker,
        config: BillingConfig | None = None,
        metrics: BillingMetrics | None = None,
    ) -> None:
        self.catalog = catalog
        self.subscriptions = subscriptions
        self.invoices = invoices
        self.usage = usage
        self.config = config or BillingConfig()
        self.metrics = metrics or BillingMetrics()
        subscriptions.trial_conversion_handlers.append(self.handle_trial_conversion)

    async def create_subscription(
        self,
        user_id: str,
        plan_id: str,
        billing_cycle: BillingCycle | str | None = None,
    ) -> SubscriptionResult:
        """Subscribe a user and invoice the first period.

        Free plans are not invoiced.
        """
        subscription = await self.subscriptions.create_subscription(
            user_id, plan_id, billing_cycle or BillingCycle.MONTHLY
        )
        plan = self._plan(subscription.plan_id)

        invoice = None
        if not self.catalog.is_plan_free(plan.plan_id):
            invoice = await self.invoices.create_invoice_for_subscription(subscription, plan)

        self.metrics.record_subscription_created(plan.plan_id, subscription.billing_cycle.value)
        return SubscriptionResult(subscription=subscription, invoice=invoice)

    async def change_subscription(
        self,
        user_id: str,
        request: SubscriptionChangeRequest | Mapping[str, Any],
    ) -> PlanChangeResult:
        """Move the user's current subscription to another plan.

        The current subscription is superseded, its unpaid invoices are
        voided and the new plan is invoiced. Downgrades also report the
        resources whose usage exceeds the new limits.

        Raises:
            BillingValidationError: malformed request.
            PlanNotFoundError: unknown or unavailable target plan.
            SubscriptionNotFoundError: the user has no current subscription.
            NoOpPlanChangeError: the target is the current plan.
        """
        change = self._parse_change_request(request)
        plan = self.catalog.get_plan_by_id(change.plan_id)

        previous, subscription = await self.subscriptions.replace_subscription(
            user_id, plan.plan_id, change.billing_cycle
        )
        direction = self.catalog.classify_change(previous.plan_id, plan.plan_id)
        voided = await self.invoices.void_open_invoices(user_id, previous.subscription_id)

        invoice = None
        if not self.catalog.is_plan_free(plan.plan_id):
            invoice = await self.invoices.create_invoice_for_subscription(
                subscription, plan, self._proration_credit(previous, direction)
            )

        access_change = await self.handle_plan_change_access(
            user_id, previous.plan_id, plan.plan_id
        )
        resource_warnings: list[str] = []
        if direction == PlanChangeDirection.DOWNGRADE:
            resource_warnings = await self.handle_downgrade_resource_cleanup(
                user_id, previous.plan_id, plan.plan_id
            )

        self.metrics.record_subscription_changed(previous.plan_id, plan.plan_id, direction.value)
        logger.info(
            "subscription.changed",
            user_id=user_id,
            from_plan=previous.plan_id,
            to_plan=plan.plan_id,
            direction=direction,
            subscription_id=subscription.subscription_id,
            invoice_id=invoice.invoice_id if invoice else None,
            voided_invoices=len(voided),
        )
        log_audit_event(
            "subscription.changed",
            "billing",
            user_id=user_id,
            resource_type="subscription",
            resource_id=subscription.subscription_id,
            from_plan=previous.plan_id,
            to_plan=plan.plan_id,
            direction=direction.value,
        )
        return PlanChangeResult(
            previous_subscription=previous,
            subscription=subscription,
            invoice=invoice,
            direction=direction,
            access_change=access_change,
            resource_warnings=resource_warnings,
            voided_invoice_ids=voided,
        )

    async def cancel_subscription(
        self, user_id: str, immediate_effect: bool = False
    ) -> CancellationResult:
        """Cancel the user's subscription now or at period end.

        An immediate cancellation voids the subscription's unpaid invoices, and
        so does canceling a trial, which then ends with the trial.
        """
        subscription = await self.subscriptions.cancel_subscription(user_id, immediate_effect)

        voided: list[str] = []
        if subscription.status == SubscriptionStatus.CANCELED:
            voided = await self.invoices.void_open_invoices(user_id, subscription.subscription_id)
            message = "Subscription canceled immediately"
        elif subscription.status == SubscriptionStatus.TRIAL:
            voided = await self.invoices.void_open_invoices(user_id, subscription.subscription_id)
            message = (
                "Subscription will be canceled at the end of the trial "
                f"({subscription.end_date:%Y-%m-%d})"
            )
        else:
            message = (
                "Subscription will be canceled at the end of the current billing period "
                f"({subscription.end_date:%Y-%m-%d})"
            )

        self.metrics.record_subscription_canceled(
            subscription.plan_id, subscription.status == SubscriptionStatus.CANCELED
        )
        return CancellationResult(
            subscription=subscription, message=message, voided_invoice_ids=voided
        )

    async def handle_trial_conversion(self, subscription: Subscription) -> list[Invoice]:
        """Open the invoices drafted while ``subscription`` was in trial."""
        return await self.invoices.finalize_subscription_drafts(
            subscription.user_id, subscription.subscription_id
        )

    async def handle_plan_change_access(
        self, user_id: str, old_plan_id: str, new_plan_id: str
    ) -> FeatureAccessChange:
        """Features granted and revoked by moving between two plans."""
        old_features = self._included_features(self._plan(old_plan_id))
        new_features = self._included_features(self._plan(new_plan_id))

        access_change = FeatureAccessChange(
            granted=[name for name in new_features if name not in old_features],
            revoked=[name for name in old_features if name not in new_features],
        )
        if access_change.granted or access_change.revoked:
            logger.info(
                "subscription.access_changed",
                user_id=user_id,
                old_plan=old_plan_id,
                new_plan=new_plan_id,
                granted=access_change.granted,
                revoked=access_change.revoked,
            )
        return access_change

    async def handle_downgrade_resource_cleanup(
        self, user_id: str, old_plan_id: str, new_plan_id: str
    ) -> list[str]:
        """Resources whose usage exceeds ``new_plan_id``'s limits.

        Advisory only: nothing is deleted or blocked.
        """
        exceeded = await self.usage.exceeded_resources(user_id, self._plan(new_plan_id))
        for resource in exceeded:
            logger.warning(
                "subscription.downgrade_limit_exceeded",
                user_id=user_id,
                resource=resource,
                old_plan=old_plan_id,
                new_plan=new_plan_id,
            )
        return exceeded

    async def has_feature_access(self, user_id: str, feature_name: str) -> bool:
        subscription = await self.subscriptions.get_user_subscription(user_id)
        if subscription is None or not subscription.status.grants_access:
            return False

        plan = self.catalog.find_plan(subscription.plan_id)
        feature = plan.get_feature(feature_name) if plan is not None else None
        return feature is not None and feature.included

    async def get_subscription_features(self, user_id: str) -> list[SubscriptionFeature]:
        """Features of the current plan with the user's usage of metered ones.

        Raises:
            SubscriptionNotFoundError: the user has no current subscription.
        """
        subscription = await self.subscriptions.get_user_subscription(user_id)
        if subscription is None:
            raise SubscriptionNotFoundError("No active subscription found", user_id=user_id)

        plan = self._plan(subscription.plan_id)
        usage = await self.usage.get_user_resource_usage(user_id)

        features = []
        for feature in plan.features:
            current_usage = None
            percentage = None
            if feature.name in self.usage.resources:
                current_usage = usage.get(feature.name)
                bound = feature.numeric_limit
                if bound is not None:
                    percentage = _usage_percentage(current_usage, bound)
            features.append(
                SubscriptionFeature(
                    name=feature.name,
                    description=feature.description,
                    included=feature.included,
                    limit=feature.limit,
                    current_usage=current_usage,
                    usage_percentage=percentage,
                )
            )
        return features

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _plan(self, plan_id: str) -> Plan:
        """Published plan, including ones no longer available for sale."""
        plan = self.catalog.find_plan(plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Subscription plan {plan_id} not found", plan_id=plan_id)
        return plan

    @staticmethod
    def _included_features(plan: Plan) -> list[str]:
        return [feature.name for feature in plan.features if feature.included]

    @staticmethod
    def _parse_change_request(
        request: SubscriptionChangeRequest | Mapping[str, Any],
    ) -> SubscriptionChangeRequest:
        if isinstance(request, SubscriptionChangeRequest):
            return request
        try:
            return SubscriptionChangeRequest.model_validate(dict(request))
        except ValidationError as e:
            raise BillingValidationError(
                "Invalid subscription change request",
                context={"errors": [error["msg"] for error in e.errors()]},
            ) from e

    def _proration_credit(
        self, previous: Subscription, direction: PlanChangeDirection
    ) -> Decimal | None:
        """Credit for the unused part of a paid period, when prorations are on."""
        if self.config.subscription.proration_behavior != ProrationBehavior.CREATE_PRORATIONS:
            return None
        if direction == PlanChangeDirection.DOWNGRADE:
            return None

        paid = self.invoices.repository.find_all(
            lambda inv: inv.subscription_id == previous.subscription_id
            and inv.status == InvoiceStatus.PAID
        )
        if not paid:
            return None

        old_plan = self._plan(previous.plan_id)
        calculator = self.subscriptions.calculator
        credit = calculator.calculate_proration_credit(
            calculator.cycle_price(old_plan, previous.billing_cycle),
            previous.start_date,
            calculator.calculate_end_date(previous.start_date, previous.billing_cycle),
            previous.end_date,
            old_plan.currency,
        )
        return credit or None


def _usage_percentage(current: int, bound: int) -> int:
    if bound == 0:
        return 100 if current > 0 else 0
    return min(100, round(current * 100 / bound))
