"""
Subscription store.

Owns current and historical subscription records. Records are never
deleted: a canceled or replaced subscription stays in the history.
"""

from collections.abc import Awaitable, Callable
from datetime import timedelta

import structlog

from planwise.billing.catalog.service import PlanCatalog
from planwise.billing.config import SubscriptionConfig
from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.enums import BillingCycle, SubscriptionStatus, ensure_transition
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.core.repository import InMemoryRepository
from planwise.billing.exceptions import (
    DuplicateSubscriptionError,
    NoOpPlanChangeError,
    SubscriptionNotFoundError,
)
from planwise.billing.subscriptions.cycles import BillingCycleCalculator
from planwise.billing.subscriptions.models import Subscription
from planwise.logging import log_audit_event

logger = structlog.get_logger(__name__)

TrialConversionHandler = Callable[[Subscription], Awaitable[object]]


class SubscriptionStore:
    """Subscription lifecycle for each user.

    At most one subscription per user is current (ACTIVE, TRIAL or PAST_DUE).
    Mutations are serialized per user through ``UserLockRegistry``.

    Elapsed periods are settled lazily whenever a user's subscription is read
    or mutated: a due period-end cancellation is applied and a trial past its
    ``trial_end_date`` converts to ACTIVE. Coroutines registered in
    ``trial_conversion_handlers`` are awaited after each conversion, outside
    the user's lock.
    """

    def __init__(
        self,
        catalog: PlanCatalog,
        locks: UserLockRegistry,
        calculator: BillingCycleCalculator | None = None,
        repository: InMemoryRepository[Subscription] | None = None,
        config: SubscriptionConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.catalog = catalog
        self.locks = locks
        self.calculator = calculator or BillingCycleCalculator()
        self.repository = repository or InMemoryRepository[Subscription]("subscription")
        self.config = config or SubscriptionConfig()
        self.clock = clock
        self.trial_conversion_handlers: list[TrialConversionHandler] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_user_subscription(self, user_id: str) -> Subscription | None:
        """Current ACTIVE, TRIAL or PAST_DUE subscription of the user."""
        return await self._settle_elapsed(user_id)

    async def get_subscription_history(self, user_id: str) -> list[Subscription]:
        """All subscriptions of the user, newest first."""
        records = self.repository.find_all(lambda sub: sub.user_id == user_id)
        # reversed() first so records sharing a start_date stay newest first
        return sorted(reversed(records), key=lambda sub: sub.start_date, reverse=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_subscription(
        self,
        user_id: str,
        plan_id: str,
        billing_cycle: BillingCycle | str = BillingCycle.MONTHLY,
    ) -> Subscription:
        """Start a new subscription for a user without a current one.

        Raises:
            PlanNotFoundError: unknown or unavailable plan.
            InvalidBillingCycleError: malformed billing cycle.
            DuplicateSubscriptionError: the user already has a current subscription.
        """
        cycle = self.calculator.parse_billing_cycle(billing_cycle)
        plan = self.catalog.get_plan_by_id(plan_id)

        await self._settle_elapsed(user_id)
        async with self.locks.hold(user_id):
            self._settle_pending_cancellation(user_id)
            existing = self._find_current(user_id)
            if existing is not None:
                raise DuplicateSubscriptionError(
                    "User already has an active subscription",
                    user_id=user_id,
                    subscription_id=existing.subscription_id,
                )

            now = self.clock()
            status = SubscriptionStatus.ACTIVE
            trial_end_date = None
            if plan.trial_days and self.config.enable_trials:
                status = SubscriptionStatus.TRIAL
                trial_end_date = now + timedelta(days=plan.trial_days)

            subscription = self.repository.add(
                Subscription(
                    user_id=user_id,
                    plan_id=plan.plan_id,
                    status=status,
                    billing_cycle=cycle,
                    start_date=now,
                    end_date=self.calculator.calculate_end_date(now, cycle),
                    trial_end_date=trial_end_date,
                )
            )

        logger.info(
            "subscription.created",
            user_id=user_id,
            subscription_id=subscription.subscription_id,
            plan_id=plan.plan_id,
            status=subscription.status,
            billing_cycle=cycle,
        )
        log_audit_event(
            "subscription.created",
            "billing",
            user_id=user_id,
            resource_type="subscription",
            resource_id=subscription.subscription_id,
            plan_id=plan.plan_id,
        )
        return subscription

    async def cancel_subscription(
        self, user_id: str, immediate_effect: bool = False
    ) -> Subscription:
        """Cancel now, or at the end of the current period.

        Free plans are always canceled immediately. A trial canceled at period
        end ends with its trial instead of converting.

        Raises:
            SubscriptionNotFoundError: the user has no current subscription.
        """
        await self._settle_elapsed(user_id)
        async with self.locks.hold(user_id):
            self._settle_pending_cancellation(user_id)
            subscription = self._find_current(user_id)
            if subscription is None:
                raise SubscriptionNotFoundError("No active subscription found", user_id=user_id)

            now = self.clock()
            immediate = immediate_effect or self.catalog.is_plan_free(subscription.plan_id)
            if immediate:
                ensure_transition("subscription", subscription.status, SubscriptionStatus.CANCELED)
                subscription.status = SubscriptionStatus.CANCELED
                subscription.cancel_at_period_end = False
            else:
                subscription.cancel_at_period_end = True
                if subscription.status == SubscriptionStatus.TRIAL and subscription.trial_end_date:
                    subscription.end_date = subscription.trial_end_date
            subscription.auto_renew = False
            subscription.canceled_at = now
            subscription = self.repository.update(subscription)

        logger.info(
            "subscription.canceled",
            user_id=user_id,
            subscription_id=subscription.subscription_id,
            immediate=immediate,
            effective_at=(now if immediate else subscription.end_date).isoformat(),
        )
        log_audit_event(
            "subscription.canceled",
            "billing",
            user_id=user_id,
            resource_type="subscription",
            resource_id=subscription.subscription_id,
            immediate=immediate,
        )
        return subscription

    async def replace_subscription(
        self,
        user_id: str,
        plan_id: str,
        billing_cycle: BillingCycle | str | None = None,
    ) -> tuple[Subscription, Subscription]:
        """Supersede the current subscription with one on ``plan_id``.

        The old record ends (EXPIRED, ``end_date``) at the instant the new one
        starts. The billing cycle defaults to the old subscription's.

        Returns:
            ``(previous, new)`` subscriptions.

        Raises:
            PlanNotFoundError: unknown or unavailable plan.
            SubscriptionNotFoundError: the user has no current subscription.
            NoOpPlanChangeError: ``plan_id`` is the current plan.
        """
        plan = self.catalog.get_plan_by_id(plan_id)
        cycle = (
            self.calculator.parse_billing_cycle(billing_cycle)
            if billing_cycle is not None
            else None
        )

        await self._settle_elapsed(user_id)
        async with self.locks.hold(user_id):
            self._settle_pending_cancellation(user_id)
            current = self._find_current(user_id)
            if current is None:
                raise SubscriptionNotFoundError("No active subscription found", user_id=user_id)
            if current.plan_id == plan.plan_id:
                raise NoOpPlanChangeError(
                    f"Already subscribed to plan {plan.plan_id}", plan_id=plan.plan_id
                )

            now = self.clock()
            cycle = cycle or current.billing_cycle
            replacement = Subscription(
                user_id=user_id,
                plan_id=plan.plan_id,
                status=SubscriptionStatus.ACTIVE,
                billing_cycle=cycle,
                start_date=now,
                end_date=self.calculator.calculate_end_date(now, cycle),
            )

            ensure_transition("subscription", current.status, SubscriptionStatus.EXPIRED)
            current.status = SubscriptionStatus.EXPIRED
            current.end_date = max(now, current.start_date)
            current.auto_renew = False
            current.cancel_at_period_end = False
            current.superseded_by = replacement.subscription_id
            previous = self.repository.update(current)
            replacement = self.repository.add(replacement)

        logger.info(
            "subscription.replaced",
            user_id=user_id,
            previous_subscription_id=previous.subscription_id,
            previous_plan_id=previous.plan_id,
            subscription_id=replacement.subscription_id,
            plan_id=replacement.plan_id,
        )
        return previous, replacement

    async def mark_past_due(self, subscription_id: str) -> Subscription | None:
        """Move an ACTIVE or TRIAL subscription to PAST_DUE; no-op otherwise."""
        return await self._transition_if(
            subscription_id,
            SubscriptionStatus.PAST_DUE,
            {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL},
        )

    async def reactivate(self, subscription_id: str) -> Subscription | None:
        """Move a PAST_DUE subscription back to ACTIVE; no-op otherwise."""
        return await self._transition_if(
            subscription_id, SubscriptionStatus.ACTIVE, {SubscriptionStatus.PAST_DUE}
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _transition_if(
        self,
        subscription_id: str,
        target: SubscriptionStatus,
        sources: set[SubscriptionStatus],
    ) -> Subscription | None:
        subscription = self.repository.get(subscription_id)
        if subscription is None:
            return None

        async with self.locks.hold(subscription.user_id):
            subscription = self.repository.get(subscription_id)
            if subscription is None or subscription.status not in sources:
                return subscription
            previous_status = subscription.status
            subscription.status = target
            subscription = self.repository.update(subscription)

        logger.info(
            "subscription.status_changed",
            subscription_id=subscription_id,
            user_id=subscription.user_id,
            from_status=previous_status,
            to_status=target,
        )
        return subscription

    def _find_current(self, user_id: str) -> Subscription | None:
        current = self.repository.find_all(
            lambda sub: sub.user_id == user_id and sub.status.is_current
        )
        return current[-1] if current else None

    def _period_end_cancellation_due(self, subscription: Subscription) -> bool:
        return subscription.cancel_at_period_end and self.clock() >= subscription.end_date

    def _settle_pending_cancellation(self, user_id: str) -> Subscription | None:
        """Apply a period-end cancellation whose period has elapsed.

        Caller must hold the user's lock.
        """
        subscription = self._find_current(user_id)
        if subscription is None or not self._period_end_cancellation_due(subscription):
            return subscription

        subscription.status = SubscriptionStatus.CANCELED
        subscription.cancel_at_period_end = False
        subscription = self.repository.update(subscription)
        logger.info(
            "subscription.period_end_cancellation_applied",
            user_id=user_id,
            subscription_id=subscription.subscription_id,
        )
        return None

    def _trial_conversion_due(self, subscription: Subscription) -> bool:
        return (
            subscription.status == SubscriptionStatus.TRIAL
            and subscription.trial_end_date is not None
            and not subscription.is_in_trial(self.clock())
        )

    def _convert_lapsed_trial(self, subscription: Subscription) -> Subscription | None:
        """Move a TRIAL past its trial window to ACTIVE.

        Caller must hold the user's lock.
        """
        if not self._trial_conversion_due(subscription):
            return None

        ensure_transition("subscription", subscription.status, SubscriptionStatus.ACTIVE)
        subscription.status = SubscriptionStatus.ACTIVE
        subscription = self.repository.update(subscription)
        logger.info(
            "subscription.trial_converted",
            user_id=subscription.user_id,
            subscription_id=subscription.subscription_id,
        )
        log_audit_event(
            "subscription.trial_converted",
            "billing",
            user_id=subscription.user_id,
            resource_type="subscription",
            resource_id=subscription.subscription_id,
        )
        return subscription

    async def _settle_elapsed(self, user_id: str) -> Subscription | None:
        """Settle the elapsed periods of the user's current subscription.

        Returns the current subscription afterwards.
        """
        subscription = self._find_current(user_id)
        if subscription is None or not (
            self._period_end_cancellation_due(subscription)
            or self._trial_conversion_due(subscription)
        ):
            return subscription

        converted = None
        async with self.locks.hold(user_id):
            subscription = self._settle_pending_cancellation(user_id)
            if subscription is not None:
                converted = self._convert_lapsed_trial(subscription)
                subscription = converted or subscription

        if converted is not None:
            for handler in self.trial_conversion_handlers:
                await handler(converted)
        return subscription
