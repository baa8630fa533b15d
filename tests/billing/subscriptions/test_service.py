"""
Tests for the subscription store.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from planwise.billing.catalog.defaults import default_plans
from planwise.billing.catalog.models import Plan
from planwise.billing.catalog.service import PlanCatalog
from planwise.billing.config import SubscriptionConfig
from planwise.billing.core.enums import BillingCycle, PlanType, SubscriptionStatus
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.exceptions import (
    DuplicateSubscriptionError,
    InvalidBillingCycleError,
    NoOpPlanChangeError,
    PlanNotFoundError,
    SubscriptionNotFoundError,
)
from planwise.billing.subscriptions.service import SubscriptionStore
from tests.billing.helpers import START

pytestmark = pytest.mark.asyncio


@pytest.fixture
def store(clock) -> SubscriptionStore:
    return SubscriptionStore(PlanCatalog(default_plans()), UserLockRegistry(), clock=clock)


def current_count(records) -> int:
    return sum(1 for sub in records if sub.status.is_current)


@pytest.mark.unit
class TestCreateSubscription:
    """Test subscription creation"""

    async def test_create_monthly_subscription(self, store):
        """Test a new subscription starts now and ends one month later"""
        subscription = await store.create_subscription("user-1", "basic")

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.billing_cycle == BillingCycle.MONTHLY
        assert subscription.start_date == START
        assert subscription.end_date == datetime(2025, 2, 15, 10, 0, tzinfo=START.tzinfo)
        assert subscription.auto_renew is True
        assert subscription.version == 1
        assert await store.get_user_subscription("user-1") == subscription

    async def test_create_with_raw_cycle(self, store):
        """Test raw billing cycle strings are parsed"""
        subscription = await store.create_subscription("user-1", "premium", "Annual")

        assert subscription.billing_cycle == BillingCycle.ANNUAL
        assert subscription.end_date.year == 2026

    async def test_invalid_cycle(self, store):
        with pytest.raises(InvalidBillingCycleError):
            await store.create_subscription("user-1", "basic", "weekly")

    async def test_unknown_plan(self, store):
        with pytest.raises(PlanNotFoundError):
            await store.create_subscription("user-1", "platinum")

    async def test_duplicate_subscription(self, store):
        """Test a second current subscription is rejected"""
        existing = await store.create_subscription("user-1", "basic")

        with pytest.raises(DuplicateSubscriptionError) as exc_info:
            await store.create_subscription("user-1", "premium")

        assert exc_info.value.context["subscription_id"] == existing.subscription_id

    async def test_concurrent_creates_leave_one_current(self, store):
        """Test racing creations for one user yield exactly one subscription"""
        results = await asyncio.gather(
            *(store.create_subscription("user-1", "basic") for _ in range(5)),
            return_exceptions=True,
        )

        created = [result for result in results if not isinstance(result, Exception)]
        errors = [result for result in results if isinstance(result, Exception)]
        assert len(created) == 1
        assert all(isinstance(error, DuplicateSubscriptionError) for error in errors)
        assert current_count(await store.get_subscription_history("user-1")) == 1

    async def test_trial_plan_starts_in_trial(self, trial_store, clock):
        """Test plans with trial days start in TRIAL"""
        subscription = await trial_store.create_subscription("user-1", "team")

        assert subscription.status == SubscriptionStatus.TRIAL
        assert (subscription.trial_end_date - subscription.start_date).days == 14
        assert subscription.is_in_trial(clock())

    async def test_trials_disabled(self, clock, trial_plan):
        """Test trials can be switched off"""
        store = SubscriptionStore(
            PlanCatalog([trial_plan]),
            UserLockRegistry(),
            config=SubscriptionConfig(enable_trials=False),
            clock=clock,
        )

        subscription = await store.create_subscription("user-1", "team")

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.trial_end_date is None


@pytest.fixture
def trial_plan() -> Plan:
    return Plan(
        plan_id="team",
        plan_type=PlanType.BASIC,
        name="Team",
        monthly_price=Decimal("19.00"),
        annual_price=Decimal("190.00"),
        trial_days=14,
    )


@pytest.fixture
def trial_store(clock, trial_plan) -> SubscriptionStore:
    return SubscriptionStore(PlanCatalog([trial_plan]), UserLockRegistry(), clock=clock)


@pytest.mark.unit
class TestTrialConversion:
    """Test trials converting once their window has elapsed"""

    async def test_trial_stays_until_trial_end(self, trial_store, clock):
        await trial_store.create_subscription("user-1", "team")
        clock.advance(days=13, hours=23)

        current = await trial_store.get_user_subscription("user-1")

        assert current.status == SubscriptionStatus.TRIAL

    async def test_lapsed_trial_converts_on_read(self, trial_store, clock):
        """Test a read after trial_end_date finds the subscription ACTIVE"""
        created = await trial_store.create_subscription("user-1", "team")
        clock.advance(days=400)

        current = await trial_store.get_user_subscription("user-1")

        assert current.subscription_id == created.subscription_id
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.version == created.version + 1
        history = await trial_store.get_subscription_history("user-1")
        assert history[0].status == SubscriptionStatus.ACTIVE

    async def test_conversion_handlers_run_once(self, trial_store, clock):
        converted = []

        async def handler(subscription):
            converted.append(subscription)

        trial_store.trial_conversion_handlers.append(handler)
        created = await trial_store.create_subscription("user-1", "team")
        clock.advance(days=15)

        await trial_store.get_user_subscription("user-1")
        await trial_store.get_user_subscription("user-1")

        assert [sub.subscription_id for sub in converted] == [created.subscription_id]
        assert converted[0].status == SubscriptionStatus.ACTIVE

    async def test_mutation_converts_lapsed_trial(self, trial_store, clock):
        """Test a cancellation after the trial cancels the converted subscription"""
        await trial_store.create_subscription("user-1", "team")
        clock.advance(days=15)

        canceled = await trial_store.cancel_subscription("user-1")

        assert canceled.status == SubscriptionStatus.ACTIVE
        assert canceled.cancel_at_period_end is True
        assert canceled.end_date == datetime(2025, 2, 15, 10, 0, tzinfo=START.tzinfo)

    async def test_canceled_trial_ends_with_trial(self, trial_store, clock):
        """Test a trial canceled at period end never converts"""
        created = await trial_store.create_subscription("user-1", "team")

        canceled = await trial_store.cancel_subscription("user-1")

        assert canceled.status == SubscriptionStatus.TRIAL
        assert canceled.end_date == created.trial_end_date

        clock.advance(days=14)
        assert await trial_store.get_user_subscription("user-1") is None
        history = await trial_store.get_subscription_history("user-1")
        assert history[0].status == SubscriptionStatus.CANCELED


@pytest.mark.unit
class TestCancelSubscription:
    """Test cancellation"""

    async def test_cancel_at_period_end(self, store, clock):
        """Test deferred cancellation keeps access until the period ends"""
        created = await store.create_subscription("user-1", "basic")

        canceled = await store.cancel_subscription("user-1")

        assert canceled.status == SubscriptionStatus.ACTIVE
        assert canceled.cancel_at_period_end is True
        assert canceled.auto_renew is False
        assert canceled.canceled_at == START
        assert await store.get_user_subscription("user-1") is not None

        clock.now = created.end_date
        assert await store.get_user_subscription("user-1") is None
        history = await store.get_subscription_history("user-1")
        assert history[0].status == SubscriptionStatus.CANCELED

    async def test_cancel_immediately(self, store):
        """Test immediate cancellation"""
        await store.create_subscription("user-1", "basic")

        canceled = await store.cancel_subscription("user-1", immediate_effect=True)

        assert canceled.status == SubscriptionStatus.CANCELED
        assert canceled.canceled_at == START
        assert await store.get_user_subscription("user-1") is None

    async def test_free_plan_cancels_immediately(self, store):
        """Test free plans never wait for period end"""
        await store.create_subscription("user-1", "free")

        canceled = await store.cancel_subscription("user-1")

        assert canceled.status == SubscriptionStatus.CANCELED

    async def test_cancel_without_subscription(self, store):
        with pytest.raises(SubscriptionNotFoundError):
            await store.cancel_subscription("user-1")

    async def test_resubscribe_after_period_end_cancellation(self, store, clock):
        """Test a new subscription is possible once the pending cancellation settles"""
        created = await store.create_subscription("user-1", "basic")
        await store.cancel_subscription("user-1")
        clock.now = created.end_date

        renewed = await store.create_subscription("user-1", "premium")

        assert renewed.status == SubscriptionStatus.ACTIVE
        assert current_count(await store.get_subscription_history("user-1")) == 1


@pytest.mark.unit
class TestReplaceSubscription:
    """Test superseding a subscription"""

    async def test_replace_supersedes_current(self, store, clock):
        """Test the old record ends when the new one starts"""
        original = await store.create_subscription("user-1", "basic")
        clock.advance(days=10)

        previous, replacement = await store.replace_subscription("user-1", "premium")

        assert previous.subscription_id == original.subscription_id
        assert previous.status == SubscriptionStatus.EXPIRED
        assert previous.end_date == clock()
        assert previous.superseded_by == replacement.subscription_id
        assert replacement.start_date == clock()
        assert replacement.billing_cycle == BillingCycle.MONTHLY
        assert replacement.status == SubscriptionStatus.ACTIVE

        history = await store.get_subscription_history("user-1")
        assert [sub.plan_id for sub in history] == ["premium", "basic"]
        assert current_count(history) == 1

    async def test_replace_with_new_cycle(self, store):
        await store.create_subscription("user-1", "basic")

        _, replacement = await store.replace_subscription("user-1", "premium", "annual")

        assert replacement.billing_cycle == BillingCycle.ANNUAL

    async def test_replace_same_plan(self, store):
        await store.create_subscription("user-1", "basic")

        with pytest.raises(NoOpPlanChangeError):
            await store.replace_subscription("user-1", "basic")

    async def test_replace_without_subscription(self, store):
        with pytest.raises(SubscriptionNotFoundError):
            await store.replace_subscription("user-1", "premium")

    async def test_history_ties_are_newest_first(self, store):
        """Test records sharing a start instant list the newest first"""
        await store.create_subscription("user-1", "basic")
        await store.replace_subscription("user-1", "premium")
        await store.replace_subscription("user-1", "enterprise")

        history = await store.get_subscription_history("user-1")

        assert [sub.plan_id for sub in history] == ["enterprise", "premium", "basic"]


@pytest.mark.unit
class TestPaymentStatusTransitions:
    """Test PAST_DUE handling"""

    async def test_mark_past_due_and_reactivate(self, store):
        subscription = await store.create_subscription("user-1", "basic")

        past_due = await store.mark_past_due(subscription.subscription_id)
        assert past_due.status == SubscriptionStatus.PAST_DUE
        assert (await store.get_user_subscription("user-1")).status == SubscriptionStatus.PAST_DUE

        active = await store.reactivate(subscription.subscription_id)
        assert active.status == SubscriptionStatus.ACTIVE

    async def test_reactivate_is_noop_for_active(self, store):
        subscription = await store.create_subscription("user-1", "basic")

        unchanged = await store.reactivate(subscription.subscription_id)

        assert unchanged.status == SubscriptionStatus.ACTIVE
        assert unchanged.version == subscription.version

    async def test_unknown_subscription(self, store):
        assert await store.mark_past_due("sub_missing") is None
