"""
Resource usage tracker.

Per-user counters for metered resources and quota checks against the
limits of the user's current plan. Quota checks return booleans and never
raise, so callers can branch on them directly.
"""

import structlog

from planwise.billing.catalog.defaults import METERED_RESOURCES
from planwise.billing.catalog.models import Plan, PlanFeature
from planwise.billing.catalog.service import PlanCatalog
from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.core.repository import InMemoryRepository
from planwise.billing.exceptions import BillingValidationError
from planwise.billing.metrics import BillingMetrics
from planwise.billing.subscriptions.service import SubscriptionStore
from planwise.billing.usage.limits import parse_resource_limit
from planwise.billing.usage.models import ResourceUsageSnapshot, UsageCounters

logger = structlog.get_logger(__name__)


class ResourceUsageTracker:
    """Tracks resource counters and enforces plan quotas."""

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        catalog: PlanCatalog,
        locks: UserLockRegistry,
        repository: InMemoryRepository[UsageCounters] | None = None,
        metrics: BillingMetrics | None = None,
        clock: Clock = utcnow,
        resources: tuple[str, ...] = METERED_RESOURCES,
    ) -> None:
        self.subscriptions = subscriptions
        self.catalog = catalog
        self.locks = locks
        self.repository = repository or InMemoryRepository[UsageCounters]("usage")
        self.metrics = metrics or BillingMetrics()
        self.clock = clock
        self.resources = resources

    async def track_resource_usage(self, user_id: str, resource: str, amount: int) -> int:
        """Add a signed ``amount`` to a counter, clamping at zero.

        Returns:
            The counter value after the adjustment.
        """
        if not resource or not resource.strip():
            raise BillingValidationError("Resource name must not be empty")
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise BillingValidationError(
                f"Usage amount must be an integer, got {amount!r}",
                context={"resource": resource},
            )

        async with self.locks.hold(user_id):
            record = self.repository.get(user_id)
            if record is None:
                record = self.repository.add(UsageCounters(user_id=user_id))

            previous = record.counters.get(resource, 0)
            value = max(0, previous + amount)
            record.counters = {**record.counters, resource: value}
            record.updated_at = self.clock()
            self.repository.update(record)

        self.metrics.record_usage_tracked(resource, amount)
        logger.debug(
            "usage.tracked",
            user_id=user_id,
            resource=resource,
            amount=amount,
            previous=previous,
            value=value,
        )
        return value

    async def get_user_resource_usage(self, user_id: str) -> ResourceUsageSnapshot:
        record = self.repository.get(user_id)
        counters = dict.fromkeys(self.resources, 0)
        if record is not None:
            counters.update(record.counters)
        return ResourceUsageSnapshot(user_id=user_id, counters=counters, captured_at=self.clock())

    @staticmethod
    def parse_resource_limit(limit: str) -> int | None:
        """``None`` for "unlimited", the bound for an integer string.

        Raises:
            InvalidResourceLimitError: any other format.
        """
        return parse_resource_limit(limit)

    async def get_resource_limit(self, user_id: str, resource_name: str) -> str | None:
        """Raw limit of the resource on the user's current plan, if defined."""
        feature = await self._current_feature(user_id, resource_name)
        if feature is None:
            return None
        return feature.limit

    async def verify_resource_limit(
        self, user_id: str, resource_name: str, requested_amount: int = 0
    ) -> bool:
        """Whether current usage plus ``requested_amount`` fits the plan limit.

        Without a current subscription, or for a feature the plan does not
        define or include, the check fails. An included feature without a
        limit is unbounded.
        """
        feature = await self._current_feature(user_id, resource_name)
        if feature is None or not feature.included:
            self.metrics.record_quota_denied(resource_name)
            return False
        if feature.limit is None:
            return True

        bound = feature.numeric_limit
        if bound is None:
            return True

        usage = await self.get_user_resource_usage(user_id)
        allowed = usage.get(resource_name) + requested_amount <= bound
        if not allowed:
            self.metrics.record_quota_denied(resource_name)
            logger.info(
                "usage.quota_exceeded",
                user_id=user_id,
                resource=resource_name,
                current=usage.get(resource_name),
                requested=requested_amount,
                limit=bound,
            )
        return allowed

    async def exceeded_resources(self, user_id: str, plan: Plan) -> list[str]:
        """Resources whose current usage is above ``plan``'s numeric limits."""
        usage = await self.get_user_resource_usage(user_id)
        exceeded = []
        for feature in plan.features:
            if not feature.included or feature.limit is None:
                continue
            bound = feature.numeric_limit
            if bound is not None and usage.get(feature.name) > bound:
                exceeded.append(feature.name)
        return exceeded

    async def _current_plan(self, user_id: str) -> Plan | None:
        subscription = await self.subscriptions.get_user_subscription(user_id)
        if subscription is None:
            return None
        return self.catalog.find_plan(subscription.plan_id)

    async def _current_feature(self, user_id: str, resource_name: str) -> PlanFeature | None:
        plan = await self._current_plan(user_id)
        if plan is None:
            return None
        return plan.get_feature(resource_name)
