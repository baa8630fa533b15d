"""
Plan catalog service.

Registry of published plans and their tier ordering.
"""

from collections.abc import Iterable

import structlog

from planwise.billing.catalog.models import Plan
from planwise.billing.core.enums import PlanChangeDirection, PlanType
from planwise.billing.exceptions import DuplicatePlanError, NoOpPlanChangeError, PlanNotFoundError

logger = structlog.get_logger(__name__)


class PlanCatalog:
    """Holds published plans keyed by id."""

    def __init__(self, plans: Iterable[Plan] = ()) -> None:
        self._plans: dict[str, Plan] = {}
        for plan in plans:
            self.register_plan(plan)

    def register_plan(self, plan: Plan) -> Plan:
        """Publish a plan. Published plans are immutable and cannot be replaced."""
        if plan.plan_id in self._plans:
            raise DuplicatePlanError(f"Plan {plan.plan_id} is already published", plan.plan_id)

        self._plans[plan.plan_id] = plan
        logger.debug("catalog.plan_registered", plan_id=plan.plan_id, plan_type=plan.plan_type)
        return plan

    def get_plans(self) -> list[Plan]:
        """Available plans ordered by tier, then registration order."""
        available = [plan for plan in self._plans.values() if plan.is_available]
        return sorted(available, key=lambda plan: plan.priority)

    def get_plan_by_id(self, plan_id: str) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None or not plan.is_available:
            raise PlanNotFoundError(f"Subscription plan {plan_id} not found", plan_id=plan_id)
        return plan

    def find_plan(self, plan_id: str) -> Plan | None:
        """Look up a plan including unavailable ones (for existing subscribers)."""
        return self._plans.get(plan_id)

    def get_plan_priority(self, plan_id: str) -> int:
        return self._require_known(plan_id).priority

    def is_plan_free(self, plan_id: str) -> bool:
        plan = self._require_known(plan_id)
        return plan.plan_type == PlanType.FREE or plan.monthly_price == 0

    def classify_change(self, current_plan_id: str, target_plan_id: str) -> PlanChangeDirection:
        """Classify moving from ``current_plan_id`` to ``target_plan_id``.

        Raises:
            NoOpPlanChangeError: both ids name the same plan.
        """
        if current_plan_id == target_plan_id:
            raise NoOpPlanChangeError(
                f"Already subscribed to plan {target_plan_id}", plan_id=target_plan_id
            )

        current = self.get_plan_priority(current_plan_id)
        target = self.get_plan_priority(target_plan_id)
        if target > current:
            return PlanChangeDirection.UPGRADE
        if target < current:
            return PlanChangeDirection.DOWNGRADE
        return PlanChangeDirection.LATERAL

    def _require_known(self, plan_id: str) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Subscription plan {plan_id} not found", plan_id=plan_id)
        return plan
