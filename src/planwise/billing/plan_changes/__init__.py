"""Subscribe, change and cancel flows across the billing components."""

from planwise.billing.plan_changes.models import (
    CancellationResult,
    FeatureAccessChange,
    PlanChangeResult,
    SubscriptionChangeRequest,
    SubscriptionFeature,
    SubscriptionResult,
)
from planwise.billing.plan_changes.service import PlanChangeCoordinator

__all__ = [
    "CancellationResult",
    "FeatureAccessChange",
    "PlanChangeCoordinator",
    "PlanChangeResult",
    "SubscriptionChangeRequest",
    "SubscriptionFeature",
    "SubscriptionResult",
]
