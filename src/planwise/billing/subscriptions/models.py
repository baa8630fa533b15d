"""
Subscription models.
"""

from datetime import datetime
from typing import ClassVar
from uuid import uuid4

from pydantic import Field, model_validator

from planwise.billing.core.enums import BillingCycle, SubscriptionStatus
from planwise.billing.core.repository import VersionedRecord


def generate_subscription_id() -> str:
    return f"sub_{uuid4().hex[:12]}"


class Subscription(VersionedRecord):
    """A user's subscription to a plan for one billing period."""

    id_field: ClassVar[str] = "subscription_id"

    subscription_id: str = Field(default_factory=generate_subscription_id)
    user_id: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
    status: SubscriptionStatus
    billing_cycle: BillingCycle

    start_date: datetime
    end_date: datetime
    canceled_at: datetime | None = None
    trial_end_date: datetime | None = None

    auto_renew: bool = True
    cancel_at_period_end: bool = False
    superseded_by: str | None = Field(None, description="Subscription that replaced this one")

    @model_validator(mode="after")
    def validate_period(self) -> "Subscription":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self

    @property
    def is_current(self) -> bool:
        return self.status.is_current

    def is_in_trial(self, now: datetime) -> bool:
        return (
            self.status == SubscriptionStatus.TRIAL
            and self.trial_end_date is not None
            and now < self.trial_end_date
        )
