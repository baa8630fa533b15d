"""
Plan change request and result models.
"""

from pydantic import BaseModel, ConfigDict, Field

from planwise.billing.core.enums import PlanChangeDirection
from planwise.billing.invoicing.models import Invoice
from planwise.billing.subscriptions.models import Subscription


class SubscriptionChangeRequest(BaseModel):
    """Request to move a user to another plan"""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    plan_id: str = Field(min_length=1, description="Target plan ID")
    billing_cycle: str | None = Field(
        None, description="New billing cycle; keeps the current one when omitted"
    )


class SubscriptionResult(BaseModel):
    """New subscription and its first invoice (none for free plans)."""

    subscription: Subscription
    invoice: Invoice | None = None


class FeatureAccessChange(BaseModel):
    """Features gained and lost by a plan change."""

    granted: list[str] = Field(default_factory=list)
    revoked: list[str] = Field(default_factory=list)


class PlanChangeResult(BaseModel):
    """Outcome of a plan change."""

    previous_subscription: Subscription
    subscription: Subscription
    invoice: Invoice | None = None
    direction: PlanChangeDirection
    access_change: FeatureAccessChange = Field(default_factory=FeatureAccessChange)
    resource_warnings: list[str] = Field(
        default_factory=list,
        description="Resources whose usage exceeds the new plan's limits",
    )
    voided_invoice_ids: list[str] = Field(default_factory=list)


class CancellationResult(BaseModel):
    subscription: Subscription
    message: str
    voided_invoice_ids: list[str] = Field(default_factory=list)


class SubscriptionFeature(BaseModel):
    """Plan feature with the user's consumption of it."""

    name: str
    description: str = ""
    included: bool
    limit: str | None = None
    current_usage: int | None = None
    usage_percentage: int | None = Field(None, ge=0, le=100)
