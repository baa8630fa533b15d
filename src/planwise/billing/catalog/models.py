"""
Plan catalog models.

Plans are frozen once built; the catalog publishes them as-is.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from planwise.billing.core.enums import PlanType
from planwise.billing.exceptions import InvalidResourceLimitError
from planwise.billing.usage.limits import parse_resource_limit


class PlanFeature(BaseModel):
    """Feature entry of a plan; metered features carry a ``limit``."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, description="Feature or resource name")
    description: str = Field("", description="Human readable description")
    included: bool = Field(description="Whether the plan includes the feature")
    limit: str | None = Field(None, description="'unlimited' or an integer bound")

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: str | None) -> str | None:
        """Reject limits the usage tracker cannot parse."""
        if v is None:
            return v
        try:
            parse_resource_limit(v)
        except InvalidResourceLimitError as exc:
            raise ValueError(exc.message) from exc
        return v

    @property
    def numeric_limit(self) -> int | None:
        return parse_resource_limit(self.limit) if self.limit is not None else None


class Plan(BaseModel):
    """Purchasable subscription tier."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    plan_id: str = Field(min_length=1, description="Plan identifier")
    plan_type: PlanType = Field(description="Tier, determines plan priority")
    name: str = Field(min_length=1, max_length=100)
    description: str = Field("", max_length=500)

    currency: str = Field("USD", min_length=3, max_length=3)
    monthly_price: Decimal = Field(ge=0)
    annual_price: Decimal = Field(ge=0)
    quarterly_price: Decimal | None = Field(
        None, ge=0, description="Overrides three times the monthly price"
    )
    setup_fee: Decimal | None = Field(None, ge=0, description="Charged on a first invoice only")
    trial_days: int | None = Field(None, ge=1, description="Trial length for new subscribers")

    features: tuple[PlanFeature, ...] = Field(default_factory=tuple)
    is_popular: bool = False
    is_available: bool = True

    @model_validator(mode="after")
    def validate_unique_features(self) -> "Plan":
        names = [feature.name for feature in self.features]
        if len(names) != len(set(names)):
            raise ValueError(f"Plan {self.plan_id} declares duplicate features")
        return self

    @property
    def priority(self) -> int:
        return self.plan_type.priority

    def get_feature(self, name: str) -> PlanFeature | None:
        for feature in self.features:
            if feature.name == name:
                return feature
        return None
