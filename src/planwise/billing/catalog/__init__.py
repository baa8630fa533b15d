"""Plan catalog: plan definitions and tier ordering."""

from planwise.billing.catalog.models import Plan, PlanFeature
from planwise.billing.catalog.service import PlanCatalog

__all__ = ["Plan", "PlanFeature", "PlanCatalog"]
