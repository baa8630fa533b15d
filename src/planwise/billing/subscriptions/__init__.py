"""Subscription lifecycle and billing-cycle arithmetic."""

from planwise.billing.subscriptions.cycles import BillingCycleCalculator
from planwise.billing.subscriptions.models import Subscription
from planwise.billing.subscriptions.service import SubscriptionStore

__all__ = ["BillingCycleCalculator", "Subscription", "SubscriptionStore"]
