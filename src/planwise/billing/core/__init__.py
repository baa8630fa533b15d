"""Shared billing primitives: enums, repositories, locks and time."""

from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.enums import (
    BillingCycle,
    InvoiceStatus,
    PaymentMethodType,
    PaymentStatus,
    PlanChangeDirection,
    PlanType,
    ProrationBehavior,
    SubscriptionStatus,
    ensure_transition,
)
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.core.repository import InMemoryRepository, VersionedRecord

__all__ = [
    "BillingCycle",
    "Clock",
    "InMemoryRepository",
    "InvoiceStatus",
    "PaymentMethodType",
    "PaymentStatus",
    "PlanChangeDirection",
    "PlanType",
    "ProrationBehavior",
    "SubscriptionStatus",
    "UserLockRegistry",
    "VersionedRecord",
    "ensure_transition",
    "utcnow",
]
