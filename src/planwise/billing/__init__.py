"""
Billing system module.

Provides billing capabilities including:
- Plan catalog and tier ordering
- Subscription lifecycle and billing-cycle arithmetic
- Resource usage metering against plan quotas
- Invoice generation
- Payment methods and payment processing
- Plan upgrade and downgrade orchestration

Components are wired explicitly by ``planwise.billing.dependencies``.
"""

from planwise.billing.exceptions import (
    BillingConflictError,
    BillingError,
    BillingNotFoundError,
    BillingValidationError,
    InvoiceNotFoundError,
    PaymentGatewayError,
    PlanNotFoundError,
    SubscriptionNotFoundError,
)

__all__ = [
    "BillingConflictError",
    "BillingError",
    "BillingNotFoundError",
    "BillingValidationError",
    "InvoiceNotFoundError",
    "PaymentGatewayError",
    "PlanNotFoundError",
    "SubscriptionNotFoundError",
]
