"""Per-user payment method registry."""

from planwise.billing.payment_methods.models import PaymentMethod
from planwise.billing.payment_methods.service import PaymentMethodService

__all__ = ["PaymentMethod", "PaymentMethodService"]
