"""Payment processing against invoices."""

from planwise.billing.payments.models import PaymentTransaction
from planwise.billing.payments.providers import (
    MockPaymentGateway,
    PaymentGateway,
    PaymentResult,
    SimulatedPaymentGateway,
)
from planwise.billing.payments.service import PaymentProcessor

__all__ = [
    "MockPaymentGateway",
    "PaymentGateway",
    "PaymentProcessor",
    "PaymentResult",
    "PaymentTransaction",
    "SimulatedPaymentGateway",
]
