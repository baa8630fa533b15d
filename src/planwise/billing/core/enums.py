"""
Billing enumerations and their status state machines.

Each status enum exposes its allowed transitions through an exhaustive
``match`` so adding a member without deciding its transitions fails loudly.
"""

from enum import StrEnum
from typing import TypeAlias

from planwise.billing.exceptions import InvalidStateTransitionError


class PlanType(StrEnum):
    """Plan tiers, ordered by priority."""

    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

    @property
    def priority(self) -> int:
        match self:
            case PlanType.FREE:
                return 0
            case PlanType.BASIC:
                return 1
            case PlanType.PREMIUM:
                return 2
            case PlanType.ENTERPRISE:
                return 3


class BillingCycle(StrEnum):
    """Recurring billing period."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class PlanChangeDirection(StrEnum):
    """Classification of a plan change by tier priority."""

    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    LATERAL = "lateral"


class ProrationBehavior(StrEnum):
    """How a mid-cycle plan change is priced."""

    NONE = "none"
    CREATE_PRORATIONS = "prorate"


class SubscriptionStatus(StrEnum):
    """Subscription lifecycle status."""

    ACTIVE = "active"
    CANCELED = "canceled"
    EXPIRED = "expired"
    PENDING = "pending"
    PAST_DUE = "past_due"
    TRIAL = "trial"

    @property
    def is_current(self) -> bool:
        """Statuses a user's live subscription can be in."""
        return self in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIAL,
            SubscriptionStatus.PAST_DUE,
        )

    @property
    def grants_access(self) -> bool:
        return self in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL)

    def allowed_transitions(self) -> frozenset["SubscriptionStatus"]:
        match self:
            case SubscriptionStatus.TRIAL:
                return frozenset(
                    {
                        SubscriptionStatus.ACTIVE,
                        SubscriptionStatus.PAST_DUE,
                        SubscriptionStatus.CANCELED,
                        SubscriptionStatus.EXPIRED,
                    }
                )
            case SubscriptionStatus.PENDING:
                return frozenset(
                    {
                        SubscriptionStatus.ACTIVE,
                        SubscriptionStatus.CANCELED,
                        SubscriptionStatus.EXPIRED,
                    }
                )
            case SubscriptionStatus.ACTIVE:
                return frozenset(
                    {
                        SubscriptionStatus.PAST_DUE,
                        SubscriptionStatus.CANCELED,
                        SubscriptionStatus.EXPIRED,
                    }
                )
            case SubscriptionStatus.PAST_DUE:
                return frozenset(
                    {
                        SubscriptionStatus.ACTIVE,
                        SubscriptionStatus.CANCELED,
                        SubscriptionStatus.EXPIRED,
                    }
                )
            case SubscriptionStatus.CANCELED | SubscriptionStatus.EXPIRED:
                return frozenset()


class InvoiceStatus(StrEnum):
    """Invoice status."""

    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"
    VOID = "void"

    @property
    def is_payable(self) -> bool:
        return self in (InvoiceStatus.OPEN, InvoiceStatus.OVERDUE)

    @property
    def is_unpaid(self) -> bool:
        return self in (InvoiceStatus.DRAFT, InvoiceStatus.OPEN, InvoiceStatus.OVERDUE)

    def allowed_transitions(self) -> frozenset["InvoiceStatus"]:
        match self:
            case InvoiceStatus.DRAFT:
                return frozenset({InvoiceStatus.OPEN, InvoiceStatus.VOID, InvoiceStatus.CANCELED})
            case InvoiceStatus.OPEN:
                return frozenset(
                    {
                        InvoiceStatus.PAID,
                        InvoiceStatus.OVERDUE,
                        InvoiceStatus.VOID,
                        InvoiceStatus.CANCELED,
                    }
                )
            case InvoiceStatus.OVERDUE:
                return frozenset({InvoiceStatus.PAID, InvoiceStatus.VOID, InvoiceStatus.CANCELED})
            case InvoiceStatus.PAID | InvoiceStatus.VOID | InvoiceStatus.CANCELED:
                return frozenset()


class PaymentStatus(StrEnum):
    """Payment transaction status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"

    def allowed_transitions(self) -> frozenset["PaymentStatus"]:
        match self:
            case PaymentStatus.PENDING:
                return frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED})
            case PaymentStatus.COMPLETED:
                return frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED})
            case PaymentStatus.PARTIALLY_REFUNDED:
                return frozenset({PaymentStatus.REFUNDED})
            case PaymentStatus.FAILED | PaymentStatus.REFUNDED:
                return frozenset()


class PaymentMethodType(StrEnum):
    """Supported payment method types."""

    CREDIT_CARD = "credit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CRYPTO = "crypto"


StatusEnum: TypeAlias = SubscriptionStatus | InvoiceStatus | PaymentStatus


def ensure_transition(entity: str, current: StatusEnum, target: StatusEnum) -> None:
    """Raise ``InvalidStateTransitionError`` unless ``current -> target`` is allowed."""
    if target not in current.allowed_transitions():
        raise InvalidStateTransitionError(
            f"Cannot move {entity} from {current.value} to {target.value}",
            entity=entity,
            current_state=current.value,
            requested_state=target.value,
        )
