"""
Billing system exceptions.

Custom exceptions for billing operations with clear error messages.
Every concrete error belongs to one of three families that the API layer
translates to transport codes: not found, validation and conflict.
Payment declines and quota denials are not exceptions.
"""

from typing import Any


class BillingError(Exception):
    """
    Base billing system error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "BILLING_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


# ============================================================================
# Not found
# ============================================================================


class BillingNotFoundError(BillingError):
    """A requested billing entity does not exist or belongs to another user."""

    def __init__(
        self,
        message: str,
        error_code: str = "NOT_FOUND",
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, error_code, status_code=404, context=context, recovery_hint=recovery_hint
        )


class PlanNotFoundError(BillingNotFoundError):
    """Subscription plan not found error."""

    def __init__(self, message: str, plan_id: str | None = None) -> None:
        context = {}
        if plan_id:
            context["plan_id"] = plan_id

        super().__init__(
            message,
            "PLAN_NOT_FOUND",
            context=context,
            recovery_hint="Verify the plan ID and ensure it exists and is available",
        )


class SubscriptionNotFoundError(BillingNotFoundError):
    """Subscription not found error."""

    def __init__(
        self, message: str, subscription_id: str | None = None, user_id: str | None = None
    ):
        context = {}
        if subscription_id:
            context["subscription_id"] = subscription_id
        if user_id:
            context["user_id"] = user_id

        super().__init__(
            message,
            "SUBSCRIPTION_NOT_FOUND",
            context=context,
            recovery_hint="Subscribe to a plan before managing the subscription",
        )


class InvoiceNotFoundError(BillingNotFoundError):
    """Invoice not found error."""

    def __init__(self, message: str, invoice_id: str | None = None) -> None:
        context = {}
        if invoice_id:
            context["invoice_id"] = invoice_id

        super().__init__(
            message,
            "INVOICE_NOT_FOUND",
            context=context,
            recovery_hint="Verify the invoice ID and ensure it exists",
        )


class PaymentMethodNotFoundError(BillingNotFoundError):
    """Payment method not found error."""

    def __init__(self, message: str, payment_method_id: str | None = None) -> None:
        context = {}
        if payment_method_id:
            context["payment_method_id"] = payment_method_id

        super().__init__(
            message,
            "PAYMENT_METHOD_NOT_FOUND",
            context=context,
            recovery_hint="Add a payment method or mark an existing one as default",
        )


class TransactionNotFoundError(BillingNotFoundError):
    """Payment transaction not found error."""

    def __init__(self, message: str, transaction_id: str | None = None) -> None:
        context = {}
        if transaction_id:
            context["transaction_id"] = transaction_id

        super().__init__(
            message,
            "TRANSACTION_NOT_FOUND",
            context=context,
            recovery_hint="Verify the transaction ID",
        )


# ============================================================================
# Validation
# ============================================================================


class BillingValidationError(BillingError):
    """Malformed input supplied to a billing operation."""

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_ERROR",
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, error_code, status_code=422, context=context, recovery_hint=recovery_hint
        )


class InvalidResourceLimitError(BillingValidationError):
    """Resource limit string is neither 'unlimited' nor an integer."""

    def __init__(self, message: str, limit: str | None = None) -> None:
        super().__init__(
            message,
            "INVALID_RESOURCE_LIMIT",
            context={"limit": limit},
            recovery_hint="Use 'unlimited' or a non-negative integer",
        )


class InvalidBillingCycleError(BillingValidationError):
    """Unknown billing cycle value."""

    def __init__(self, message: str, billing_cycle: str | None = None) -> None:
        super().__init__(
            message,
            "INVALID_BILLING_CYCLE",
            context={"billing_cycle": billing_cycle},
            recovery_hint="Use one of: monthly, quarterly, annual",
        )


# ============================================================================
# Conflict
# ============================================================================


class BillingConflictError(BillingError):
    """Operation conflicts with the current state of a billing entity."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFLICT",
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        super().__init__(
            message, error_code, status_code=409, context=context, recovery_hint=recovery_hint
        )


class DuplicatePlanError(BillingConflictError):
    """Plan already registered in the catalog."""

    def __init__(self, message: str, plan_id: str) -> None:
        super().__init__(
            message,
            "DUPLICATE_PLAN",
            context={"plan_id": plan_id},
            recovery_hint="Publish the plan under a new ID",
        )


class DuplicateSubscriptionError(BillingConflictError):
    """User already has a current subscription."""

    def __init__(self, message: str, user_id: str, subscription_id: str) -> None:
        super().__init__(
            message,
            "DUPLICATE_SUBSCRIPTION",
            context={"user_id": user_id, "subscription_id": subscription_id},
            recovery_hint="Change or cancel the existing subscription instead",
        )


class NoOpPlanChangeError(BillingConflictError):
    """Requested plan is the plan the user is already on."""

    def __init__(self, message: str, plan_id: str) -> None:
        super().__init__(
            message,
            "NO_OP_PLAN_CHANGE",
            context={"plan_id": plan_id},
            recovery_hint="Choose a different plan",
        )


class InvalidStateTransitionError(BillingConflictError):
    """Invalid status transition for a subscription, invoice or transaction."""

    def __init__(
        self, message: str, entity: str, current_state: str, requested_state: str
    ) -> None:
        super().__init__(
            message,
            "INVALID_STATE_TRANSITION",
            context={
                "entity": entity,
                "current_state": current_state,
                "requested_state": requested_state,
            },
            recovery_hint=f"Cannot transition from {current_state} to {requested_state}.",
        )


class InvoiceNotPayableError(BillingConflictError):
    """Invoice is not in a payable state."""

    def __init__(self, message: str, invoice_id: str, status: str) -> None:
        super().__init__(
            message,
            "INVOICE_NOT_PAYABLE",
            context={"invoice_id": invoice_id, "status": status},
            recovery_hint="Only open or overdue invoices can be paid",
        )


class PaymentInProgressError(BillingConflictError):
    """Another payment attempt for the invoice has not finished yet."""

    def __init__(self, message: str, invoice_id: str, transaction_id: str) -> None:
        super().__init__(
            message,
            "PAYMENT_IN_PROGRESS",
            context={"invoice_id": invoice_id, "transaction_id": transaction_id},
            recovery_hint="Wait for the pending attempt to complete",
        )


class PaymentRetryError(BillingConflictError):
    """Transaction cannot be retried."""

    def __init__(
        self,
        message: str,
        transaction_id: str,
        error_code: str = "PAYMENT_NOT_RETRYABLE",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            error_code,
            context={"transaction_id": transaction_id, **(context or {})},
            recovery_hint="Only failed transactions can be retried",
        )


class PaymentRetryLimitError(PaymentRetryError):
    """Invoice already accumulated the maximum number of failed attempts."""

    def __init__(self, message: str, transaction_id: str, attempts: int) -> None:
        super().__init__(
            message,
            transaction_id,
            "PAYMENT_RETRY_LIMIT",
            context={"failed_attempts": attempts},
        )
        self.recovery_hint = "Use a different payment method or contact support"


class DuplicatePaymentMethodError(BillingConflictError):
    """Payment method with the same ID already exists for the user."""

    def __init__(self, message: str, payment_method_id: str) -> None:
        super().__init__(
            message,
            "DUPLICATE_PAYMENT_METHOD",
            context={"payment_method_id": payment_method_id},
        )


class DefaultPaymentMethodRemovalError(BillingConflictError):
    """Default payment method cannot be removed while others exist."""

    def __init__(self, message: str, payment_method_id: str) -> None:
        super().__init__(
            message,
            "DEFAULT_PAYMENT_METHOD_REMOVAL",
            context={"payment_method_id": payment_method_id},
            recovery_hint="Set another method as default first",
        )


class ConcurrentModificationError(BillingConflictError):
    """Record changed since it was read."""

    def __init__(self, message: str, record_id: str, expected: int, actual: int) -> None:
        super().__init__(
            message,
            "CONCURRENT_MODIFICATION",
            context={
                "record_id": record_id,
                "expected_version": expected,
                "actual_version": actual,
            },
            recovery_hint="Reload the record and retry the operation",
        )


# ============================================================================
# Gateway
# ============================================================================


class PaymentGatewayError(BillingError):
    """Payment gateway failed to produce an outcome.

    Raised by gateway implementations; the payment processor records it as a
    failed transaction instead of propagating it.
    """

    def __init__(self, message: str, gateway: str | None = None) -> None:
        super().__init__(
            message,
            "PAYMENT_GATEWAY_ERROR",
            status_code=502,
            context={"gateway": gateway} if gateway else None,
        )
