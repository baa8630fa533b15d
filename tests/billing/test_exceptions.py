"""
Tests for billing exceptions.
"""

import pytest

from planwise.billing.exceptions import (
    BillingConflictError,
    BillingError,
    BillingNotFoundError,
    BillingValidationError,
    ConcurrentModificationError,
    DefaultPaymentMethodRemovalError,
    DuplicatePaymentMethodError,
    DuplicatePlanError,
    DuplicateSubscriptionError,
    InvalidBillingCycleError,
    InvalidResourceLimitError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    NoOpPlanChangeError,
    PaymentGatewayError,
    PaymentInProgressError,
    PaymentMethodNotFoundError,
    PaymentRetryError,
    PaymentRetryLimitError,
    PlanNotFoundError,
    SubscriptionNotFoundError,
    TransactionNotFoundError,
)


@pytest.mark.unit
class TestBillingError:
    """Test base error"""

    def test_defaults(self):
        error = BillingError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.error_code == "BILLING_ERROR"
        assert error.status_code == 400
        assert error.context == {}
        assert error.recovery_hint is None

    def test_to_dict(self):
        error = PlanNotFoundError("Plan platinum not found", plan_id="platinum")

        assert error.to_dict() == {
            "error_code": "PLAN_NOT_FOUND",
            "message": "Plan platinum not found",
            "status_code": 404,
            "context": {"plan_id": "platinum"},
            "recovery_hint": error.recovery_hint,
        }


@pytest.mark.unit
class TestErrorFamilies:
    """Test every error belongs to its family"""

    @pytest.mark.parametrize(
        "error",
        [
            PlanNotFoundError("x", plan_id="p"),
            SubscriptionNotFoundError("x", user_id="u"),
            InvoiceNotFoundError("x", invoice_id="i"),
            PaymentMethodNotFoundError("x", payment_method_id="pm"),
            TransactionNotFoundError("x", transaction_id="t"),
        ],
    )
    def test_not_found(self, error):
        assert isinstance(error, BillingNotFoundError)
        assert error.status_code == 404

    @pytest.mark.parametrize(
        "error",
        [
            InvalidResourceLimitError("x", limit="ten"),
            InvalidBillingCycleError("x", billing_cycle="weekly"),
        ],
    )
    def test_validation(self, error):
        assert isinstance(error, BillingValidationError)
        assert error.status_code == 422

    @pytest.mark.parametrize(
        "error",
        [
            DuplicatePlanError("x", plan_id="p"),
            DuplicateSubscriptionError("x", user_id="u", subscription_id="s"),
            NoOpPlanChangeError("x", plan_id="p"),
            InvalidStateTransitionError("x", "invoice", "paid", "open"),
            InvoiceNotPayableError("x", invoice_id="i", status="paid"),
            PaymentInProgressError("x", invoice_id="i", transaction_id="t"),
            PaymentRetryError("x", transaction_id="t"),
            PaymentRetryLimitError("x", transaction_id="t", attempts=3),
            DuplicatePaymentMethodError("x", payment_method_id="pm"),
            DefaultPaymentMethodRemovalError("x", payment_method_id="pm"),
            ConcurrentModificationError("x", record_id="r", expected=1, actual=2),
        ],
    )
    def test_conflict(self, error):
        assert isinstance(error, BillingConflictError)
        assert error.status_code == 409

    def test_retry_limit_is_retry_error(self):
        error = PaymentRetryLimitError("x", transaction_id="t", attempts=3)

        assert isinstance(error, PaymentRetryError)
        assert error.error_code == "PAYMENT_RETRY_LIMIT"
        assert error.context == {"transaction_id": "t", "failed_attempts": 3}

    def test_gateway_error(self):
        error = PaymentGatewayError("Gateway unavailable", gateway="mock")

        assert not isinstance(error, BillingConflictError)
        assert error.status_code == 502
        assert error.context["gateway"] == "mock"
