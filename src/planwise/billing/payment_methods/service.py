"""
Payment method service.

Keeps each user's payment methods and their single default.
"""

from typing import Any

import structlog

from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.enums import PaymentMethodType
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.core.repository import InMemoryRepository
from planwise.billing.exceptions import (
    BillingValidationError,
    DefaultPaymentMethodRemovalError,
    DuplicatePaymentMethodError,
    PaymentMethodNotFoundError,
)
from planwise.billing.payment_methods.models import PaymentMethod
from planwise.logging import log_audit_event

logger = structlog.get_logger(__name__)


class PaymentMethodService:
    """Add, list, default and remove payment methods per user."""

    def __init__(
        self,
        locks: UserLockRegistry,
        repository: InMemoryRepository[PaymentMethod] | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.locks = locks
        self.repository = repository or InMemoryRepository[PaymentMethod]("payment_method")
        self.clock = clock

    async def add_payment_method(
        self,
        user_id: str,
        payment_method_id: str,
        method_type: PaymentMethodType | str,
        details: dict[str, Any] | None = None,
        is_default: bool = False,
    ) -> PaymentMethod:
        """Register a payment method.

        The user's first method becomes the default. Adding with
        ``is_default=True`` demotes the current default.

        Raises:
            DuplicatePaymentMethodError: the id is already registered.
            BillingValidationError: unknown method type.
        """
        try:
            method_type = PaymentMethodType(method_type)
        except ValueError:
            raise BillingValidationError(
                f"Unsupported payment method type: {method_type}",
                context={"method_type": str(method_type)},
            ) from None

        async with self.locks.hold(user_id):
            if self.repository.get(payment_method_id) is not None:
                raise DuplicatePaymentMethodError(
                    "Payment method already exists", payment_method_id=payment_method_id
                )

            existing = self._user_methods(user_id)
            make_default = is_default or not existing
            if make_default:
                self._clear_default(existing)

            method = self.repository.add(
                PaymentMethod(
                    payment_method_id=payment_method_id,
                    user_id=user_id,
                    method_type=method_type,
                    details=details or {},
                    is_default=make_default,
                    created_at=self.clock(),
                )
            )

        logger.info(
            "payment_method.added",
            user_id=user_id,
            payment_method_id=payment_method_id,
            method_type=method_type,
            is_default=make_default,
        )
        log_audit_event(
            "payment_method.added",
            "billing",
            user_id=user_id,
            resource_type="payment_method",
            resource_id=payment_method_id,
        )
        return method

    async def get_user_payment_methods(self, user_id: str) -> list[PaymentMethod]:
        """Methods of the user in the order they were added."""
        return self._user_methods(user_id)

    async def get_payment_method(self, user_id: str, payment_method_id: str) -> PaymentMethod:
        method = self.find_payment_method(user_id, payment_method_id)
        if method is None:
            raise PaymentMethodNotFoundError(
                "Payment method not found", payment_method_id=payment_method_id
            )
        return method

    async def get_default_payment_method(self, user_id: str) -> PaymentMethod | None:
        return self.find_default_payment_method(user_id)

    async def set_default_payment_method(
        self, user_id: str, payment_method_id: str
    ) -> PaymentMethod:
        """Make ``payment_method_id`` the user's only default method."""
        async with self.locks.hold(user_id):
            method = self.find_payment_method(user_id, payment_method_id)
            if method is None:
                raise PaymentMethodNotFoundError(
                    "Payment method not found", payment_method_id=payment_method_id
                )
            if not method.is_default:
                self._clear_default(self._user_methods(user_id))
                method.is_default = True
                method = self.repository.update(method)

        logger.info(
            "payment_method.default_set", user_id=user_id, payment_method_id=payment_method_id
        )
        return method

    async def remove_payment_method(self, user_id: str, payment_method_id: str) -> None:
        """Remove a method.

        Raises:
            PaymentMethodNotFoundError: unknown id or owned by another user.
            DefaultPaymentMethodRemovalError: removing the default while
                other methods remain.
        """
        async with self.locks.hold(user_id):
            method = self.find_payment_method(user_id, payment_method_id)
            if method is None:
                raise PaymentMethodNotFoundError(
                    "Payment method not found", payment_method_id=payment_method_id
                )
            if method.is_default and len(self._user_methods(user_id)) > 1:
                raise DefaultPaymentMethodRemovalError(
                    "Cannot remove default payment method. Set another method as default first.",
                    payment_method_id=payment_method_id,
                )
            self.repository.remove(payment_method_id)

        logger.info("payment_method.removed", user_id=user_id, payment_method_id=payment_method_id)
        log_audit_event(
            "payment_method.removed",
            "billing",
            user_id=user_id,
            resource_type="payment_method",
            resource_id=payment_method_id,
        )

    def find_payment_method(self, user_id: str, payment_method_id: str) -> PaymentMethod | None:
        method = self.repository.get(payment_method_id)
        if method is None or method.user_id != user_id:
            return None
        return method

    def find_default_payment_method(self, user_id: str) -> PaymentMethod | None:
        defaults = [method for method in self._user_methods(user_id) if method.is_default]
        return defaults[0] if defaults else None

    def _user_methods(self, user_id: str) -> list[PaymentMethod]:
        return self.repository.find_all(lambda method: method.user_id == user_id)

    def _clear_default(self, methods: list[PaymentMethod]) -> None:
        for method in methods:
            if method.is_default:
                method.is_default = False
                self.repository.update(method)
