"""
Payment gateway integrations.

Real gateways are external collaborators; this module defines their
interface plus the simulated and mock gateways used by the billing core.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class PaymentResult(BaseModel):
    """Result of a gateway charge"""

    success: bool
    provider_payment_id: str | None = None
    error_message: str | None = None
    error_code: str | None = None


class PaymentGateway(ABC):
    """Abstract base class for payment gateways"""

    name: str = "gateway"

    @abstractmethod
    async def charge_payment_method(
        self,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentResult:
        """Charge ``amount`` minor units to a stored payment method.

        A decline is reported as an unsuccessful ``PaymentResult``; gateway
        malfunctions raise ``PaymentGatewayError``.
        """


class SimulatedPaymentGateway(PaymentGateway):
    """Gateway that approves a configurable share of charges at random."""

    name = "simulated"

    def __init__(
        self,
        success_rate: float = 0.9,
        latency_seconds: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        if not 0 <= success_rate <= 1:
            raise ValueError(f"success_rate must be within [0, 1], got {success_rate}")
        self.success_rate = success_rate
        self.latency_seconds = latency_seconds
        self.rng = rng or random.Random()

    async def charge_payment_method(
        self,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentResult:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        if self.rng.random() < self.success_rate:
            return PaymentResult(success=True, provider_payment_id=f"sim_{uuid4().hex[:16]}")

        logger.debug(
            "gateway.simulated_decline",
            amount=amount,
            currency=currency,
            payment_method_id=payment_method_id,
        )
        return PaymentResult(
            success=False,
            error_message="Payment declined by simulated gateway",
            error_code="card_declined",
        )


class MockPaymentGateway(PaymentGateway):
    """Deterministic gateway for tests.

    ``outcomes`` is consumed one entry per charge: ``True`` approves,
    ``False`` declines and an exception instance is raised. Once exhausted,
    ``always_succeed`` decides. ``gate``, when given, holds every charge until
    the event is set.
    """

    name = "mock"

    def __init__(
        self,
        always_succeed: bool = True,
        outcomes: Iterable[bool | Exception] = (),
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.always_succeed = always_succeed
        self.outcomes = list(outcomes)
        self.delay = delay
        self.gate = gate
        self.calls: list[dict[str, Any]] = []
        self.payment_counter = 0

    async def charge_payment_method(
        self,
        amount: int,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentResult:
        self.calls.append(
            {
                "amount": amount,
                "currency": currency,
                "payment_method_id": payment_method_id,
                "metadata": metadata or {},
            }
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

        outcome = self.outcomes.pop(0) if self.outcomes else self.always_succeed
        if isinstance(outcome, Exception):
            raise outcome

        self.payment_counter += 1
        if outcome:
            return PaymentResult(
                success=True, provider_payment_id=f"mock_payment_{self.payment_counter}"
            )
        return PaymentResult(
            success=False, error_message="Mock payment failed", error_code="mock_error"
        )
