"""
Payment transaction models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import Field

from planwise.billing.core.enums import PaymentMethodType, PaymentStatus
from planwise.billing.core.repository import VersionedRecord


def generate_transaction_id() -> str:
    return f"txn_{uuid4().hex[:12]}"


class PaymentTransaction(VersionedRecord):
    """One payment attempt against an invoice.

    Immutable once COMPLETED or FAILED, apart from refund transitions.
    """

    id_field: ClassVar[str] = "transaction_id"

    transaction_id: str = Field(default_factory=generate_transaction_id)
    user_id: str = Field(min_length=1)
    invoice_id: str | None = None
    payment_method: PaymentMethodType
    payment_method_id: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING

    amount: Decimal = Field(ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    date: datetime
    processed_at: datetime | None = None

    gateway_transaction_id: str | None = None
    failure_reason: str | None = None
    attempt_number: int = Field(1, ge=1)
    retry_of: str | None = Field(None, description="Failed transaction this attempt retries")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def requires_refund(self) -> bool:
        return bool(self.metadata.get("requires_refund"))
