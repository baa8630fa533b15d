"""
Invoice models.

Amounts are ``Decimal`` values rounded to currency precision by
``MoneyHandler``; ``total`` always equals ``subtotal + tax``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from planwise.billing.core.enums import InvoiceStatus
from planwise.billing.core.repository import VersionedRecord


def generate_invoice_id() -> str:
    return f"in_{uuid4().hex[:12]}"


class InvoiceLineItem(BaseModel):
    """Single charge or credit on an invoice."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    description: str = Field(max_length=500)
    quantity: int = Field(1, ge=1)
    unit_price: Decimal
    amount: Decimal
    plan_id: str | None = None


class Invoice(VersionedRecord):
    """Invoice issued for a subscription period."""

    id_field: ClassVar[str] = "invoice_id"

    invoice_id: str = Field(default_factory=generate_invoice_id)
    invoice_number: str
    user_id: str = Field(min_length=1)
    subscription_id: str | None = None
    status: InvoiceStatus = InvoiceStatus.OPEN

    date: datetime
    due_date: datetime

    currency: str = Field("USD", min_length=3, max_length=3)
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)
    line_items: list[InvoiceLineItem] = Field(default_factory=list)

    notes: str | None = Field(None, max_length=2000)
    paid_at: datetime | None = None
    voided_at: datetime | None = None
    extra_data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_totals(self) -> "Invoice":
        if self.total != self.subtotal + self.tax:
            raise ValueError("Invoice total must equal subtotal plus tax")
        if self.due_date < self.date:
            raise ValueError("due_date must not precede the invoice date")
        return self


class InvoiceDocument(BaseModel):
    """Reference to an externally rendered invoice document."""

    invoice_id: str
    invoice_number: str
    url: str
    content_type: str = "application/pdf"
