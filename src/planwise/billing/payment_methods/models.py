"""
Payment method models.
"""

from datetime import datetime
from typing import Any, ClassVar

from pydantic import Field

from planwise.billing.core.enums import PaymentMethodType
from planwise.billing.core.repository import VersionedRecord


class PaymentMethod(VersionedRecord):
    """Stored payment method of a user.

    ``details`` is opaque to billing and handed to the gateway as metadata.
    """

    id_field: ClassVar[str] = "payment_method_id"

    payment_method_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    method_type: PaymentMethodType
    details: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    created_at: datetime
