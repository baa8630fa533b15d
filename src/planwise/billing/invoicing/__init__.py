"""Invoice generation for subscriptions."""

from planwise.billing.invoicing.models import Invoice, InvoiceDocument, InvoiceLineItem
from planwise.billing.invoicing.service import InvoiceGenerator

__all__ = ["Invoice", "InvoiceDocument", "InvoiceGenerator", "InvoiceLineItem"]
