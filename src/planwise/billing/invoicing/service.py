"""
Invoice generator.

Builds invoices from a subscription and its plan, numbers them
sequentially and tracks their status.
"""

import itertools
from datetime import datetime, timedelta
from decimal import Decimal

import structlog

from planwise.billing.catalog.models import Plan
from planwise.billing.config import BillingConfig
from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.enums import InvoiceStatus, SubscriptionStatus, ensure_transition
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.core.repository import InMemoryRepository
from planwise.billing.exceptions import InvoiceNotFoundError
from planwise.billing.invoicing.models import Invoice, InvoiceDocument, InvoiceLineItem
from planwise.billing.metrics import BillingMetrics
from planwise.billing.money_utils import MoneyHandler
from planwise.billing.subscriptions.cycles import BillingCycleCalculator
from planwise.billing.subscriptions.models import Subscription

logger = structlog.get_logger(__name__)


class InvoiceGenerator:
    """Creates and tracks subscription invoices."""

    def __init__(
        self,
        locks: UserLockRegistry,
        config: BillingConfig | None = None,
        calculator: BillingCycleCalculator | None = None,
        repository: InMemoryRepository[Invoice] | None = None,
        metrics: BillingMetrics | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.locks = locks
        self.config = config or BillingConfig()
        self.calculator = calculator or BillingCycleCalculator()
        self.repository = repository or InMemoryRepository[Invoice]("invoice")
        self.metrics = metrics or BillingMetrics()
        self.clock = clock
        self.money = MoneyHandler(
            default_currency=self.config.currency.default_currency,
            default_locale=self.config.currency.locale,
        )
        self._sequence = itertools.count(1)

    async def create_invoice_for_subscription(
        self,
        subscription: Subscription,
        plan: Plan,
        proration_credit: Decimal | None = None,
    ) -> Invoice:
        """Invoice one period of ``plan`` for ``subscription``.

        The setup fee is charged only on the user's first invoice. A proration
        credit is listed as a negative line and never pushes the subtotal
        below zero. Trial subscriptions get a DRAFT invoice to be finalized
        when the trial converts.
        """
        currency = plan.currency
        price = self.money.round_money(
            self.money.create_money(
                self.calculator.cycle_price(plan, subscription.billing_cycle), currency
            )
        )

        async with self.locks.hold(subscription.user_id):
            now = self.clock()
            line_items = [
                InvoiceLineItem(
                    description=f"{plan.name} Plan ({subscription.billing_cycle.value})",
                    quantity=1,
                    unit_price=price.amount,
                    amount=price.amount,
                    plan_id=plan.plan_id,
                )
            ]

            first_invoice = not self.repository.find_all(
                lambda inv: inv.user_id == subscription.user_id
            )
            if plan.setup_fee and first_invoice:
                fee = self.money.round_money(self.money.create_money(plan.setup_fee, currency))
                line_items.append(
                    InvoiceLineItem(
                        description=f"{plan.name} setup fee",
                        unit_price=fee.amount,
                        amount=fee.amount,
                        plan_id=plan.plan_id,
                    )
                )

            if proration_credit:
                credit = self.money.round_money(self.money.create_money(proration_credit, currency))
                line_items.append(
                    InvoiceLineItem(
                        description="Credit for unused time on previous plan",
                        unit_price=-credit.amount,
                        amount=-credit.amount,
                    )
                )

            charges = self.money.add_money(
                *(self.money.create_money(item.amount, currency) for item in line_items)
            )
            subtotal = max(charges.amount, Decimal("0"))
            tax = self.money.round_money(
                self.money.multiply_money(
                    self.money.create_money(subtotal, currency), self.config.tax.default_tax_rate
                )
            ).amount
            subtotal = self.money.round_money(self.money.create_money(subtotal, currency)).amount

            status = (
                InvoiceStatus.DRAFT
                if subscription.status == SubscriptionStatus.TRIAL
                else InvoiceStatus.OPEN
            )
            invoice = self.repository.add(
                Invoice(
                    invoice_number=self._next_invoice_number(now),
                    user_id=subscription.user_id,
                    subscription_id=subscription.subscription_id,
                    status=status,
                    date=now,
                    due_date=self._due_date(now),
                    currency=currency,
                    subtotal=subtotal,
                    tax=tax,
                    total=subtotal + tax,
                    line_items=line_items,
                )
            )

        self.metrics.record_invoice_created(
            self.money.money_to_minor_units(self.money.create_money(invoice.total, currency)),
            currency,
        )
        logger.info(
            "invoice.created",
            user_id=invoice.user_id,
            invoice_id=invoice.invoice_id,
            invoice_number=invoice.invoice_number,
            subscription_id=subscription.subscription_id,
            total=str(invoice.total),
            status=invoice.status,
        )
        return invoice

    async def get_user_invoices(self, user_id: str) -> list[Invoice]:
        """Invoices of the user, newest first."""
        invoices = self.repository.find_all(lambda inv: inv.user_id == user_id)
        return sorted(reversed(invoices), key=lambda inv: inv.date, reverse=True)

    async def get_invoice(self, invoice_id: str, user_id: str) -> Invoice:
        """Fetch an invoice owned by ``user_id``.

        Raises:
            InvoiceNotFoundError: absent or owned by another user.
        """
        invoice = self.repository.get(invoice_id)
        if invoice is None or invoice.user_id != user_id:
            raise InvoiceNotFoundError("Invoice not found", invoice_id=invoice_id)
        return invoice

    async def finalize_invoice(self, invoice_id: str, user_id: str) -> Invoice:
        """Open a DRAFT invoice, dating it now."""
        async with self.locks.hold(user_id):
            invoice = await self.get_invoice(invoice_id, user_id)
            invoice = self._open_draft(invoice)

        logger.info("invoice.finalized", user_id=user_id, invoice_id=invoice_id)
        return invoice

    async def finalize_subscription_drafts(
        self, user_id: str, subscription_id: str
    ) -> list[Invoice]:
        """Open every DRAFT invoice of a subscription, e.g. once its trial ends."""
        async with self.locks.hold(user_id):
            finalized = [
                self._open_draft(invoice)
                for invoice in self.repository.find_all(
                    lambda inv: inv.subscription_id == subscription_id
                    and inv.status == InvoiceStatus.DRAFT
                )
            ]

        if finalized:
            logger.info(
                "invoice.finalized",
                user_id=user_id,
                subscription_id=subscription_id,
                invoice_ids=[invoice.invoice_id for invoice in finalized],
            )
        return finalized

    async def void_open_invoices(self, user_id: str, subscription_id: str) -> list[str]:
        """Void the unpaid invoices of a subscription; returns their ids."""
        async with self.locks.hold(user_id):
            now = self.clock()
            voided = []
            for invoice in self.repository.find_all(
                lambda inv: inv.subscription_id == subscription_id and inv.status.is_unpaid
            ):
                invoice.status = InvoiceStatus.VOID
                invoice.voided_at = now
                self.repository.update(invoice)
                voided.append(invoice.invoice_id)

        if voided:
            self.metrics.record_invoice_voided(len(voided))
            logger.info(
                "invoice.voided",
                user_id=user_id,
                subscription_id=subscription_id,
                invoice_ids=voided,
            )
        return voided

    def record_payment(self, invoice: Invoice, paid_at: datetime) -> Invoice:
        """Mark ``invoice`` PAID. Caller holds the user's lock."""
        ensure_transition("invoice", invoice.status, InvoiceStatus.PAID)
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = paid_at
        invoice = self.repository.update(invoice)
        self.metrics.record_invoice_paid(invoice.currency)
        return invoice

    def record_overdue(self, invoice: Invoice) -> Invoice:
        """Mark an OPEN ``invoice`` OVERDUE. Caller holds the user's lock."""
        if invoice.status == InvoiceStatus.OVERDUE:
            return invoice
        ensure_transition("invoice", invoice.status, InvoiceStatus.OVERDUE)
        invoice.status = InvoiceStatus.OVERDUE
        return self.repository.update(invoice)

    async def generate_invoice_pdf(self, invoice_id: str, user_id: str) -> InvoiceDocument:
        """Reference to the rendered invoice; rendering happens elsewhere."""
        invoice = await self.get_invoice(invoice_id, user_id)
        base_url = self.config.invoice.document_base_url.rstrip("/")
        return InvoiceDocument(
            invoice_id=invoice.invoice_id,
            invoice_number=invoice.invoice_number,
            url=f"{base_url}/{invoice.invoice_number}.pdf",
        )

    def _open_draft(self, invoice: Invoice) -> Invoice:
        """DRAFT to OPEN, re-dated now. Caller holds the user's lock."""
        ensure_transition("invoice", invoice.status, InvoiceStatus.OPEN)
        now = self.clock()
        invoice.due_date = self._due_date(now)
        invoice.date = now
        invoice.status = InvoiceStatus.OPEN
        return self.repository.update(invoice)

    def _next_invoice_number(self, issued_at: datetime) -> str:
        return self.config.invoice.number_format.format(
            year=issued_at.year, sequence=next(self._sequence)
        )

    def _due_date(self, issued_at: datetime) -> datetime:
        return issued_at + timedelta(days=self.config.invoice.due_days_default)
