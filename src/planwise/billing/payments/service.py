"""
Payment processor.

Executes payment attempts against invoices through a ``PaymentGateway`` and
records one ``PaymentTransaction`` per attempt. The user's lock is held while
an attempt is opened and while its outcome is applied, never during the
gateway call itself.
"""

import asyncio
import time

import structlog

from planwise.billing.config import BillingConfig
from planwise.billing.core.clock import Clock, utcnow
from planwise.billing.core.enums import PaymentStatus, ensure_transition
from planwise.billing.core.locks import UserLockRegistry
from planwise.billing.core.repository import InMemoryRepository
from planwise.billing.exceptions import (
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    PaymentGatewayError,
    PaymentInProgressError,
    PaymentMethodNotFoundError,
    PaymentRetryError,
    PaymentRetryLimitError,
    TransactionNotFoundError,
)
from planwise.billing.invoicing.models import Invoice
from planwise.billing.invoicing.service import InvoiceGenerator
from planwise.billing.metrics import BillingMetrics
from planwise.billing.money_utils import money_handler
from planwise.billing.payment_methods.models import PaymentMethod
from planwise.billing.payment_methods.service import PaymentMethodService
from planwise.billing.payments.models import PaymentTransaction
from planwise.billing.payments.providers import PaymentGateway, PaymentResult
from planwise.billing.subscriptions.service import SubscriptionStore
from planwise.logging import log_audit_event

logger = structlog.get_logger(__name__)

GATEWAY_TIMEOUT = "gateway_timeout"


class PaymentProcessor:
    """Processes invoice payments and retries of failed attempts."""

    def __init__(
        self,
        invoices: InvoiceGenerator,
        subscriptions: SubscriptionStore,
        payment_methods: PaymentMethodService,
        gateway: PaymentGateway,
        locks: UserLockRegistry,
        config: BillingConfig | None = None,
        repository: InMemoryRepository[PaymentTransaction] | None = None,
        metrics: BillingMetrics | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.invoices = invoices
        self.subscriptions = subscriptions
        self.payment_methods = payment_methods
        self.gateway = gateway
        self.locks = locks
        self.config = config or BillingConfig()
        self.repository = repository or InMemoryRepository[PaymentTransaction]("transaction")
        self.metrics = metrics or BillingMetrics()
        self.clock = clock

    async def process_payment(
        self,
        user_id: str,
        invoice_id: str,
        payment_method_id: str | None = None,
    ) -> PaymentTransaction:
        """Attempt to pay an invoice.

        Uses ``payment_method_id`` or, when omitted, the user's default
        method. A declined charge is returned as a FAILED transaction rather
        than raised.

        Raises:
            InvoiceNotFoundError: unknown invoice or owned by another user.
            InvoiceNotPayableError: the invoice is not OPEN or OVERDUE.
            PaymentInProgressError: another attempt on the invoice is pending.
            PaymentMethodNotFoundError: no usable payment method.
        """
        # settles a lapsed trial so its drafted invoice is open
        await self.subscriptions.get_user_subscription(user_id)
        async with self.locks.hold(user_id):
            transaction = self._open_attempt(user_id, invoice_id, payment_method_id)
        return await self._execute(transaction)

    async def retry_failed_payment(self, user_id: str, transaction_id: str) -> PaymentTransaction:
        """Retry a FAILED attempt with the same method (or the default one).

        Raises:
            TransactionNotFoundError: unknown transaction or owned by another user.
            PaymentRetryError: the transaction is not FAILED.
            PaymentRetryLimitError: the invoice used up its failed attempts.
        """
        async with self.locks.hold(user_id):
            failed = self.repository.get(transaction_id)
            if failed is None or failed.user_id != user_id:
                raise TransactionNotFoundError(
                    "Payment transaction not found", transaction_id=transaction_id
                )
            if failed.status != PaymentStatus.FAILED:
                raise PaymentRetryError(
                    f"Only failed payments can be retried, transaction is {failed.status.value}",
                    transaction_id=transaction_id,
                    context={"status": failed.status.value},
                )

            attempts = len(
                self.repository.find_all(
                    lambda txn: txn.invoice_id == failed.invoice_id
                    and txn.status == PaymentStatus.FAILED
                )
            )
            if attempts >= self.config.payment.max_retry_attempts:
                raise PaymentRetryLimitError(
                    "Maximum payment attempts reached for this invoice",
                    transaction_id=transaction_id,
                    attempts=attempts,
                )

            method_id = failed.payment_method_id
            if (
                method_id is not None
                and self.payment_methods.find_payment_method(user_id, method_id) is None
            ):
                method_id = None

            transaction = self._open_attempt(
                user_id, failed.invoice_id or "", method_id, retry_of=failed
            )

        logger.info(
            "payment.retry",
            user_id=user_id,
            transaction_id=transaction.transaction_id,
            retry_of=transaction_id,
            attempt_number=transaction.attempt_number,
        )
        return await self._execute(transaction)

    async def get_user_payment_transactions(self, user_id: str) -> list[PaymentTransaction]:
        """Transactions of the user, newest first."""
        transactions = self.repository.find_all(lambda txn: txn.user_id == user_id)
        return sorted(reversed(transactions), key=lambda txn: txn.date, reverse=True)

    async def get_invoice_transactions(
        self, invoice_id: str, user_id: str
    ) -> list[PaymentTransaction]:
        """Attempts made against one invoice, in attempt order."""
        await self.invoices.get_invoice(invoice_id, user_id)
        return self.repository.find_all(lambda txn: txn.invoice_id == invoice_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _open_attempt(
        self,
        user_id: str,
        invoice_id: str,
        payment_method_id: str | None,
        retry_of: PaymentTransaction | None = None,
    ) -> PaymentTransaction:
        """Validate the invoice and record a PENDING attempt.

        Caller holds the user's lock.
        """
        invoice = self.invoices.repository.get(invoice_id)
        if invoice is None or invoice.user_id != user_id:
            raise InvoiceNotFoundError("Invoice not found", invoice_id=invoice_id)
        if not invoice.status.is_payable:
            raise InvoiceNotPayableError(
                f"Invoice is {invoice.status.value} and cannot be paid",
                invoice_id=invoice_id,
                status=invoice.status.value,
            )

        attempts = self.repository.find_all(lambda txn: txn.invoice_id == invoice_id)
        pending = [txn for txn in attempts if txn.status == PaymentStatus.PENDING]
        if pending:
            raise PaymentInProgressError(
                "A payment for this invoice is already in progress",
                invoice_id=invoice_id,
                transaction_id=pending[0].transaction_id,
            )

        method = self._resolve_payment_method(user_id, payment_method_id)
        return self.repository.add(
            PaymentTransaction(
                user_id=user_id,
                invoice_id=invoice_id,
                payment_method=method.method_type,
                payment_method_id=method.payment_method_id,
                amount=invoice.total,
                currency=invoice.currency,
                date=self.clock(),
                attempt_number=len(attempts) + 1,
                retry_of=retry_of.transaction_id if retry_of is not None else None,
                metadata={"invoice_number": invoice.invoice_number},
            )
        )

    def _resolve_payment_method(
        self, user_id: str, payment_method_id: str | None
    ) -> PaymentMethod:
        if payment_method_id is not None:
            method = self.payment_methods.find_payment_method(user_id, payment_method_id)
            if method is None:
                raise PaymentMethodNotFoundError(
                    "Payment method not found", payment_method_id=payment_method_id
                )
            return method

        method = self.payment_methods.find_default_payment_method(user_id)
        if method is None:
            raise PaymentMethodNotFoundError("No default payment method found")
        return method

    async def _execute(self, transaction: PaymentTransaction) -> PaymentTransaction:
        gateway_name = self.gateway.name
        amount = money_handler.money_to_minor_units(
            money_handler.create_money(transaction.amount, transaction.currency)
        )
        self.metrics.record_payment_initiated(gateway_name, transaction.currency)
        started = time.perf_counter()

        with self.metrics.trace_payment_operation(
            "charge", transaction.transaction_id, gateway_name
        ):
            try:
                result = await asyncio.wait_for(
                    self.gateway.charge_payment_method(
                        amount=amount,
                        currency=transaction.currency,
                        payment_method_id=transaction.payment_method_id or "",
                        metadata={
                            "transaction_id": transaction.transaction_id,
                            "invoice_id": transaction.invoice_id,
                        },
                    ),
                    timeout=self.config.payment.gateway_timeout_seconds,
                )
            except TimeoutError:
                logger.warning(
                    "payment.gateway_timeout",
                    transaction_id=transaction.transaction_id,
                    gateway=gateway_name,
                    timeout=self.config.payment.gateway_timeout_seconds,
                )
                result = PaymentResult(
                    success=False, error_message=GATEWAY_TIMEOUT, error_code=GATEWAY_TIMEOUT
                )
            except PaymentGatewayError as e:
                logger.error(
                    "payment.gateway_error",
                    transaction_id=transaction.transaction_id,
                    gateway=gateway_name,
                    error=str(e),
                )
                result = PaymentResult(
                    success=False, error_message=e.message, error_code="gateway_error"
                )
            except Exception as e:
                await self._settle(
                    transaction,
                    PaymentResult(
                        success=False,
                        error_message=f"Unexpected gateway failure: {type(e).__name__}",
                        error_code="gateway_error",
                    ),
                    (time.perf_counter() - started) * 1000,
                )
                raise

        return await self._settle(transaction, result, (time.perf_counter() - started) * 1000)

    async def _settle(
        self,
        transaction: PaymentTransaction,
        result: PaymentResult,
        duration_ms: float,
    ) -> PaymentTransaction:
        """Apply a gateway outcome to the transaction, invoice and subscription."""
        user_id = transaction.user_id
        reactivate_id: str | None = None
        past_due_id: str | None = None

        async with self.locks.hold(user_id):
            now = self.clock()
            transaction = self.repository.get(transaction.transaction_id) or transaction
            invoice: Invoice | None = (
                self.invoices.repository.get(transaction.invoice_id)
                if transaction.invoice_id
                else None
            )

            if result.success:
                ensure_transition("transaction", transaction.status, PaymentStatus.COMPLETED)
                transaction.status = PaymentStatus.COMPLETED
                transaction.gateway_transaction_id = result.provider_payment_id
                if invoice is not None and invoice.status.is_payable:
                    self.invoices.record_payment(invoice, now)
                    reactivate_id = invoice.subscription_id
                else:
                    transaction.metadata = {**transaction.metadata, "requires_refund": True}
            else:
                ensure_transition("transaction", transaction.status, PaymentStatus.FAILED)
                transaction.status = PaymentStatus.FAILED
                transaction.failure_reason = result.error_message or result.error_code
                if invoice is not None and invoice.status.is_payable and now > invoice.due_date:
                    self.invoices.record_overdue(invoice)
                    past_due_id = invoice.subscription_id

            transaction.processed_at = now
            transaction = self.repository.update(transaction)

        if reactivate_id is not None:
            await self.subscriptions.reactivate(reactivate_id)
        if past_due_id is not None:
            await self.subscriptions.mark_past_due(past_due_id)

        self.metrics.record_payment_completed(transaction.status, duration_ms, self.gateway.name)
        log = logger.info if transaction.status == PaymentStatus.COMPLETED else logger.warning
        log(
            f"payment.{transaction.status.value}",
            user_id=user_id,
            transaction_id=transaction.transaction_id,
            invoice_id=transaction.invoice_id,
            amount=str(transaction.amount),
            attempt_number=transaction.attempt_number,
            failure_reason=transaction.failure_reason,
            requires_refund=transaction.requires_refund,
        )
        log_audit_event(
            f"payment.{transaction.status.value}",
            "billing",
            user_id=user_id,
            resource_type="payment_transaction",
            resource_id=transaction.transaction_id,
            invoice_id=transaction.invoice_id,
        )
        return transaction
