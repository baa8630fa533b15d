"""
Billing module metrics and monitoring
"""

from contextlib import AbstractContextManager

from opentelemetry import metrics, trace
from opentelemetry.metrics import Meter
from opentelemetry.trace import Span, SpanKind, Tracer

from planwise.billing.core.enums import PaymentStatus


class BillingMetrics:
    """Billing metrics collector"""

    def __init__(
        self,
        meter: Meter | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        """Initialize billing metrics"""

        self.meter = meter or metrics.get_meter("planwise.billing")
        self.tracer = tracer or trace.get_tracer("planwise.billing")

        # Subscription metrics
        self.subscription_created_counter = self.meter.create_counter(
            name="billing.subscription.created",
            description="Number of subscriptions created",
        )
        self.subscription_changed_counter = self.meter.create_counter(
            name="billing.subscription.changed",
            description="Number of plan changes",
        )
        self.subscription_canceled_counter = self.meter.create_counter(
            name="billing.subscription.canceled",
            description="Number of subscriptions canceled",
        )

        # Invoice metrics
        self.invoice_created_counter = self.meter.create_counter(
            name="billing.invoice.created",
            description="Number of invoices created",
        )
        self.invoice_paid_counter = self.meter.create_counter(
            name="billing.invoice.paid",
            description="Number of invoices paid",
        )
        self.invoice_voided_counter = self.meter.create_counter(
            name="billing.invoice.voided",
            description="Number of invoices voided",
        )
        self.invoice_amount_histogram = self.meter.create_histogram(
            name="billing.invoice.amount",
            description="Invoice amounts",
            unit="cents",
        )

        # Payment metrics
        self.payment_initiated_counter = self.meter.create_counter(
            name="billing.payment.initiated",
            description="Number of payments initiated",
        )
        self.payment_succeeded_counter = self.meter.create_counter(
            name="billing.payment.succeeded",
            description="Number of successful payments",
        )
        self.payment_failed_counter = self.meter.create_counter(
            name="billing.payment.failed",
            description="Number of failed payments",
        )
        self.payment_duration_histogram = self.meter.create_histogram(
            name="billing.payment.duration",
            description="Payment processing duration",
            unit="ms",
        )

        # Usage metrics
        self.usage_tracked_counter = self.meter.create_counter(
            name="billing.usage.tracked",
            description="Resource usage adjustments",
        )
        self.quota_denied_counter = self.meter.create_counter(
            name="billing.usage.quota_denied",
            description="Resource checks rejected by plan limits",
        )

    # Subscription metrics
    def record_subscription_created(self, plan_id: str, billing_cycle: str) -> None:
        self.subscription_created_counter.add(
            1, {"plan_id": plan_id, "billing_cycle": billing_cycle}
        )

    def record_subscription_changed(self, from_plan: str, to_plan: str, direction: str) -> None:
        self.subscription_changed_counter.add(
            1, {"from_plan": from_plan, "to_plan": to_plan, "direction": direction}
        )

    def record_subscription_canceled(self, plan_id: str, immediate: bool) -> None:
        self.subscription_canceled_counter.add(1, {"plan_id": plan_id, "immediate": str(immediate)})

    # Invoice metrics
    def record_invoice_created(self, amount: int, currency: str) -> None:
        """Record invoice creation"""
        attributes = {"currency": currency}
        self.invoice_created_counter.add(1, attributes)
        self.invoice_amount_histogram.record(amount, attributes)

    def record_invoice_paid(self, currency: str) -> None:
        self.invoice_paid_counter.add(1, {"currency": currency})

    def record_invoice_voided(self, count: int = 1) -> None:
        self.invoice_voided_counter.add(count)

    # Payment metrics
    def record_payment_initiated(self, gateway: str, currency: str) -> None:
        self.payment_initiated_counter.add(1, {"gateway": gateway, "currency": currency})

    def record_payment_completed(
        self,
        status: PaymentStatus,
        duration_ms: float,
        gateway: str,
    ) -> None:
        """Record payment completion"""
        attributes = {"status": status.value, "gateway": gateway}

        if status == PaymentStatus.COMPLETED:
            self.payment_succeeded_counter.add(1, attributes)
        elif status == PaymentStatus.FAILED:
            self.payment_failed_counter.add(1, attributes)

        self.payment_duration_histogram.record(duration_ms, attributes)

    # Usage metrics
    def record_usage_tracked(self, resource: str, amount: int) -> None:
        direction = "up" if amount >= 0 else "down"
        self.usage_tracked_counter.add(1, {"resource": resource, "direction": direction})

    def record_quota_denied(self, resource: str) -> None:
        self.quota_denied_counter.add(1, {"resource": resource})

    # Tracing helpers
    def trace_payment_operation(
        self,
        operation: str,
        transaction_id: str,
        gateway: str,
    ) -> AbstractContextManager[Span]:
        """Create a trace span for payment operations"""
        return self.tracer.start_as_current_span(
            f"billing.payment.{operation}",
            kind=SpanKind.CLIENT,
            attributes={
                "transaction_id": transaction_id,
                "gateway": gateway,
                "operation": operation,
            },
        )
