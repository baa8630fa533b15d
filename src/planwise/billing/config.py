"""
Billing module configuration
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from planwise.billing.core.enums import ProrationBehavior
from planwise.settings import Settings, get_settings


class TaxConfig(BaseModel):
    """Tax configuration"""

    model_config = ConfigDict()

    default_tax_rate: Decimal = Field(
        Decimal("0.10"), ge=0, le=1, description="Flat tax rate as a fraction (0.1 = 10%)"
    )


class CurrencyConfig(BaseModel):
    """Currency configuration - Single currency support"""

    model_config = ConfigDict()

    default_currency: str = Field("USD", description="Default currency code")
    locale: str = Field("en_US", description="Locale used to format amounts")


class InvoiceConfig(BaseModel):
    """Invoice configuration"""

    model_config = ConfigDict()

    number_format: str = Field(
        "INV-{year}-{sequence:06d}",
        description="Invoice number format template",
    )
    due_days_default: int = Field(14, ge=0, description="Default payment terms in days")
    document_base_url: str = Field(
        "https://example.com/invoices",
        description="Base URL under which rendered invoice documents are published",
    )


class PaymentConfig(BaseModel):
    """Payment configuration"""

    model_config = ConfigDict()

    gateway_timeout_seconds: float = Field(30.0, gt=0, description="Gateway call timeout")
    max_retry_attempts: int = Field(3, ge=1, description="Maximum failed attempts per invoice")
    simulated_success_rate: float = Field(
        0.9, ge=0, le=1, description="Success probability of the simulated gateway"
    )
    simulated_latency_seconds: float = Field(
        0.0, ge=0, description="Artificial latency of the simulated gateway"
    )


class SubscriptionConfig(BaseModel):
    """Subscription lifecycle configuration"""

    model_config = ConfigDict()

    enable_trials: bool = Field(True, description="Start plans that define trial_days in TRIAL")
    proration_behavior: ProrationBehavior = Field(
        ProrationBehavior.NONE, description="Pricing of mid-cycle plan changes"
    )


class BillingConfig(BaseModel):
    """Main billing configuration"""

    model_config = ConfigDict()

    tax: TaxConfig = Field(default_factory=TaxConfig)
    currency: CurrencyConfig = Field(default_factory=CurrencyConfig)
    invoice: InvoiceConfig = Field(default_factory=InvoiceConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)
    subscription: SubscriptionConfig = Field(default_factory=SubscriptionConfig)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BillingConfig":
        """Create configuration from application settings (env / .env)."""
        billing = (settings or get_settings()).billing

        return cls(
            tax=TaxConfig(default_tax_rate=billing.tax_rate),
            currency=CurrencyConfig(default_currency=billing.default_currency),
            invoice=InvoiceConfig(
                number_format=billing.invoice_number_format,
                due_days_default=billing.invoice_due_days,
                document_base_url=billing.invoice_document_base_url,
            ),
            payment=PaymentConfig(
                gateway_timeout_seconds=billing.gateway_timeout_seconds,
                max_retry_attempts=billing.max_retry_attempts,
                simulated_success_rate=billing.simulated_success_rate,
                simulated_latency_seconds=billing.simulated_latency_seconds,
            ),
            subscription=SubscriptionConfig(
                enable_trials=billing.enable_trials,
                proration_behavior=(
                    ProrationBehavior.CREATE_PRORATIONS
                    if billing.proration_enabled
                    else ProrationBehavior.NONE
                ),
            ),
        )
