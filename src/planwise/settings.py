"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
For nested settings, use double underscore: BILLING__TAX_RATE=0.2
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field("planwise-billing", description="Application name")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    testing: bool = Field(False, description="Testing mode")

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Observability configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or text)")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Billing
    # ============================================================

    class BillingSettings(BaseModel):
        """Billing system configuration."""

        default_currency: str = Field("USD", description="Currency for plans and invoices")
        tax_rate: Decimal = Field(Decimal("0.10"), ge=0, le=1, description="Flat tax rate")
        invoice_due_days: int = Field(14, ge=0, description="Payment terms in days")
        invoice_number_format: str = Field(
            "INV-{year}-{sequence:06d}", description="Invoice number format template"
        )
        invoice_document_base_url: str = Field(
            "https://example.com/invoices", description="Base URL for rendered invoices"
        )

        gateway_timeout_seconds: float = Field(30.0, gt=0, description="Gateway call timeout")
        max_retry_attempts: int = Field(3, ge=1, description="Failed attempts allowed per invoice")
        simulated_success_rate: float = Field(
            0.9, ge=0, le=1, description="Success probability of the simulated gateway"
        )
        simulated_latency_seconds: float = Field(
            0.0, ge=0, description="Artificial latency of the simulated gateway"
        )

        enable_trials: bool = Field(True, description="Start plans with trial_days in TRIAL")
        proration_enabled: bool = Field(False, description="Credit unused time on upgrades")

    billing: BillingSettings = BillingSettings()  # type: ignore[call-arg]

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing or self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None
