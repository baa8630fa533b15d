"""
Billing cycle arithmetic.

Pure functions over dates and prices. Month arithmetic uses
``dateutil.relativedelta``: when the target month is shorter than the start
day, the result clamps to the last day of that month (Jan 31 + 1 month is
Feb 28, or Feb 29 in leap years). Time of day and tzinfo are preserved.
"""

from datetime import datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from planwise.billing.catalog.models import Plan
from planwise.billing.core.enums import BillingCycle
from planwise.billing.exceptions import InvalidBillingCycleError
from planwise.billing.money_utils import money_handler


class BillingCycleCalculator:
    """Billing period boundaries and per-period prices."""

    @staticmethod
    def period_delta(cycle: BillingCycle) -> relativedelta:
        match cycle:
            case BillingCycle.MONTHLY:
                return relativedelta(months=1)
            case BillingCycle.QUARTERLY:
                return relativedelta(months=3)
            case BillingCycle.ANNUAL:
                return relativedelta(years=1)

    @classmethod
    def calculate_end_date(cls, start_date: datetime, cycle: BillingCycle) -> datetime:
        return start_date + cls.period_delta(cycle)

    @staticmethod
    def parse_billing_cycle(value: BillingCycle | str) -> BillingCycle:
        """Turn a raw request value into a ``BillingCycle``."""
        if isinstance(value, BillingCycle):
            return value
        try:
            return BillingCycle(str(value).strip().lower())
        except ValueError:
            raise InvalidBillingCycleError(
                f"Invalid billing cycle: {value!r}", billing_cycle=str(value)
            ) from None

    @staticmethod
    def cycle_price(plan: Plan, cycle: BillingCycle) -> Decimal:
        """Price of one period of ``plan`` billed on ``cycle``."""
        match cycle:
            case BillingCycle.MONTHLY:
                return plan.monthly_price
            case BillingCycle.QUARTERLY:
                if plan.quarterly_price is not None:
                    return plan.quarterly_price
                return plan.monthly_price * 3
            case BillingCycle.ANNUAL:
                return plan.annual_price

    @staticmethod
    def calculate_proration_credit(
        price: Decimal,
        period_start: datetime,
        period_end: datetime,
        changed_at: datetime,
        currency: str = "USD",
    ) -> Decimal:
        """Unused share of ``price`` for a period left at ``changed_at``.

        Returns zero when the change happens outside the period.
        """
        total_seconds = (period_end - period_start).total_seconds()
        if total_seconds <= 0 or changed_at >= period_end:
            return Decimal("0.00")

        remaining_seconds = (period_end - max(changed_at, period_start)).total_seconds()
        ratio = Decimal(str(remaining_seconds)) / Decimal(str(total_seconds))
        credit = money_handler.multiply_money(money_handler.create_money(price, currency), ratio)
        return money_handler.round_money(credit).amount
