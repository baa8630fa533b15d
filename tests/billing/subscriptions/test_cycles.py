"""
Tests for billing cycle arithmetic.
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from planwise.billing.catalog.defaults import default_plans
from planwise.billing.core.enums import BillingCycle
from planwise.billing.exceptions import InvalidBillingCycleError
from planwise.billing.subscriptions.cycles import BillingCycleCalculator


@pytest.fixture
def plans():
    return {plan.plan_id: plan for plan in default_plans()}


@pytest.mark.unit
class TestCalculateEndDate:
    """Test period end dates"""

    @pytest.mark.parametrize(
        ("start", "cycle", "expected"),
        [
            (datetime(2025, 1, 15), BillingCycle.MONTHLY, datetime(2025, 2, 15)),
            (datetime(2025, 1, 31), BillingCycle.MONTHLY, datetime(2025, 2, 28)),
            (datetime(2024, 1, 31), BillingCycle.MONTHLY, datetime(2024, 2, 29)),
            (datetime(2025, 3, 31), BillingCycle.MONTHLY, datetime(2025, 4, 30)),
            (datetime(2025, 12, 15), BillingCycle.MONTHLY, datetime(2026, 1, 15)),
            (datetime(2025, 1, 15), BillingCycle.QUARTERLY, datetime(2025, 4, 15)),
            (datetime(2025, 11, 30), BillingCycle.QUARTERLY, datetime(2026, 2, 28)),
            (datetime(2025, 1, 15), BillingCycle.ANNUAL, datetime(2026, 1, 15)),
            (datetime(2024, 2, 29), BillingCycle.ANNUAL, datetime(2025, 2, 28)),
        ],
    )
    def test_calendar_arithmetic(self, start, cycle, expected):
        """Test calendar months and years with end-of-month clamping"""
        assert BillingCycleCalculator.calculate_end_date(start, cycle) == expected

    def test_preserves_time_and_timezone(self):
        """Test time of day and tzinfo survive"""
        tz = timezone(timedelta(hours=2))
        start = datetime(2025, 1, 31, 23, 45, 10, tzinfo=tz)

        end = BillingCycleCalculator.calculate_end_date(start, BillingCycle.MONTHLY)

        assert end == datetime(2025, 2, 28, 23, 45, 10, tzinfo=tz)
        assert end.tzinfo is tz


@pytest.mark.unit
class TestParseBillingCycle:
    """Test billing cycle parsing"""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("monthly", BillingCycle.MONTHLY),
            (" Quarterly ", BillingCycle.QUARTERLY),
            ("ANNUAL", BillingCycle.ANNUAL),
            (BillingCycle.ANNUAL, BillingCycle.ANNUAL),
        ],
    )
    def test_valid_values(self, raw, expected):
        assert BillingCycleCalculator.parse_billing_cycle(raw) == expected

    @pytest.mark.parametrize("raw", ["weekly", "", "yearly"])
    def test_invalid_values(self, raw):
        """Test unknown cycles are validation errors"""
        with pytest.raises(InvalidBillingCycleError) as exc_info:
            BillingCycleCalculator.parse_billing_cycle(raw)
        assert exc_info.value.status_code == 422


@pytest.mark.unit
class TestCyclePrice:
    """Test per-period prices"""

    def test_monthly_and_annual(self, plans):
        assert BillingCycleCalculator.cycle_price(plans["basic"], BillingCycle.MONTHLY) == Decimal(
            "9.99"
        )
        assert BillingCycleCalculator.cycle_price(plans["basic"], BillingCycle.ANNUAL) == Decimal(
            "99.99"
        )

    def test_quarterly_defaults_to_three_months(self, plans):
        """Test quarterly price without an override"""
        assert BillingCycleCalculator.cycle_price(
            plans["premium"], BillingCycle.QUARTERLY
        ) == Decimal("89.97")

    def test_quarterly_override(self, plans):
        """Test explicit quarterly price wins"""
        plan = plans["premium"].model_copy(update={"quarterly_price": Decimal("79.00")})

        assert BillingCycleCalculator.cycle_price(plan, BillingCycle.QUARTERLY) == Decimal("79.00")


@pytest.mark.unit
class TestProrationCredit:
    """Test proration credit"""

    def test_half_period_unused(self):
        """Test credit for half of a period"""
        start = datetime(2025, 4, 1, tzinfo=UTC)
        end = datetime(2025, 5, 1, tzinfo=UTC)

        credit = BillingCycleCalculator.calculate_proration_credit(
            Decimal("30.00"), start, end, datetime(2025, 4, 16, tzinfo=UTC)
        )

        assert credit == Decimal("15.00")

    def test_rounds_to_cents(self):
        """Test the credit is rounded half-up to cents"""
        start = datetime(2025, 4, 1, tzinfo=UTC)
        end = datetime(2025, 5, 1, tzinfo=UTC)

        credit = BillingCycleCalculator.calculate_proration_credit(
            Decimal("9.99"), start, end, datetime(2025, 4, 21, tzinfo=UTC)
        )

        assert credit == Decimal("3.33")

    def test_after_period_end_is_zero(self):
        """Test no credit once the period is over"""
        start = datetime(2025, 4, 1, tzinfo=UTC)
        end = datetime(2025, 5, 1, tzinfo=UTC)

        credit = BillingCycleCalculator.calculate_proration_credit(
            Decimal("30.00"), start, end, datetime(2025, 6, 1, tzinfo=UTC)
        )

        assert credit == Decimal("0.00")

    def test_before_period_start_is_full_price(self):
        start = datetime(2025, 4, 1, tzinfo=UTC)
        end = datetime(2025, 5, 1, tzinfo=UTC)

        credit = BillingCycleCalculator.calculate_proration_credit(
            Decimal("30.00"), start, end, datetime(2025, 3, 1, tzinfo=UTC)
        )

        assert credit == Decimal("30.00")
