"""
Tests for resource limit parsing.
"""

import pytest

from planwise.billing.exceptions import BillingValidationError, InvalidResourceLimitError
from planwise.billing.usage.limits import UNLIMITED, is_unlimited, parse_resource_limit


@pytest.mark.unit
class TestParseResourceLimit:
    """Test parse_resource_limit"""

    @pytest.mark.parametrize("raw", ["unlimited", "Unlimited", "UNLIMITED", " unlimited "])
    def test_unlimited_is_unbounded(self, raw):
        """Test 'unlimited' in any case has no bound"""
        assert parse_resource_limit(raw) is None
        assert is_unlimited(raw)

    @pytest.mark.parametrize(("raw", "expected"), [("0", 0), ("10", 10), ("10000", 10000)])
    def test_integer_limits(self, raw, expected):
        assert parse_resource_limit(raw) == expected

    @pytest.mark.parametrize("raw", ["ten", "-5", "1.5", "", "10GB", "infinite"])
    def test_malformed_limits(self, raw):
        """Test malformed limits are validation errors"""
        with pytest.raises(InvalidResourceLimitError) as exc_info:
            parse_resource_limit(raw)

        assert isinstance(exc_info.value, BillingValidationError)
        assert exc_info.value.status_code == 422

    def test_non_string_limit(self):
        with pytest.raises(InvalidResourceLimitError):
            parse_resource_limit(10)

    def test_unlimited_constant(self):
        assert UNLIMITED == "unlimited"
