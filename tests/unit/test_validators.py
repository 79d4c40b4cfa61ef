"""
Unit tests for admin input validators.

Tests cover:
- Amount validation (type, sign, precision, minimum)
- Reason, period and id list validation
- require() unwrapping
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from compensation.utils.exceptions import ValidationError
from compensation.validators import (
    require,
    validate_amount,
    validate_ids,
    validate_period,
    validate_reason,
)


class TestValidateAmount:
    """Test amount validation."""

    @pytest.mark.parametrize("value", ["100", "0.5", Decimal("12.34"), 7])
    def test_valid_amounts(self, value):
        is_valid, amount, error = validate_amount(value)

        assert is_valid is True
        assert amount == Decimal(str(value))
        assert error is None

    def test_amount_quantized_to_eight_places(self):
        _, amount, _ = validate_amount("1.123456789")

        assert amount == Decimal("1.12345679")

    @pytest.mark.parametrize("value", ["0", "-10", Decimal("-0.01")])
    def test_non_positive_rejected(self, value):
        is_valid, amount, error = validate_amount(value)

        assert is_valid is False
        assert amount is None
        assert "positive" in error

    @pytest.mark.parametrize("value", [1.5, True, None])
    def test_floats_bools_and_none_rejected(self, value):
        """Binary floats are never accepted as money."""
        is_valid, _, _ = validate_amount(value)

        assert is_valid is False

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_not_a_number(self, value):
        is_valid, _, _ = validate_amount(value)

        assert is_valid is False

    def test_below_smallest_unit(self):
        is_valid, _, error = validate_amount("0.000000001")

        assert is_valid is False
        assert "smallest unit" in error

    def test_minimum_amount(self):
        is_valid, _, error = validate_amount("9.99", min_amount=Decimal("10"))

        assert is_valid is False
        assert "at least 10" in error
        assert validate_amount("10", min_amount=Decimal("10"))[0] is True


class TestValidateReason:
    """Test reason validation."""

    def test_reason_stripped(self):
        assert validate_reason("  fraud check ") == (True, "fraud check", None)

    def test_empty_reason_required(self):
        is_valid, _, error = validate_reason("   ")

        assert is_valid is False
        assert error == "Reason is required"

    def test_empty_reason_optional(self):
        assert validate_reason(None, required=False) == (True, None, None)

    def test_reason_too_long(self):
        is_valid, _, _ = validate_reason("x" * 1001)

        assert is_valid is False


class TestValidatePeriod:
    """Test run period validation."""

    def test_naive_bounds_treated_as_utc(self):
        is_valid, (start, end), _ = validate_period(datetime(2024, 1, 1), datetime(2024, 1, 2))

        assert is_valid is True
        assert start.tzinfo == UTC
        assert end == datetime(2024, 1, 2, tzinfo=UTC)

    def test_single_instant_period_allowed(self):
        moment = datetime(2024, 1, 1, tzinfo=UTC)

        assert validate_period(moment, moment)[0] is True

    def test_reversed_period_rejected(self):
        is_valid, _, error = validate_period(
            datetime(2024, 1, 2, tzinfo=UTC), datetime(2024, 1, 1, tzinfo=UTC)
        )

        assert is_valid is False
        assert "before" in error

    def test_missing_bound_rejected(self):
        assert validate_period(None, datetime(2024, 1, 1))[0] is False


class TestValidateIds:
    """Test id list validation."""

    def test_duplicates_dropped_order_kept(self):
        assert validate_ids([3, 1, 3, 2]) == (True, [3, 1, 2], None)

    @pytest.mark.parametrize("values", [[], None, [0], [-1], ["1"], [True]])
    def test_invalid_lists(self, values):
        assert validate_ids(values)[0] is False


class TestRequire:
    """Test require()."""

    def test_returns_value(self):
        assert require(validate_amount("5")) == Decimal("5")

    def test_raises_validation_error(self):
        with pytest.raises(ValidationError, match="positive"):
            require(validate_amount("-5"))
