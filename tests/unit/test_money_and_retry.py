"""
Unit tests for money helpers, the exception taxonomy and bounded retry.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from compensation.utils.exceptions import (
    BusinessRuleViolation,
    ConcurrencyConflict,
    InfrastructureError,
    NotFoundError,
    ReasonCode,
    ValidationError,
    is_retryable,
    must_raise,
    reason_of,
)
from compensation.utils.money import floor_money, percent_of, quantize_money
from compensation.utils.retry import retry_async


class TestMoney:
    """Test money rounding."""

    def test_quantize_rounds_half_up(self):
        assert quantize_money(Decimal("0.000000005")) == Decimal("0.00000001")
        assert quantize_money(Decimal("0.000000004")) == Decimal("0")

    def test_floor_money_truncates(self):
        assert floor_money(Decimal("0.999999999")) == Decimal("0.99999999")

    def test_percent_of(self):
        assert percent_of(Decimal("1000"), Decimal("6")) == Decimal("60")
        assert percent_of(Decimal("333.33"), Decimal("0.5")) == Decimal("1.66665000")


class TestExceptions:
    """Test exception categories."""

    def test_not_found_is_business_rule_violation(self):
        error = NotFoundError("Member", 7)

        assert isinstance(error, BusinessRuleViolation)
        assert error.code == ReasonCode.NOT_FOUND
        assert error.message == "Member 7 not found"

    def test_reason_of(self):
        assert reason_of(BusinessRuleViolation(ReasonCode.INSUFFICIENT_BALANCE)) == (
            "InsufficientBalance"
        )
        assert reason_of(ValidationError("bad")) == "ValidationError: bad"
        assert reason_of(ConcurrencyConflict("lock")) == "ConcurrencyConflict"
        assert reason_of(InfrastructureError("db")) == "InfrastructureError"
        assert reason_of(IntegrityError("INSERT", {}, Exception("dup"))) == "ConcurrencyConflict"
        assert reason_of(OperationalError("SELECT 1", {}, Exception("gone"))) == (
            "InfrastructureError"
        )

    def test_categories(self):
        assert is_retryable(ConcurrencyConflict("x"))
        assert is_retryable(OperationalError("SELECT 1", {}, Exception("gone")))
        assert not is_retryable(ValidationError("x"))
        assert must_raise(BusinessRuleViolation(ReasonCode.CAP_EXCEEDED))
        assert not must_raise(InfrastructureError("x"))


class TestRetryAsync:
    """Test bounded retry."""

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self):
        """A conflict is retried until the operation succeeds."""
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConcurrencyConflict("busy")
            return "done"

        result = await retry_async(operation, max_retries=3, base_delay=0)

        assert result == "done"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise ConcurrencyConflict("busy")

        with pytest.raises(ConcurrencyConflict):
            await retry_async(operation, max_retries=2, base_delay=0)

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_business_errors_not_retried(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise BusinessRuleViolation(ReasonCode.INSUFFICIENT_BALANCE)

        with pytest.raises(BusinessRuleViolation):
            await retry_async(operation, max_retries=5, base_delay=0)

        assert len(attempts) == 1
