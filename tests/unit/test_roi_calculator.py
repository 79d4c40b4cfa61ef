"""
Unit tests for ROI rate selection, accrual planning and schedules.

Tests cover:
- Rate policies and booster bonus
- Cap clamping and maturity
- Daily / weekly / monthly schedule instants
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from compensation.models.enums import AccrualSchedule, RatePolicy
from compensation.services.roi.calculator import plan_accruals, select_rate
from compensation.services.roi.schedule import (
    iter_due_instants,
    next_instant,
    schedule_instant,
)

START = datetime(2024, 1, 1, tzinfo=UTC)


def daily(count: int) -> list[datetime]:
    return [START + timedelta(days=k) for k in range(1, count + 1)]


class TestSelectRate:
    """Test deterministic rate selection."""

    @pytest.mark.parametrize(
        "policy,expected",
        [
            (RatePolicy.MIDPOINT, Decimal("6")),
            (RatePolicy.MINIMUM, Decimal("5")),
            (RatePolicy.MAXIMUM, Decimal("7")),
            ("midpoint", Decimal("6")),
        ],
    )
    def test_policies(self, policy, expected):
        assert select_rate(Decimal("5"), Decimal("7"), policy) == expected

    def test_booster_rate_is_added(self):
        """An achieved booster raises the selected rate."""
        rate = select_rate(Decimal("1"), Decimal("2"), RatePolicy.MIDPOINT, Decimal("0.10"))

        assert rate == Decimal("1.60")

    def test_booster_may_exceed_band_max(self):
        """The booster is added after the policy, so rate_max is not a ceiling."""
        rate = select_rate(Decimal("5"), Decimal("7"), RatePolicy.MAXIMUM, Decimal("0.5"))

        assert rate == Decimal("7.5")


class TestPlanAccruals:
    """Test cap-clamped accrual planning."""

    def test_accrues_every_instant(self):
        """Each instant pays principal * rate / 100."""
        plan = plan_accruals(Decimal("1000"), Decimal("6"), Decimal("1500"), Decimal("0"), daily(3))

        assert [step.amount for step in plan.steps] == [Decimal("60")] * 3
        assert plan.total == Decimal("180")
        assert plan.roi_paid_after == Decimal("180")
        assert plan.matures is False
        assert plan.last_instant == START + timedelta(days=3)

    def test_cap_reached_exactly(self):
        """$1000 at 6% with a 150% cap matures after exactly 25 accruals."""
        plan = plan_accruals(
            Decimal("1000"), Decimal("6"), Decimal("1500"), Decimal("0"), daily(40)
        )

        assert len(plan.steps) == 25
        assert plan.roi_paid_after == Decimal("1500")
        assert plan.matures is True
        assert plan.maturity_reason == "cap_reached"
        assert plan.matured_at == START + timedelta(days=25)

    def test_last_accrual_is_clamped(self):
        """The accrual crossing the cap is reduced to the remainder."""
        plan = plan_accruals(
            Decimal("1000"), Decimal("6"), Decimal("1500"), Decimal("1480"), daily(5)
        )

        assert len(plan.steps) == 1
        assert plan.steps[0].amount == Decimal("20")
        assert plan.steps[0].clamped is True
        assert plan.roi_paid_after == Decimal("1500")
        assert plan.matures is True

    def test_fully_paid_package_matures_without_accrual(self):
        """A package already at its cap accrues nothing and matures."""
        plan = plan_accruals(
            Decimal("1000"), Decimal("6"), Decimal("1500"), Decimal("1500"), daily(2)
        )

        assert plan.steps == []
        assert plan.matures is True
        assert plan.maturity_reason == "cap_reached"

    def test_maturity_date(self):
        """Instants after the maturity date do not accrue and mature the package."""
        maturity = START + timedelta(days=2)

        plan = plan_accruals(
            Decimal("1000"), Decimal("1"), Decimal("3000"), Decimal("0"), daily(5), maturity
        )

        assert len(plan.steps) == 2
        assert plan.matures is True
        assert plan.maturity_reason == "maturity_date"
        assert plan.matured_at == START + timedelta(days=3)

    def test_no_instants(self):
        plan = plan_accruals(Decimal("1000"), Decimal("1"), Decimal("3000"), Decimal("0"), [])

        assert plan.steps == []
        assert plan.total == Decimal("0")
        assert plan.matures is False


class TestSchedule:
    """Test accrual instants."""

    def test_daily_instants_from_start(self):
        """Nothing accrued yet: instants start one period after start."""
        instants = list(
            iter_due_instants(START, AccrualSchedule.DAILY, None, datetime(2024, 1, 4, tzinfo=UTC))
        )

        assert instants == daily(3)

    def test_daily_instants_after_last_accrual(self):
        """Only instants strictly after the last accrual are due."""
        instants = list(
            iter_due_instants(
                START,
                "daily",
                datetime(2024, 1, 2, tzinfo=UTC),
                datetime(2024, 1, 4, tzinfo=UTC),
            )
        )

        assert instants == [datetime(2024, 1, 3, tzinfo=UTC), datetime(2024, 1, 4, tzinfo=UTC)]

    def test_until_before_first_instant(self):
        assert list(iter_due_instants(START, "weekly", None, START + timedelta(days=6))) == []

    def test_monthly_schedule_clamps_day(self):
        """A package started on Jan 31 accrues on Feb 29, Mar 31, Apr 30."""
        start = datetime(2024, 1, 31, tzinfo=UTC)

        assert schedule_instant(start, AccrualSchedule.MONTHLY, 1) == datetime(2024, 2, 29, tzinfo=UTC)
        assert schedule_instant(start, AccrualSchedule.MONTHLY, 2) == datetime(2024, 3, 31, tzinfo=UTC)
        assert schedule_instant(start, AccrualSchedule.MONTHLY, 3) == datetime(2024, 4, 30, tzinfo=UTC)

    def test_monthly_instants_after_clamped_month(self):
        start = datetime(2024, 1, 31, tzinfo=UTC)

        instants = list(
            iter_due_instants(
                start,
                "monthly",
                datetime(2024, 2, 29, tzinfo=UTC),
                datetime(2024, 5, 1, tzinfo=UTC),
            )
        )

        assert instants == [datetime(2024, 3, 31, tzinfo=UTC), datetime(2024, 4, 30, tzinfo=UTC)]

    def test_next_instant(self):
        assert next_instant(START, "weekly", None) == START + timedelta(weeks=1)
        assert next_instant(START, "weekly", START + timedelta(weeks=1)) == START + timedelta(weeks=2)
