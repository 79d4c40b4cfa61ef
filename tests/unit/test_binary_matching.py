"""
Unit tests for binary matching calculations.

Tests cover:
- Ratio matching and carry forward
- Minimum match volume
- Cap windows (daily / weekly / monthly)
- Flush boundaries
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from compensation.models.binary_leg_state import BinaryLegState
from compensation.models.enums import FlushPeriod
from compensation.schemas.commission_settings import BinaryConfig
from compensation.services.binary.matching import (
    cap_remaining,
    compute_match,
    consume_caps,
    flush_due,
    flushed_volume,
)


def leg_state(**overrides) -> BinaryLegState:
    values = {
        "member_id": 1,
        "left_volume": Decimal("0"),
        "right_volume": Decimal("0"),
        "total_left": Decimal("0"),
        "total_right": Decimal("0"),
        "matched_to_date": Decimal("0"),
        "day_window": None,
        "day_paid": Decimal("0"),
        "week_window": None,
        "week_paid": Decimal("0"),
        "month_window": None,
        "month_paid": Decimal("0"),
        "last_flush_at": None,
    }
    values.update(overrides)
    return BinaryLegState(**values)


# Wednesday
AT = datetime(2024, 5, 15, 12, tzinfo=UTC)


class TestComputeMatch:
    """Test ratio matching."""

    def test_one_to_one_match_carries_weaker_leg_remainder(self):
        """Legs (300, 100) at 1:1 and 10% match 100 for a bonus of 10."""
        config = BinaryConfig(matching_percentage=Decimal("10"))

        result = compute_match(Decimal("300"), Decimal("100"), config)

        assert result.pair_volume == Decimal("100")
        assert result.bonus == Decimal("10")
        assert result.left_after == Decimal("200")
        assert result.right_after == Decimal("0")
        assert result.matched is True

    def test_one_to_two_ratio(self):
        """With 1:2 every unit consumes one weak-leg and two strong-leg units."""
        config = BinaryConfig(ratio_weak=1, ratio_strong=2)

        result = compute_match(Decimal("300"), Decimal("100"), config)

        assert result.matched_left == Decimal("200")
        assert result.matched_right == Decimal("100")
        assert result.pair_volume == Decimal("100")
        assert result.bonus == Decimal("10")
        assert result.left_after == Decimal("100")
        assert result.right_after == Decimal("0")

    def test_mirrored_legs_pay_the_same(self):
        """Which side is heavier does not change the pair or the bonus."""
        config = BinaryConfig(ratio_weak=1, ratio_strong=2)

        heavy_left = compute_match(Decimal("300"), Decimal("100"), config)
        heavy_right = compute_match(Decimal("100"), Decimal("300"), config)

        assert heavy_left.pair_volume == heavy_right.pair_volume == Decimal("100")
        assert heavy_left.bonus == heavy_right.bonus == Decimal("10")
        assert (heavy_left.left_after, heavy_left.right_after) == (
            heavy_right.right_after,
            heavy_right.left_after,
        )

    def test_empty_leg_matches_nothing(self):
        """One empty leg means no match and no change."""
        result = compute_match(Decimal("500"), Decimal("0"), BinaryConfig())

        assert result.matched is False
        assert result.bonus == Decimal("0")
        assert result.left_after == Decimal("500")

    def test_pair_below_minimum_is_not_matched(self):
        """A pair under min_match_volume leaves both legs untouched."""
        config = BinaryConfig(min_match_volume=Decimal("150"))

        result = compute_match(Decimal("300"), Decimal("100"), config)

        assert result.matched is False
        assert result.left_after == Decimal("300")
        assert result.right_after == Decimal("100")

    def test_bonus_limited_by_cap(self):
        """The bonus never exceeds the remaining cap; the excess is recorded."""
        result = compute_match(
            Decimal("1000"), Decimal("1000"), BinaryConfig(), cap_remaining=Decimal("25")
        )

        assert result.raw_bonus == Decimal("100")
        assert result.bonus == Decimal("25")
        assert result.capped_amount == Decimal("75")
        # Volume is consumed even when the cap swallows the bonus
        assert result.left_after == Decimal("0")

    def test_exhausted_cap_pays_zero(self):
        """A fully used cap pays nothing."""
        result = compute_match(
            Decimal("100"), Decimal("100"), BinaryConfig(), cap_remaining=Decimal("0")
        )

        assert result.bonus == Decimal("0")
        assert result.capped_amount == Decimal("10")


class TestCaps:
    """Test cap windows."""

    def test_no_caps_configured(self):
        """Without caps the remaining allowance is unlimited (None)."""
        assert cap_remaining(leg_state(), BinaryConfig(), AT) is None

    def test_smallest_remaining_cap_wins(self):
        """Daily 1000 with 900 paid today leaves 100 even under a larger weekly cap."""
        config = BinaryConfig(daily_cap=Decimal("1000"), weekly_cap=Decimal("5000"))
        state = leg_state(
            day_window=date(2024, 5, 15),
            day_paid=Decimal("900"),
            week_window=date(2024, 5, 13),
            week_paid=Decimal("900"),
        )

        assert cap_remaining(state, config, AT) == Decimal("100")

    def test_stale_window_counts_as_zero(self):
        """Counters of a previous day do not reduce today's allowance."""
        config = BinaryConfig(daily_cap=Decimal("1000"))
        state = leg_state(day_window=date(2024, 5, 14), day_paid=Decimal("1000"))

        assert cap_remaining(state, config, AT) == Decimal("1000")

    def test_consume_caps_rolls_windows(self):
        """Paying in a new window resets that window's counter first."""
        state = leg_state(
            day_window=date(2024, 5, 14),
            day_paid=Decimal("700"),
            week_window=date(2024, 5, 13),
            week_paid=Decimal("700"),
            month_window=date(2024, 5, 1),
            month_paid=Decimal("700"),
        )

        consume_caps(state, Decimal("50"), AT)

        assert state.day_window == date(2024, 5, 15)
        assert state.day_paid == Decimal("50")
        assert state.week_paid == Decimal("750")
        assert state.month_paid == Decimal("750")


class TestFlush:
    """Test flush boundaries."""

    def test_never_flushes(self):
        assert flush_due(None, AT, FlushPeriod.NEVER) is False

    def test_first_cycle_flushes(self):
        """A leg that was never flushed is due."""
        assert flush_due(None, AT, FlushPeriod.DAILY) is True

    def test_daily_boundary(self):
        """Daily flush happens once per UTC day."""
        earlier_today = datetime(2024, 5, 15, 1, tzinfo=UTC)
        yesterday = datetime(2024, 5, 14, 23, tzinfo=UTC)

        assert flush_due(earlier_today, AT, FlushPeriod.DAILY) is False
        assert flush_due(yesterday, AT, FlushPeriod.DAILY) is True

    def test_weekly_boundary(self):
        """Weekly flush follows ISO weeks (Monday start)."""
        monday = datetime(2024, 5, 13, tzinfo=UTC)
        sunday_before = datetime(2024, 5, 12, tzinfo=UTC)

        assert flush_due(monday, AT, FlushPeriod.WEEKLY) is False
        assert flush_due(sunday_before, AT, FlushPeriod.WEEKLY) is True

    def test_carry_limit(self):
        """A flush keeps at most the carry limit on each leg."""
        assert flushed_volume(Decimal("200"), Decimal("50")) == Decimal("50")
        assert flushed_volume(Decimal("20"), Decimal("50")) == Decimal("20")
        assert flushed_volume(Decimal("200"), Decimal("0")) == Decimal("0")
