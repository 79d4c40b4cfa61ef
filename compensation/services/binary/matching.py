"""
Binary matching calculations.

Pure functions: ratio matching, cap windows and flush boundaries. The
engine feeds them the leg state read under the member's leg lock.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from compensation.models.binary_leg_state import BinaryLegState
from compensation.models.enums import FlushPeriod
from compensation.schemas.commission_settings import BinaryConfig
from compensation.utils.datetime_utils import day_window, month_window, week_window
from compensation.utils.money import ZERO, floor_money, percent_of, quantize_money


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one member's legs."""

    left_before: Decimal
    right_before: Decimal
    matched_left: Decimal
    matched_right: Decimal
    pair_volume: Decimal
    raw_bonus: Decimal
    bonus: Decimal
    capped_amount: Decimal
    left_after: Decimal
    right_after: Decimal

    @property
    def matched(self) -> bool:
        return self.pair_volume > 0


def compute_match(
    left: Decimal,
    right: Decimal,
    config: BinaryConfig,
    cap_remaining: Decimal | None = None,
) -> MatchResult:
    """
    Match left and right volume at the configured ratio.

    The ratio a:b is weak:strong, so mirrored legs match alike. With
    units = min(weak / a, strong / b), units*a is deducted from the
    weaker leg and units*b from the stronger one. The pair volume is
    units * min(a, b) and the bonus is the matching percentage of it,
    limited by cap_remaining. Whatever the ratio does not consume stays on
    its leg (carry forward).

    Args:
        left: Unmatched left volume
        right: Unmatched right volume
        config: Binary configuration
        cap_remaining: Smallest remaining cap allowance, None = uncapped

    Returns:
        MatchResult (all-zero match when pair volume is below the minimum)
    """
    ratio_weak = Decimal(config.ratio_weak)
    ratio_strong = Decimal(config.ratio_strong)
    left_is_weak = left <= right
    weak, strong = (left, right) if left_is_weak else (right, left)

    units = floor_money(min(weak / ratio_weak, strong / ratio_strong))
    pair_volume = quantize_money(units * min(ratio_weak, ratio_strong))

    if units <= 0 or pair_volume <= 0 or pair_volume < config.min_match_volume:
        return MatchResult(
            left_before=left,
            right_before=right,
            matched_left=ZERO,
            matched_right=ZERO,
            pair_volume=ZERO,
            raw_bonus=ZERO,
            bonus=ZERO,
            capped_amount=ZERO,
            left_after=left,
            right_after=right,
        )

    matched_weak = quantize_money(units * ratio_weak)
    matched_strong = quantize_money(units * ratio_strong)
    if left_is_weak:
        matched_left, matched_right = matched_weak, matched_strong
    else:
        matched_left, matched_right = matched_strong, matched_weak

    raw_bonus = percent_of(pair_volume, config.matching_percentage)
    bonus = raw_bonus if cap_remaining is None else min(raw_bonus, max(cap_remaining, ZERO))

    return MatchResult(
        left_before=left,
        right_before=right,
        matched_left=matched_left,
        matched_right=matched_right,
        pair_volume=pair_volume,
        raw_bonus=raw_bonus,
        bonus=bonus,
        capped_amount=raw_bonus - bonus,
        left_after=left - matched_left,
        right_after=right - matched_right,
    )


def _windows(at: datetime) -> tuple[date, date, date]:
    return day_window(at), week_window(at), month_window(at)


def cap_remaining(state: BinaryLegState, config: BinaryConfig, at: datetime) -> Decimal | None:
    """
    Smallest remaining allowance of the daily, weekly and monthly caps.

    Counters belonging to an older window count as zero.

    Returns:
        Remaining allowance, or None when no cap is configured
    """
    day, week, month = _windows(at)
    remaining = []
    for cap, window, current, paid in (
        (config.daily_cap, state.day_window, day, state.day_paid),
        (config.weekly_cap, state.week_window, week, state.week_paid),
        (config.monthly_cap, state.month_window, month, state.month_paid),
    ):
        if cap is None:
            continue
        used = paid if window == current else ZERO
        remaining.append(max(cap - used, ZERO))
    return min(remaining) if remaining else None


def consume_caps(state: BinaryLegState, bonus: Decimal, at: datetime) -> None:
    """Add a paid bonus to the window counters, rolling stale windows over."""
    day, week, month = _windows(at)

    if state.day_window != day:
        state.day_window, state.day_paid = day, ZERO
    if state.week_window != week:
        state.week_window, state.week_paid = week, ZERO
    if state.month_window != month:
        state.month_window, state.month_paid = month, ZERO

    state.day_paid += bonus
    state.week_paid += bonus
    state.month_paid += bonus


def flush_due(last_flush_at: datetime | None, at: datetime, period: FlushPeriod) -> bool:
    """
    Check whether `at` lies past the flush boundary following last_flush_at.

    Legs that were never flushed (last_flush_at is None) are due on their
    first cycle; afterwards the cycle must fall in a later window.
    """
    if period == FlushPeriod.NEVER:
        return False
    if last_flush_at is None:
        return True
    window = {
        FlushPeriod.DAILY: day_window,
        FlushPeriod.WEEKLY: week_window,
        FlushPeriod.MONTHLY: month_window,
    }[period]
    return window(at) > window(last_flush_at)


def flushed_volume(volume: Decimal, carry_limit: Decimal) -> Decimal:
    """Volume a leg keeps across a flush."""
    return min(volume, carry_limit)
