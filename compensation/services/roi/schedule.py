"""
ROI accrual schedule.

Schedule instants of a package are start_at + k * interval for k >= 1.
Monthly schedules add calendar months to start_at (not to the previous
instant), so a package started on the 31st accrues on the last day of
shorter months and returns to the 31st afterwards.
"""

from collections.abc import Iterator
from datetime import datetime, timedelta

from compensation.models.enums import AccrualSchedule
from compensation.utils.datetime_utils import add_months

_FIXED_INTERVALS = {
    AccrualSchedule.DAILY: timedelta(days=1),
    AccrualSchedule.WEEKLY: timedelta(weeks=1),
}


def schedule_instant(start_at: datetime, schedule: AccrualSchedule, k: int) -> datetime:
    """The k-th accrual instant of a package (k >= 1)."""
    if schedule == AccrualSchedule.MONTHLY:
        return add_months(start_at, k)
    return start_at + _FIXED_INTERVALS[schedule] * k


def _first_index_after(start_at: datetime, schedule: AccrualSchedule, after: datetime | None) -> int:
    if after is None or after < start_at:
        return 1
    if schedule == AccrualSchedule.MONTHLY:
        k = max(1, (after.year - start_at.year) * 12 + after.month - start_at.month)
        while k > 1 and schedule_instant(start_at, schedule, k - 1) > after:
            k -= 1
        while schedule_instant(start_at, schedule, k) <= after:
            k += 1
        return k
    return (after - start_at) // _FIXED_INTERVALS[schedule] + 1


def iter_due_instants(
    start_at: datetime,
    schedule: AccrualSchedule | str,
    after: datetime | None,
    until: datetime,
) -> Iterator[datetime]:
    """
    Yield accrual instants in (after, until], oldest first.

    Args:
        start_at: Package start
        schedule: Accrual frequency
        after: Last instant already accrued (None = nothing accrued yet)
        until: Upper bound, inclusive
    """
    schedule = AccrualSchedule(schedule)
    k = _first_index_after(start_at, schedule, after)
    while True:
        instant = schedule_instant(start_at, schedule, k)
        if instant > until:
            return
        yield instant
        k += 1


def next_instant(
    start_at: datetime, schedule: AccrualSchedule | str, after: datetime | None
) -> datetime:
    """First accrual instant after `after`."""
    schedule = AccrualSchedule(schedule)
    return schedule_instant(start_at, schedule, _first_index_after(start_at, schedule, after))
