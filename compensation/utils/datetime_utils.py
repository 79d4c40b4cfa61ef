"""
Datetime utilities.

Provides timezone-aware datetime functions and calendar window helpers.
"""

import calendar
from datetime import UTC, date, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values, convert aware values to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month.

    Examples:
        >>> add_months(datetime(2024, 1, 31, tzinfo=UTC), 1).date()
        datetime.date(2024, 2, 29)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def day_window(value: datetime) -> date:
    """Start of the UTC day containing value."""
    return ensure_utc(value).date()


def week_window(value: datetime) -> date:
    """Monday of the ISO week containing value."""
    day = day_window(value)
    return day - timedelta(days=day.weekday())


def month_window(value: datetime) -> date:
    """First day of the month containing value."""
    return day_window(value).replace(day=1)


def previous_day(value: datetime) -> tuple[datetime, datetime]:
    """
    The full UTC day before the one containing value, as [start, end).

    Examples:
        >>> previous_day(datetime(2024, 3, 2, 5, 30, tzinfo=UTC))
        (datetime.datetime(2024, 3, 1, 0, 0, tzinfo=datetime.timezone.utc), datetime.datetime(2024, 3, 2, 0, 0, tzinfo=datetime.timezone.utc))
    """
    end = datetime.combine(day_window(value), datetime.min.time(), tzinfo=UTC)
    return end - timedelta(days=1), end
