"""
Standard type definitions for database models.

Provides consistent types for monetary, percentage and timestamp fields
across all models.
"""

from datetime import UTC, datetime

from sqlalchemy import DECIMAL, DateTime
from sqlalchemy.types import TypeDecorator

# Standard money type for amounts, balances, rewards
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Percentage type for commission and ROI rates
# Precision: 10 digits total, 4 after decimal point
# Suitable for: 0.5000%, 10.0000%, 150.0000%
PercentType = DECIMAL(10, 4)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp.

    Naive values read back from backends without timezone support
    (SQLite) are tagged as UTC; aware values are normalized to UTC on write.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime is not allowed: {value!r}")
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
