"""
Common validators for admin input.

Each validator returns a tuple of (is_valid, parsed_value, error_message).
Services turn a failed validation into a ValidationError before any
engine work starts, see require().
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from compensation.utils.datetime_utils import ensure_utc
from compensation.utils.exceptions import ValidationError
from compensation.utils.money import quantize_money


T = TypeVar("T")

MAX_REASON_LENGTH = 1000


def validate_amount(
    value: Any, min_amount: Decimal | None = None
) -> tuple[bool, Decimal | None, str | None]:
    """
    Validate a positive money amount.

    Args:
        value: Decimal, int or numeric string
        min_amount: Minimum allowed amount (inclusive), optional

    Returns:
        Tuple of (is_valid, quantized_amount, error_message)

    Examples:
        >>> validate_amount("100.50")
        (True, Decimal('100.50000000'), None)
        >>> validate_amount("-10")
        (False, None, 'Amount must be positive')
    """
    if value is None or isinstance(value, bool) or isinstance(value, float):
        return False, None, "Amount must be a decimal number"

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return False, None, "Amount must be a valid number"

    if not amount.is_finite():
        return False, None, "Amount must be a valid number"

    if amount <= 0:
        return False, None, "Amount must be positive"

    amount = quantize_money(amount)
    if amount <= 0:
        return False, None, "Amount is below the smallest unit"

    if min_amount is not None and amount < min_amount:
        return False, None, f"Amount must be at least {min_amount}"

    return True, amount, None


def validate_reason(
    value: str | None, required: bool = True
) -> tuple[bool, str | None, str | None]:
    """
    Validate an administrator reason / comment.

    Args:
        value: Free text
        required: Whether an empty reason is an error

    Returns:
        Tuple of (is_valid, stripped_reason, error_message)
    """
    reason = (value or "").strip()

    if not reason:
        if required:
            return False, None, "Reason is required"
        return True, None, None

    if len(reason) > MAX_REASON_LENGTH:
        return False, None, f"Reason must not exceed {MAX_REASON_LENGTH} characters"

    return True, reason, None


def validate_period(
    date_from: datetime | None, date_to: datetime | None
) -> tuple[bool, tuple[datetime, datetime] | None, str | None]:
    """
    Validate a run period.

    Naive datetimes are treated as UTC.

    Returns:
        Tuple of (is_valid, (from, to) in UTC, error_message)
    """
    if date_from is None or date_to is None:
        return False, None, "Both period bounds are required"

    if not isinstance(date_from, datetime) or not isinstance(date_to, datetime):
        return False, None, "Period bounds must be datetimes"

    start, end = ensure_utc(date_from), ensure_utc(date_to)
    if end < start:
        return False, None, "Period end must not be before period start"

    return True, (start, end), None


def validate_ids(values: Any) -> tuple[bool, list[int] | None, str | None]:
    """Validate a non-empty list of positive integer ids (order kept, duplicates dropped)."""
    if not isinstance(values, (list, tuple)) or not values:
        return False, None, "At least one id is required"

    ids: list[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return False, None, f"Invalid id: {value!r}"
        if value not in ids:
            ids.append(value)

    return True, ids, None


def require(result: tuple[bool, T | None, str | None]) -> T:
    """
    Unwrap a validator result.

    Raises:
        ValidationError: If the validator failed
    """
    is_valid, value, error = result
    if not is_valid:
        raise ValidationError(error or "Invalid input")
    return value  # type: ignore[return-value]
