"""
Validators package.

Provides common validation functions for admin input.
"""

from compensation.validators.common import (
    require,
    validate_amount,
    validate_ids,
    validate_period,
    validate_reason,
)


__all__ = [
    "require",
    "validate_amount",
    "validate_ids",
    "validate_period",
    "validate_reason",
]
