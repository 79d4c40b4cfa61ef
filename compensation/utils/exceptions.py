"""
Exception handling utilities.

Defines the engine's exception taxonomy and categorized exception tuples
for deciding how a failure is handled.
"""

from enum import StrEnum

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError


class ReasonCode(StrEnum):
    """Machine-readable reason of a business rule rejection."""

    INSUFFICIENT_BALANCE = "InsufficientBalance"
    KYC_NOT_VERIFIED = "KycNotVerified"
    SLOT_OCCUPIED = "SlotOccupied"
    DUPLICATE_ACHIEVEMENT = "DuplicateAchievement"
    LIMIT_EXCEEDED = "LimitExceeded"
    INVALID_STATUS = "InvalidStatus"
    NOT_FOUND = "NotFound"
    MEMBER_INACTIVE = "MemberInactive"
    CAP_EXCEEDED = "CapExceeded"


class CompensationError(Exception):
    """Base class of all engine errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CompensationError):
    """Bad input, rejected before any engine work."""


class BusinessRuleViolation(CompensationError):
    """Operation refused by a business rule, with no partial effect."""

    def __init__(self, code: ReasonCode, message: str | None = None) -> None:
        super().__init__(message or code.value)
        self.code = code


class NotFoundError(BusinessRuleViolation):
    """Referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: int | str) -> None:
        super().__init__(ReasonCode.NOT_FOUND, f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConcurrencyConflict(CompensationError):
    """Member lock not acquired in time or a concurrent write won a race."""


class InfrastructureError(CompensationError):
    """Storage or broker unavailable."""


# Exception categories based on handling strategy

# Retried automatically with bounded backoff
RETRYABLE = (
    ConcurrencyConflict,
    InfrastructureError,
    OperationalError,  # Connection drops, lock timeouts, deadlocks
)

# Never retried - the input or state must change first
MUST_RAISE = (
    ValidationError,
    BusinessRuleViolation,
)

# Raw driver errors that are wrapped into InfrastructureError
INFRASTRUCTURE = (
    OperationalError,
    DBAPIError,
)


def is_retryable(exc: BaseException) -> bool:
    """
    Check if exception should be retried.

    Args:
        exc: Exception to check

    Returns:
        True if exception is transient
    """
    return isinstance(exc, RETRYABLE)


def must_raise(exc: BaseException) -> bool:
    """
    Check if exception must be surfaced to the caller unchanged.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a caller error
    """
    return isinstance(exc, MUST_RAISE)


def reason_of(exc: BaseException) -> str:
    """Short reason string for batch results and run failure records."""
    if isinstance(exc, BusinessRuleViolation):
        return exc.code.value
    if isinstance(exc, ValidationError):
        return f"ValidationError: {exc.message}"
    # Unique-key races surface as IntegrityError
    if isinstance(exc, (ConcurrencyConflict, IntegrityError)):
        return "ConcurrencyConflict"
    if isinstance(exc, (InfrastructureError, *INFRASTRUCTURE)):
        return "InfrastructureError"
    return f"{type(exc).__name__}: {exc}"
