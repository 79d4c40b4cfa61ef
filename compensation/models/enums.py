"""
Model enumerations.

String enums persisted by value in String columns.
"""

from enum import StrEnum


class MemberStatus(StrEnum):
    """Member account status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class KycStatus(StrEnum):
    """Member KYC verification status."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class LegSide(StrEnum):
    """Binary tree leg."""

    LEFT = "left"
    RIGHT = "right"


class PackageStatus(StrEnum):
    """Investment package lifecycle."""

    ACTIVE = "active"
    MATURED = "matured"
    CANCELLED = "cancelled"


class AccrualSchedule(StrEnum):
    """ROI accrual frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LedgerKind(StrEnum):
    """Ledger entry kind."""

    LEVEL = "level"
    BINARY = "binary"
    ROI = "roi"
    RANK = "rank"
    BOOSTER = "booster"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    MANUAL = "manual"


class CommissionType(StrEnum):
    """Commission run type."""

    LEVEL = "level"
    BINARY = "binary"
    ROI = "roi"
    RANK = "rank"
    BOOSTER = "booster"


class RunStatus(StrEnum):
    """Commission run status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIALLY_FAILED = "partially_failed"


class RewardStatus(StrEnum):
    """Rank reward status."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class RequestStatus(StrEnum):
    """Deposit / withdrawal request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"


class BoosterStatus(StrEnum):
    """Booster lifecycle."""

    ACTIVE = "active"
    ACHIEVED = "achieved"
    EXPIRED = "expired"


class AdjustmentDirection(StrEnum):
    """Manual adjustment direction."""

    CREDIT = "credit"
    DEBIT = "debit"


class CompressionPolicy(StrEnum):
    """What happens to the share of an ineligible level."""

    SKIP = "skip"
    ROLL_UP = "roll_up"


class RatePolicy(StrEnum):
    """How an ROI rate is picked inside a package's band."""

    MIDPOINT = "midpoint"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"


class FlushPeriod(StrEnum):
    """Binary leg flush boundary."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NEVER = "never"
