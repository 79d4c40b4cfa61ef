"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from compensation.models.base import Base

# Network
from compensation.models.member import Member
from compensation.models.package import Package
from compensation.models.binary_leg_state import BinaryLegState
from compensation.models.binary_match import BinaryMatch, BinaryVolumeEvent

# Ledger
from compensation.models.ledger_entry import LedgerEntry
from compensation.models.member_balance import MemberBalance

# Runs and configuration
from compensation.models.commission_run import CommissionRun
from compensation.models.commission_settings_record import CommissionSettingsRecord

# Ranks and boosters
from compensation.models.rank_achievement import RankAchievement, RankAdjustment
from compensation.models.booster import Booster

# Wallet requests
from compensation.models.wallet_request import DepositRequest, WithdrawalRequest

from compensation.models.enums import (
    AccrualSchedule,
    AdjustmentDirection,
    BoosterStatus,
    CommissionType,
    CompressionPolicy,
    FlushPeriod,
    KycStatus,
    LedgerKind,
    LegSide,
    MemberStatus,
    PackageStatus,
    RatePolicy,
    RequestStatus,
    RewardStatus,
    RunStatus,
)


__all__ = [
    "Base",
    "Member",
    "Package",
    "BinaryLegState",
    "BinaryMatch",
    "BinaryVolumeEvent",
    "LedgerEntry",
    "MemberBalance",
    "CommissionRun",
    "CommissionSettingsRecord",
    "RankAchievement",
    "RankAdjustment",
    "Booster",
    "DepositRequest",
    "WithdrawalRequest",
    "AccrualSchedule",
    "AdjustmentDirection",
    "BoosterStatus",
    "CommissionType",
    "CompressionPolicy",
    "FlushPeriod",
    "KycStatus",
    "LedgerKind",
    "LegSide",
    "MemberStatus",
    "PackageStatus",
    "RatePolicy",
    "RequestStatus",
    "RewardStatus",
    "RunStatus",
]
