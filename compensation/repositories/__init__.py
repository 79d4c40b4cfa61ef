"""
Repositories package.

Data access layer: one repository per aggregate.
"""

from compensation.repositories.binary_repository import (
    BinaryLegRepository,
    BinaryMatchRepository,
    BinaryVolumeEventRepository,
)
from compensation.repositories.booster_repository import BoosterRepository
from compensation.repositories.commission_run_repository import (
    CommissionRunRepository,
    SettingsRepository,
)
from compensation.repositories.ledger_repository import BalanceRepository, LedgerRepository
from compensation.repositories.member_repository import MemberRepository
from compensation.repositories.package_repository import PackageRepository
from compensation.repositories.rank_repository import (
    RankAchievementRepository,
    RankAdjustmentRepository,
)
from compensation.repositories.request_repository import (
    DepositRequestRepository,
    WithdrawalRequestRepository,
)


__all__ = [
    "BalanceRepository",
    "BinaryLegRepository",
    "BinaryMatchRepository",
    "BinaryVolumeEventRepository",
    "BoosterRepository",
    "CommissionRunRepository",
    "DepositRequestRepository",
    "LedgerRepository",
    "MemberRepository",
    "PackageRepository",
    "RankAchievementRepository",
    "RankAdjustmentRepository",
    "SettingsRepository",
    "WithdrawalRequestRepository",
]
