"""Level (unilevel) commission distribution."""

from compensation.services.level.distributor import (
    LevelDistribution,
    LevelDistributor,
    LevelShare,
    compute_level_shares,
    level_key,
)


__all__ = [
    "LevelDistribution",
    "LevelDistributor",
    "LevelShare",
    "compute_level_shares",
    "level_key",
]
