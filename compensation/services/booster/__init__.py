"""Fast-start booster."""

from compensation.services.booster.booster_service import (
    BoosterOutcome,
    BoosterPlan,
    BoosterService,
    booster_key,
)


__all__ = [
    "BoosterOutcome",
    "BoosterPlan",
    "BoosterService",
    "booster_key",
]
