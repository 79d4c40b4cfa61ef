"""
Rank package.

- evaluator: qualification, achievements and manual adjustments
- rewards: payment and cancellation of achievement rewards
"""

from compensation.services.rank.evaluator import RankEvaluation, RankEvaluator, qualified_ranks
from compensation.services.rank.rewards import RankRewardService, rank_key


__all__ = [
    "RankEvaluation",
    "RankEvaluator",
    "RankRewardService",
    "qualified_ranks",
    "rank_key",
]
