"""
Rank reward service.

Pays or cancels the reward of a rank achievement. An achievement moves
pending -> paid or pending -> cancelled exactly once; the ledger key
rank:{achievement_id} makes a replayed payment a no-op.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import LedgerKind, RewardStatus
from compensation.models.rank_achievement import RankAchievement
from compensation.repositories.rank_repository import RankAchievementRepository
from compensation.services.base_service import BaseService
from compensation.services.ledger.ledger_service import LedgerService, Posting
from compensation.utils.datetime_utils import utc_now
from compensation.utils.exceptions import (
    BusinessRuleViolation,
    NotFoundError,
    ReasonCode,
)
from compensation.validators.common import require, validate_reason


def rank_key(achievement_id: int) -> str:
    return f"rank:{achievement_id}"


def reward_posting(achievement: RankAchievement, key: str | None = None) -> Posting:
    """Ledger posting of an achievement's reward."""
    return Posting(
        member_id=achievement.member_id,
        amount=achievement.reward_amount,
        kind=LedgerKind.RANK,
        idempotency_key=key or rank_key(achievement.id),
        reference_type="rank_achievement",
        reference_id=str(achievement.id) if achievement.id else None,
        description=f"Rank reward: {achievement.rank_code}",
    )


class RankRewardService(BaseService):
    """Rank reward payment and cancellation."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.achievement_repo = RankAchievementRepository(session)
        self.ledger = LedgerService(session)

    async def _get_pending(self, achievement_id: int) -> RankAchievement:
        achievement = await self.achievement_repo.get_by_id(achievement_id, for_update=True)
        if achievement is None:
            raise NotFoundError("RankAchievement", achievement_id)
        if achievement.reward_status != RewardStatus.PENDING.value:
            raise BusinessRuleViolation(
                ReasonCode.INVALID_STATUS,
                f"Reward of achievement {achievement_id} is {achievement.reward_status}",
            )
        return achievement

    async def pay_reward(
        self, achievement_id: int, admin_id: str | None = None, run_id: int | None = None
    ) -> RankAchievement:
        """
        Post the reward of a pending achievement (caller commits).

        Raises:
            NotFoundError: Unknown achievement
            BusinessRuleViolation: Reward is not pending
        """
        achievement = await self._get_pending(achievement_id)
        return await self._pay(achievement, admin_id=admin_id, run_id=run_id)

    async def _pay(
        self,
        achievement: RankAchievement,
        admin_id: str | None = None,
        run_id: int | None = None,
    ) -> RankAchievement:
        if achievement.reward_amount > 0:
            result = await self.ledger.post_posting(reward_posting(achievement), run_id=run_id)
            achievement.ledger_entry_id = result.entry.id if result.entry else None

        achievement.reward_status = RewardStatus.PAID.value
        achievement.paid_at = utc_now()
        await self.flush()

        self.logger.info(
            f"Rank reward paid for achievement {achievement.id}",
            extra={
                "member_id": achievement.member_id,
                "rank": achievement.rank_code,
                "amount": str(achievement.reward_amount),
                "admin_id": admin_id,
                "run_id": run_id,
            },
        )
        return achievement

    async def cancel_reward(
        self, achievement_id: int, reason: str, admin_id: str | None = None
    ) -> RankAchievement:
        """
        Cancel the reward of a pending achievement (caller commits).

        Raises:
            ValidationError: Empty reason
            NotFoundError: Unknown achievement
            BusinessRuleViolation: Reward is not pending
        """
        reason = require(validate_reason(reason))
        achievement = await self._get_pending(achievement_id)
        achievement.reward_status = RewardStatus.CANCELLED.value
        achievement.cancelled_at = utc_now()
        achievement.cancel_reason = reason
        await self.flush()

        self.logger.info(
            f"Rank reward cancelled for achievement {achievement_id}",
            extra={"member_id": achievement.member_id, "admin_id": admin_id, "reason": reason},
        )
        return achievement

    async def get_achievements(
        self,
        member_id: int | None = None,
        reward_status: RewardStatus | str | None = None,
        rank_code: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RankAchievement]:
        """Achievements filtered by member, status and rank, newest first."""
        return await self.achievement_repo.search(
            member_id=member_id,
            reward_status=RewardStatus(reward_status).value if reward_status else None,
            rank_code=rank_code,
            limit=limit,
            offset=offset,
        )
