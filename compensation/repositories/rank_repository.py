"""
Rank repository.

Data access layer for RankAchievement and RankAdjustment models.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.rank_achievement import RankAchievement, RankAdjustment
from compensation.repositories.base import BaseRepository


class RankAchievementRepository(BaseRepository[RankAchievement]):
    """Rank achievement repository (records are never deleted)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank achievement repository."""
        super().__init__(RankAchievement, session)

    async def get_achieved_codes(self, member_id: int) -> set[str]:
        """Rank codes the member already has an achievement for."""
        result = await self.session.execute(
            select(RankAchievement.rank_code).where(RankAchievement.member_id == member_id)
        )
        return set(result.scalars().all())

    async def search(
        self,
        member_id: int | None = None,
        reward_status: str | None = None,
        rank_code: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RankAchievement]:
        """
        Find achievements by optional filters.

        Returns:
            Achievements, newest first
        """
        stmt = select(RankAchievement)
        if member_id is not None:
            stmt = stmt.where(RankAchievement.member_id == member_id)
        if reward_status:
            stmt = stmt.where(RankAchievement.reward_status == reward_status)
        if rank_code:
            stmt = stmt.where(RankAchievement.rank_code == rank_code)
        stmt = stmt.order_by(RankAchievement.id.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class RankAdjustmentRepository(BaseRepository[RankAdjustment]):
    """Rank adjustment repository (audit trail of manual rank changes)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank adjustment repository."""
        super().__init__(RankAdjustment, session)

    async def get_by_member(self, member_id: int) -> list[RankAdjustment]:
        stmt = (
            select(RankAdjustment)
            .where(RankAdjustment.member_id == member_id)
            .order_by(RankAdjustment.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
