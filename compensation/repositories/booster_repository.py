"""
Booster repository.

Data access layer for Booster model.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.booster import Booster
from compensation.models.enums import BoosterStatus
from compensation.repositories.base import BaseRepository


class BoosterRepository(BaseRepository[Booster]):
    """Booster repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize booster repository."""
        super().__init__(Booster, session)

    async def get_by_member(self, member_id: int) -> Booster | None:
        return await self.get_by(member_id=member_id)

    async def get_active_member_ids(self, started_before: datetime) -> list[int]:
        """
        Owners of active boosters started before a moment.

        Args:
            started_before: Upper bound of booster start

        Returns:
            Member ids ordered by booster id
        """
        stmt = (
            select(Booster.member_id)
            .where(
                Booster.status == BoosterStatus.ACTIVE.value,
                Booster.start_at <= started_before,
            )
            .order_by(Booster.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
