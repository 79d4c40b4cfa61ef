"""
Binary repository.

Data access layer for BinaryLegState, BinaryMatch and BinaryVolumeEvent.
"""

from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.binary_leg_state import BinaryLegState
from compensation.models.binary_match import BinaryMatch, BinaryVolumeEvent
from compensation.repositories.base import BaseRepository


class BinaryLegRepository(BaseRepository[BinaryLegState]):
    """Leg state repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize leg state repository."""
        super().__init__(BinaryLegState, session)

    async def get_by_id(self, id: int, for_update: bool = False) -> BinaryLegState | None:
        """Get leg state by member id."""
        stmt = select(BinaryLegState).where(BinaryLegState.member_id == id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create_for_update(self, member_id: int) -> BinaryLegState:
        """
        Get leg state locked for update, creating an empty one on first use.

        Args:
            member_id: Member ID

        Returns:
            Locked leg state
        """
        state = await self.get_by_id(member_id, for_update=True)
        if state is None:
            state = BinaryLegState(
                member_id=member_id,
                left_volume=Decimal("0"),
                right_volume=Decimal("0"),
                total_left=Decimal("0"),
                total_right=Decimal("0"),
                matched_to_date=Decimal("0"),
                day_paid=Decimal("0"),
                week_paid=Decimal("0"),
                month_paid=Decimal("0"),
            )
            self.session.add(state)
            await self.session.flush()
        return state

    async def get_member_ids_with_volume(self) -> list[int]:
        """Members with unmatched volume on either leg."""
        stmt = (
            select(BinaryLegState.member_id)
            .where(
                or_(BinaryLegState.left_volume > 0, BinaryLegState.right_volume > 0)
            )
            .order_by(BinaryLegState.member_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class BinaryMatchRepository(BaseRepository[BinaryMatch]):
    """Match history repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize match repository."""
        super().__init__(BinaryMatch, session)

    async def get_for_cycle(self, cycle_id: str, member_id: int) -> BinaryMatch | None:
        return await self.get_by(cycle_id=cycle_id, member_id=member_id)

    async def get_by_member(self, member_id: int, limit: int = 20) -> list[BinaryMatch]:
        stmt = (
            select(BinaryMatch)
            .where(BinaryMatch.member_id == member_id)
            .order_by(BinaryMatch.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class BinaryVolumeEventRepository(BaseRepository[BinaryVolumeEvent]):
    """Accumulated investment event repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize volume event repository."""
        super().__init__(BinaryVolumeEvent, session)

    async def get_by_event_id(self, event_id: str) -> BinaryVolumeEvent | None:
        return await self.get_by(event_id=event_id)
