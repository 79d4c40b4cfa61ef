"""
Commission run repository.

Data access layer for CommissionRun and CommissionSettingsRecord models.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.commission_run import CommissionRun
from compensation.models.commission_settings_record import CommissionSettingsRecord
from compensation.models.enums import RunStatus
from compensation.repositories.base import BaseRepository


class CommissionRunRepository(BaseRepository[CommissionRun]):
    """Commission run repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission run repository."""
        super().__init__(CommissionRun, session)

    async def get_history(
        self,
        commission_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CommissionRun]:
        """
        Get runs, newest first.

        Args:
            commission_type: Optional type filter
            limit: Max number of results
            offset: Number of results to skip

        Returns:
            List of runs
        """
        stmt = select(CommissionRun)
        if commission_type:
            stmt = stmt.where(CommissionRun.commission_type == commission_type)
        stmt = stmt.order_by(CommissionRun.id.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stale_running(self, started_before: datetime) -> list[CommissionRun]:
        """Runs still marked running that started before a cutoff."""
        stmt = (
            select(CommissionRun)
            .where(
                CommissionRun.status == RunStatus.RUNNING.value,
                CommissionRun.started_at < started_before,
            )
            .order_by(CommissionRun.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SettingsRepository(BaseRepository[CommissionSettingsRecord]):
    """Versioned settings repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize settings repository."""
        super().__init__(CommissionSettingsRecord, session)

    async def get_latest(self) -> CommissionSettingsRecord | None:
        """Get the highest settings version."""
        stmt = (
            select(CommissionSettingsRecord)
            .order_by(CommissionSettingsRecord.version.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_next_version(self) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.max(CommissionSettingsRecord.version), 0))
        )
        return int(result.scalar()) + 1

    async def get_versions(self, limit: int = 20) -> list[CommissionSettingsRecord]:
        stmt = (
            select(CommissionSettingsRecord)
            .order_by(CommissionSettingsRecord.version.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
