"""
Package repository.

Data access layer for Package model.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import MemberStatus, PackageStatus
from compensation.models.member import Member
from compensation.models.package import Package
from compensation.repositories.base import BaseRepository


class PackageRepository(BaseRepository[Package]):
    """Package repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize package repository."""
        super().__init__(Package, session)

    async def get_active_by_member(self, member_id: int) -> list[Package]:
        """
        Get active packages of a member.

        Args:
            member_id: Owner member ID

        Returns:
            Active packages ordered by id
        """
        stmt = (
            select(Package)
            .where(
                Package.member_id == member_id,
                Package.status == PackageStatus.ACTIVE.value,
            )
            .order_by(Package.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_accruing_ids(self, until: datetime) -> list[int]:
        """
        Get ids of active packages started before `until`.

        Args:
            until: Upper bound of the accrual period

        Returns:
            Package ids ordered by id
        """
        stmt = (
            select(Package.id)
            .where(
                Package.status == PackageStatus.ACTIVE.value,
                Package.start_at < until,
            )
            .order_by(Package.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_created_between(self, start: datetime, end: datetime) -> list[Package]:
        """Get packages created in [start, end], cancelled ones excluded."""
        stmt = (
            select(Package)
            .where(
                Package.created_at >= start,
                Package.created_at <= end,
                Package.status != PackageStatus.CANCELLED.value,
            )
            .order_by(Package.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_member(self, member_id: int) -> int:
        """Count all packages of a member (any status)."""
        return await self.count(member_id=member_id)

    async def get_investment_rows(
        self, member_ids: list[int] | None = None
    ) -> list[tuple[int, Decimal, bool]]:
        """
        Get per-member investment aggregates.

        Returns:
            List of (member_id, principal of non-cancelled packages,
            has an active package)
        """
        active_count = func.sum(
            case((Package.status == PackageStatus.ACTIVE.value, 1), else_=0)
        )
        stmt = (
            select(
                Package.member_id,
                func.coalesce(func.sum(Package.principal), 0).label("principal"),
                active_count.label("active_count"),
            )
            .where(Package.status != PackageStatus.CANCELLED.value)
            .group_by(Package.member_id)
        )
        if member_ids is not None:
            stmt = stmt.where(Package.member_id.in_(member_ids))

        result = await self.session.execute(stmt)
        return [
            (row.member_id, Decimal(row.principal), bool(row.active_count))
            for row in result.all()
        ]

    async def count_qualified_directs(
        self, sponsor_id: int, min_principal: Decimal, created_before: datetime
    ) -> int:
        """
        Count active direct referrals holding a qualifying active package.

        Args:
            sponsor_id: Sponsor whose directs are counted
            min_principal: Minimum principal of the qualifying package
            created_before: Packages created after this moment do not count

        Returns:
            Number of distinct qualifying directs
        """
        stmt = (
            select(func.count(func.distinct(Package.member_id)))
            .join(Member, Member.id == Package.member_id)
            .where(
                Member.sponsor_id == sponsor_id,
                Member.status == MemberStatus.ACTIVE.value,
                Package.status == PackageStatus.ACTIVE.value,
                Package.principal >= min_principal,
                Package.created_at <= created_before,
            )
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)
