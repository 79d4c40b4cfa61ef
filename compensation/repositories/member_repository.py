"""
Member repository.

Data access layer for Member model, including the recursive queries over
the sponsor tree and the binary placement tree.
"""

from sqlalchemy import Integer, func, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from compensation.models.member import Member
from compensation.repositories.base import BaseRepository


class MemberRepository(BaseRepository[Member]):
    """Member repository with graph queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize member repository."""
        super().__init__(Member, session)

    async def get_sponsor_chain(
        self, member_id: int, max_depth: int
    ) -> list[tuple[int, int, str, int]]:
        """
        Get sponsor chain with a recursive CTE.

        Args:
            member_id: Member whose upline is walked
            max_depth: Maximum number of levels

        Returns:
            List of (ancestor_id, level, ancestor_status, direct_count),
            closest first
        """
        if max_depth <= 0:
            return []

        chain = (
            select(
                Member.sponsor_id.label("ancestor_id"),
                literal_column("1", Integer).label("level"),
            )
            .where(Member.id == member_id, Member.sponsor_id.is_not(None))
            .cte("sponsor_chain", recursive=True)
        )
        parent = aliased(Member)
        chain = chain.union_all(
            select(parent.sponsor_id, chain.c.level + 1).where(
                parent.id == chain.c.ancestor_id,
                parent.sponsor_id.is_not(None),
                chain.c.level < max_depth,
            )
        )

        direct = aliased(Member)
        direct_count = (
            select(func.count(direct.id))
            .where(direct.sponsor_id == chain.c.ancestor_id)
            .scalar_subquery()
        )

        stmt = (
            select(
                chain.c.ancestor_id,
                chain.c.level,
                Member.status,
                direct_count.label("direct_count"),
            )
            .join(Member, Member.id == chain.c.ancestor_id)
            .order_by(chain.c.level)
        )
        result = await self.session.execute(stmt)
        return [
            (row.ancestor_id, row.level, row.status, row.direct_count) for row in result.all()
        ]

    async def get_binary_path(self, member_id: int) -> list[tuple[int, str]]:
        """
        Get binary placement path with a recursive CTE.

        Returns:
            List of (ancestor_id, side) where side is the leg of the
            ancestor that contains member_id, closest ancestor first
        """
        path = (
            select(
                Member.binary_parent_id.label("ancestor_id"),
                Member.binary_side.label("side"),
                literal_column("1", Integer).label("depth"),
            )
            .where(Member.id == member_id, Member.binary_parent_id.is_not(None))
            .cte("binary_path", recursive=True)
        )
        node = aliased(Member)
        path = path.union_all(
            select(node.binary_parent_id, node.binary_side, path.c.depth + 1).where(
                node.id == path.c.ancestor_id,
                node.binary_parent_id.is_not(None),
            )
        )

        result = await self.session.execute(
            select(path.c.ancestor_id, path.c.side).order_by(path.c.depth)
        )
        return [(row.ancestor_id, row.side) for row in result.all()]

    async def get_downline_ids(self, member_id: int) -> list[int]:
        """
        Get ids of every member in the sponsor subtree (excluding member_id).
        """
        tree = (
            select(Member.id.label("id"))
            .where(Member.sponsor_id == member_id)
            .cte("downline", recursive=True)
        )
        child = aliased(Member)
        tree = tree.union_all(select(child.id).where(child.sponsor_id == tree.c.id))

        result = await self.session.execute(select(tree.c.id))
        return list(result.scalars().all())

    async def get_binary_child(self, parent_id: int, side: str) -> Member | None:
        """Get member placed in a binary slot."""
        return await self.get_by(binary_parent_id=parent_id, binary_side=side)

    async def get_network_rows(
        self, member_ids: list[int] | None = None
    ) -> list[tuple[int, int | None, str]]:
        """
        Get (id, sponsor_id, status) of members.

        Args:
            member_ids: Restrict to these members; all members when None
        """
        stmt = select(Member.id, Member.sponsor_id, Member.status)
        if member_ids is not None:
            stmt = stmt.where(Member.id.in_(member_ids))
        result = await self.session.execute(stmt)
        return [(row.id, row.sponsor_id, row.status) for row in result.all()]

    async def get_ids(self, status: str | None = None) -> list[int]:
        """Get member ids ordered by id, optionally filtered by status."""
        stmt = select(Member.id).order_by(Member.id)
        if status is not None:
            stmt = stmt.where(Member.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
