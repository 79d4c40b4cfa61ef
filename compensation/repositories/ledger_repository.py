"""
Ledger repository.

Data access layer for LedgerEntry and MemberBalance models.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.ledger_entry import LedgerEntry
from compensation.models.member_balance import MemberBalance
from compensation.repositories.base import BaseRepository


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Ledger entry repository (append-only)."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(LedgerEntry, session)

    async def get_by_key(self, idempotency_key: str) -> LedgerEntry | None:
        """Get entry by idempotency key."""
        return await self.get_by(idempotency_key=idempotency_key)

    async def get_existing_keys(self, keys: list[str]) -> set[str]:
        """
        Get which of the given idempotency keys are already posted.

        Args:
            keys: Candidate idempotency keys

        Returns:
            Subset of keys present in the ledger
        """
        found: set[str] = set()
        # Chunked to stay below bound-parameter limits
        for start in range(0, len(keys), 500):
            chunk = keys[start : start + 500]
            stmt = select(LedgerEntry.idempotency_key).where(
                LedgerEntry.idempotency_key.in_(chunk)
            )
            result = await self.session.execute(stmt)
            found.update(result.scalars().all())
        return found

    async def sum_for_member(self, member_id: int) -> tuple[Decimal, int]:
        """
        Fold all entries of a member.

        Returns:
            Tuple of (sum of amounts, number of entries)
        """
        stmt = select(
            func.coalesce(func.sum(LedgerEntry.amount), 0),
            func.count(LedgerEntry.id),
        ).where(LedgerEntry.member_id == member_id)
        result = await self.session.execute(stmt)
        total, count = result.one()
        return Decimal(total), count

    async def get_member_sums(self) -> dict[int, Decimal]:
        """Fold entries of all members in one query."""
        stmt = select(
            LedgerEntry.member_id, func.sum(LedgerEntry.amount)
        ).group_by(LedgerEntry.member_id)
        result = await self.session.execute(stmt)
        return {member_id: Decimal(total) for member_id, total in result.all()}

    async def get_history(
        self,
        member_id: int,
        kind: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Get entries of a member, newest first."""
        stmt = select(LedgerEntry).where(LedgerEntry.member_id == member_id)
        if kind:
            stmt = stmt.where(LedgerEntry.kind == kind)
        stmt = stmt.order_by(LedgerEntry.id.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_run_totals(self, run_id: int) -> tuple[int, int, Decimal]:
        """
        Aggregate entries posted by a run.

        Returns:
            Tuple of (entry count, distinct members, total amount)
        """
        stmt = select(
            func.count(LedgerEntry.id),
            func.count(func.distinct(LedgerEntry.member_id)),
            func.coalesce(func.sum(LedgerEntry.amount), 0),
        ).where(LedgerEntry.run_id == run_id)
        result = await self.session.execute(stmt)
        entries, members, total = result.one()
        return entries, members, Decimal(total)

    async def sum_debits_since(self, member_id: int, kind: str, since: datetime) -> Decimal:
        """Absolute sum of debits of a kind posted since a moment."""
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.member_id == member_id,
            LedgerEntry.kind == kind,
            LedgerEntry.amount < 0,
            LedgerEntry.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return -Decimal(result.scalar())


class BalanceRepository(BaseRepository[MemberBalance]):
    """Member balance repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize balance repository."""
        super().__init__(MemberBalance, session)

    async def get_by_id(self, id: int, for_update: bool = False) -> MemberBalance | None:
        """Get balance row by member id."""
        stmt = select(MemberBalance).where(MemberBalance.member_id == id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, member_id: int) -> MemberBalance:
        """
        Get balance row locked for update, creating it on first use.

        Args:
            member_id: Member ID

        Returns:
            Locked balance row
        """
        balance = await self.get_by_id(member_id, for_update=True)
        if balance is None:
            balance = MemberBalance(member_id=member_id, balance=Decimal("0"), entry_count=0)
            self.session.add(balance)
            await self.session.flush()
        return balance

    async def get_balance(self, member_id: int) -> Decimal:
        stmt = select(MemberBalance.balance).where(MemberBalance.member_id == member_id)
        result = await self.session.execute(stmt)
        value = result.scalar()
        return Decimal(value) if value is not None else Decimal("0")

    async def get_all_balances(self) -> dict[int, Decimal]:
        result = await self.session.execute(
            select(MemberBalance.member_id, MemberBalance.balance)
        )
        return {member_id: Decimal(balance) for member_id, balance in result.all()}
