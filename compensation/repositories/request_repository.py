"""
Wallet request repositories.

Data access layer for DepositRequest and WithdrawalRequest models.
"""

from decimal import Decimal
from typing import TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.wallet_request import DepositRequest, WithdrawalRequest
from compensation.repositories.base import BaseRepository


RequestType = TypeVar("RequestType", DepositRequest, WithdrawalRequest)


class _WalletRequestRepository(BaseRepository[RequestType]):
    """Queries shared by deposit and withdrawal requests."""

    async def get_by_status(
        self, status: str, limit: int = 100, offset: int = 0
    ) -> list[RequestType]:
        """Requests in a status, oldest first."""
        stmt = (
            select(self.model)
            .where(self.model.status == status)
            .order_by(self.model.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_status_totals(self) -> dict[str, tuple[int, Decimal]]:
        """
        Count and amount per status in a single query.

        Returns:
            Dict mapping status to (count, total amount)
        """
        stmt = select(
            self.model.status,
            func.count(self.model.id),
            func.coalesce(func.sum(self.model.amount), 0),
        ).group_by(self.model.status)
        result = await self.session.execute(stmt)
        return {
            status: (count, Decimal(total)) for status, count, total in result.all()
        }


class DepositRequestRepository(_WalletRequestRepository[DepositRequest]):
    """Deposit request repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize deposit request repository."""
        super().__init__(DepositRequest, session)


class WithdrawalRequestRepository(_WalletRequestRepository[WithdrawalRequest]):
    """Withdrawal request repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize withdrawal request repository."""
        super().__init__(WithdrawalRequest, session)
