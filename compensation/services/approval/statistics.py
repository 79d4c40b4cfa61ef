"""
Wallet request statistics.

Pending workload and approved totals of deposits and withdrawals for the
admin dashboard.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from compensation.models.enums import RequestStatus
from compensation.repositories.request_repository import (
    DepositRequestRepository,
    WithdrawalRequestRepository,
)


class FinancialStatsService:
    """Aggregates request counts and amounts per status."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize financial statistics service.

        Args:
            session: Database session
        """
        self.session = session
        self.deposit_repo = DepositRequestRepository(session)
        self.withdrawal_repo = WithdrawalRequestRepository(session)

    async def financial_stats(self) -> dict:
        """
        Get request statistics.

        Returns:
            Dictionary with, for deposits and withdrawals:
            - pending_count / pending_amount
            - on_hold_count / on_hold_amount (withdrawals only)
            - approved_count / approved_amount
            - rejected_count
        """
        deposits = await self.deposit_repo.get_status_totals()
        withdrawals = await self.withdrawal_repo.get_status_totals()

        def totals(status: RequestStatus, by_status: dict) -> tuple[int, Decimal]:
            return by_status.get(status.value, (0, Decimal("0")))

        stats: dict[str, dict] = {}
        for name, by_status in (("deposits", deposits), ("withdrawals", withdrawals)):
            pending_count, pending_amount = totals(RequestStatus.PENDING, by_status)
            approved_count, approved_amount = totals(RequestStatus.APPROVED, by_status)
            rejected_count, _ = totals(RequestStatus.REJECTED, by_status)
            stats[name] = {
                "pending_count": pending_count,
                "pending_amount": pending_amount,
                "approved_count": approved_count,
                "approved_amount": approved_amount,
                "rejected_count": rejected_count,
            }

        on_hold_count, on_hold_amount = totals(RequestStatus.ON_HOLD, withdrawals)
        stats["withdrawals"]["on_hold_count"] = on_hold_count
        stats["withdrawals"]["on_hold_amount"] = on_hold_amount
        return stats
