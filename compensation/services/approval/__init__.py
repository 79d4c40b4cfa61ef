"""
Deposit and withdrawal approval package.

- base: shared review flow (approve, reject, batch approve)
- deposit_approval: deposit requests
- withdrawal_approval: withdrawal requests, daily limit, hold
- statistics: pending and approved totals
"""

from compensation.services.approval.deposit_approval import DepositApprovalService
from compensation.services.approval.statistics import FinancialStatsService
from compensation.services.approval.withdrawal_approval import WithdrawalApprovalService


__all__ = [
    "DepositApprovalService",
    "FinancialStatsService",
    "WithdrawalApprovalService",
]
