"""
Wallet ledger package.

- ledger_service: idempotent postings, balances, audit and reversals
"""

from compensation.services.ledger.ledger_service import (
    BalanceMismatch,
    LedgerService,
    Posting,
    PostResult,
    PostStatus,
)


__all__ = [
    "BalanceMismatch",
    "LedgerService",
    "Posting",
    "PostResult",
    "PostStatus",
]
