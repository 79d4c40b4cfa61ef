#!/usr/bin/env python3
"""
Verify cached balances against the ledger.

Folds every member's ledger entries and compares the sum with the cached
balance. Exits with status 1 when any member disagrees.

Usage:
    python scripts/verify_balances.py
"""

import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from compensation.config.database import create_engine, create_session_maker
from compensation.services.ledger.ledger_service import LedgerService


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def verify_balances() -> int:
    """Return the number of mismatching members."""
    engine = create_engine(echo=False)
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as session:
            mismatches = await LedgerService(session).audit_balances()
    finally:
        await engine.dispose()

    for mismatch in mismatches:
        logger.error(
            f"Member {mismatch.member_id}: cached {mismatch.cached}, "
            f"ledger {mismatch.computed}, diff {mismatch.cached - mismatch.computed}"
        )

    if mismatches:
        logger.error(f"{len(mismatches)} members have inconsistent balances")
    else:
        logger.success("All balances match the ledger")
    return len(mismatches)


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(verify_balances()) else 0)
