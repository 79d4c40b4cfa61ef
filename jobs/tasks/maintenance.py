"""
Maintenance tasks.

- Stale run watchdog: fails runs left in `running` by a crashed worker,
  so they can be retried.
- Balance audit: compares cached balances with the ledger fold.
"""

from datetime import timedelta

import dramatiq
from loguru import logger

from compensation.config.operational_constants import (
    MAINTENANCE_TASK_TIME_LIMIT_MS,
    STALE_RUN_AFTER_SECONDS,
)
from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401  (actors bind to the configured broker)
from jobs.tasks.commission_runs import build_admin_service


@dramatiq.actor(max_retries=1, time_limit=MAINTENANCE_TASK_TIME_LIMIT_MS)
def fail_stale_runs() -> None:
    """Mark commission runs stuck in running as failed."""
    run_ids = run_async(
        build_admin_service().fail_stale_runs(timedelta(seconds=STALE_RUN_AFTER_SECONDS))
    )
    if run_ids:
        logger.warning(f"Stale run watchdog failed runs: {run_ids}")
    else:
        logger.debug("Stale run watchdog: nothing to do")


@dramatiq.actor(max_retries=1, time_limit=MAINTENANCE_TASK_TIME_LIMIT_MS)
def audit_balances() -> None:
    """Log every member whose cached balance disagrees with the ledger."""
    mismatches = run_async(build_admin_service().audit_balances())
    if not mismatches:
        logger.info("Balance audit passed")
        return
    for mismatch in mismatches:
        logger.error(
            f"Balance mismatch for member {mismatch.member_id}: "
            f"cached {mismatch.cached}, ledger {mismatch.computed}"
        )
