"""
Worker actors.

Importing this package configures the broker first, so
`dramatiq jobs.tasks` starts a worker for every actor.
"""

from jobs.broker import broker  # noqa: F401  (must precede actor definitions)
from jobs.tasks.commission_runs import (
    execute_commission_run,
    retry_commission_run,
    run_scheduled_commission,
)
from jobs.tasks.maintenance import audit_balances, fail_stale_runs


__all__ = [
    "audit_balances",
    "execute_commission_run",
    "fail_stale_runs",
    "retry_commission_run",
    "run_scheduled_commission",
]
