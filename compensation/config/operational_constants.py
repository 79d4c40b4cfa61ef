"""
Operational constants.

Technical constants used across the engine: timeouts, retry budgets,
concurrency limits.
"""

# =============================================================================
# LOCK TIMEOUTS (seconds)
# =============================================================================

# How long a unit of work waits for a member lock before a conflict is raised
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0

# Run-level distributed lock (Redis) expiry, must exceed the run timeout
RUN_LOCK_TIMEOUT_SECONDS = 1800

# How long a worker waits for another worker holding the same run
RUN_LOCK_BLOCKING_TIMEOUT_SECONDS = 10.0


# =============================================================================
# RETRY CONFIGURATIONS
# =============================================================================

# Bounded retries for ConcurrencyConflict / InfrastructureError
DEFAULT_CONFLICT_RETRIES = 3

# Exponential backoff base: 0.05s, 0.1s, 0.2s ...
DEFAULT_RETRY_BASE_DELAY_SECONDS = 0.05

# Dramatiq actor retries for commission runs
RUN_TASK_MAX_RETRIES = 3


# =============================================================================
# COMMISSION RUNS
# =============================================================================

DEFAULT_RUN_TIMEOUT_SECONDS = 900
DEFAULT_RUN_CONCURRENCY = 4

# Runs stuck in "running" longer than this are failed by the watchdog
STALE_RUN_AFTER_SECONDS = 3600

# Failure details kept on a run record
MAX_RECORDED_FAILURES = 500


# =============================================================================
# WORKER TASKS (milliseconds, dramatiq time_limit)
# =============================================================================

# Must exceed the run timeout so the run records its own timeout first
RUN_TASK_TIME_LIMIT_MS = (DEFAULT_RUN_TIMEOUT_SECONDS + 120) * 1000

MAINTENANCE_TASK_TIME_LIMIT_MS = 300_000
