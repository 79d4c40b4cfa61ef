"""
Commission run tasks.

Execute commission runs off-request. The scheduler enqueues
`run_scheduled_commission` for the day that just ended; operators can
enqueue explicit periods or retries of failed runs.
"""

from datetime import datetime

import dramatiq
import redis.asyncio as redis
from loguru import logger

from compensation.config.operational_constants import RUN_TASK_MAX_RETRIES, RUN_TASK_TIME_LIMIT_MS
from compensation.config.settings import settings
from compensation.models.commission_run import CommissionRun
from compensation.models.enums import CommissionType
from compensation.services.admin_service import CompensationAdminService
from compensation.utils.datetime_utils import previous_day, utc_now
from compensation.utils.exceptions import MUST_RAISE
from compensation.utils.redis_utils import get_redis_client
from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401  (actors bind to the configured broker)
from jobs.utils.database import task_session_maker


@dramatiq.actor(max_retries=RUN_TASK_MAX_RETRIES, time_limit=RUN_TASK_TIME_LIMIT_MS)
def execute_commission_run(
    commission_type: str,
    period_from: str,
    period_to: str,
    triggered_by: str | None = None,
) -> None:
    """
    Create and process a commission run.

    Args:
        commission_type: level, binary, roi, rank or booster
        period_from: ISO 8601 start of the period
        period_to: ISO 8601 end of the period
        triggered_by: Operator or "scheduler"
    """
    logger.info(f"Starting {commission_type} run for {period_from} .. {period_to}")
    try:
        run = run_async(
            _execute_async(
                commission_type,
                datetime.fromisoformat(period_from),
                datetime.fromisoformat(period_to),
                triggered_by,
            )
        )
    except MUST_RAISE as e:
        logger.error(f"{commission_type} run rejected: {e}")
        return
    _log_outcome(run)


@dramatiq.actor(max_retries=RUN_TASK_MAX_RETRIES, time_limit=RUN_TASK_TIME_LIMIT_MS)
def run_scheduled_commission(commission_type: str) -> None:
    """Run a commission type over the UTC day that just ended."""
    period_from, period_to = previous_day(utc_now())
    execute_commission_run.send(
        commission_type,
        period_from.isoformat(),
        period_to.isoformat(),
        triggered_by="scheduler",
    )


@dramatiq.actor(max_retries=RUN_TASK_MAX_RETRIES, time_limit=RUN_TASK_TIME_LIMIT_MS)
def retry_commission_run(run_id: int) -> None:
    """Re-process a failed or partially failed run."""
    logger.info(f"Retrying commission run {run_id}")
    try:
        run = run_async(_retry_async(run_id))
    except MUST_RAISE as e:
        logger.error(f"Retry of run {run_id} rejected: {e}")
        return
    _log_outcome(run)


def build_admin_service(redis_client: redis.Redis | None = None) -> CompensationAdminService:
    """Admin service bound to the worker's NullPool session factory."""
    return CompensationAdminService(
        task_session_maker,
        redis_client=redis_client,
        run_timeout=settings.run_timeout_seconds,
        run_concurrency=settings.run_concurrency,
    )


async def _execute_async(
    commission_type: str,
    period_from: datetime,
    period_to: datetime,
    triggered_by: str | None,
) -> CommissionRun:
    redis_client = get_redis_client()
    try:
        return await build_admin_service(redis_client).execute_commission_run(
            CommissionType(commission_type), period_from, period_to, triggered_by=triggered_by
        )
    finally:
        await redis_client.aclose()


async def _retry_async(run_id: int) -> CommissionRun:
    redis_client = get_redis_client()
    try:
        return await build_admin_service(redis_client).retry_commission_run(run_id)
    finally:
        await redis_client.aclose()


def _log_outcome(run: CommissionRun) -> None:
    logger.info(
        f"Commission run {run.id} ({run.commission_type}) finished: {run.status}, "
        f"{run.entries_posted} entries, total {run.total_amount}, "
        f"{run.failed_count} failed subjects"
    )
