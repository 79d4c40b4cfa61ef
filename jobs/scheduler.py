"""
Commission scheduler.

APScheduler process that enqueues the periodic commission work on the
Dramatiq broker; the actors execute it in the worker processes.

Schedule (UTC):
    00:05  ROI accrual run for the previous day
    00:15  Binary matching cycle for the previous day
    00:30  Booster window evaluation
    01:00  Level commission run for the previous day
    02:00  Rank sweep
    */10m  Stale run watchdog
    03:00  Balance audit
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from compensation.config.settings import settings
from compensation.models.enums import CommissionType
from compensation.utils.logging import setup_logging
from jobs.health import start_health_server, stop_health_server
from jobs.tasks import audit_balances, fail_stale_runs, run_scheduled_commission
from jobs.utils.database import task_session_maker


DAILY_RUNS: dict[CommissionType, tuple[int, int]] = {
    CommissionType.ROI: (0, 5),
    CommissionType.BINARY: (0, 15),
    CommissionType.BOOSTER: (0, 30),
    CommissionType.LEVEL: (1, 0),
    CommissionType.RANK: (2, 0),
}


def create_scheduler() -> AsyncIOScheduler:
    """Scheduler with every periodic job registered (not started)."""
    scheduler = AsyncIOScheduler(timezone="UTC")

    for commission_type, (hour, minute) in DAILY_RUNS.items():
        scheduler.add_job(
            run_scheduled_commission.send,
            CronTrigger(hour=hour, minute=minute, timezone="UTC"),
            args=[commission_type.value],
            id=f"daily_{commission_type.value}_run",
            name=f"Daily {commission_type.value} commission run",
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )

    scheduler.add_job(
        fail_stale_runs.send,
        IntervalTrigger(minutes=10),
        id="stale_run_watchdog",
        name="Stale run watchdog",
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    scheduler.add_job(
        audit_balances.send,
        CronTrigger(hour=3, minute=0, timezone="UTC"),
        id="balance_audit",
        name="Balance audit",
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    return scheduler


async def main() -> None:
    """Run the scheduler until SIGINT/SIGTERM."""
    setup_logging("scheduler")

    scheduler = create_scheduler()
    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    runner = await start_health_server(
        scheduler, task_session_maker, port=settings.health_check_port
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
