"""
Health check server for the commission scheduler.

Reports scheduler state and database reachability to the orchestrator
running the worker tier.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


SCHEDULER = web.AppKey("scheduler", AsyncIOScheduler)
SESSION_MAKER = web.AppKey("session_maker", async_sessionmaker)


async def _database_ok(session_maker: async_sessionmaker[AsyncSession]) -> bool:
    try:
        async with session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with scheduler jobs and database status
    """
    scheduler = request.app[SCHEDULER]
    database_ok = await _database_ok(request.app[SESSION_MAKER])
    jobs = scheduler.get_jobs()
    healthy = scheduler.running and database_ok

    return web.json_response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "scheduler_running": scheduler.running,
            "database": "ok" if database_ok else "unavailable",
            "jobs_count": len(jobs),
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                }
                for job in jobs
            ],
        },
        status=200 if healthy else 503,
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """Ready when the scheduler runs and the database answers."""
    ready = request.app[SCHEDULER].running and await _database_ok(request.app[SESSION_MAKER])
    return web.json_response(
        {"status": "ready" if ready else "not_ready", "ready": ready},
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """Process is alive."""
    return web.json_response({"status": "alive", "alive": True})


def create_health_app(
    scheduler: AsyncIOScheduler, session_maker: async_sessionmaker[AsyncSession]
) -> web.Application:
    """Health application bound to a scheduler and a database."""
    app = web.Application()
    app[SCHEDULER] = scheduler
    app[SESSION_MAKER] = session_maker
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    scheduler: AsyncIOScheduler,
    session_maker: async_sessionmaker[AsyncSession],
    host: str = "0.0.0.0",
    port: int = 8081,
) -> web.AppRunner:
    """
    Start health check server.

    Returns:
        AppRunner for cleanup
    """
    runner = web.AppRunner(create_health_app(scheduler, session_maker))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop health check server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Health check server stopped")
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
