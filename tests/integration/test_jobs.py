"""Tests for the scheduler, broker retry policy and health endpoints."""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from compensation.utils.exceptions import ConcurrencyConflict, ValidationError
from jobs.broker import should_retry
from jobs.health import create_health_app
from jobs.scheduler import DAILY_RUNS, create_scheduler


class TestScheduler:
    """Test periodic job registration."""

    def test_every_commission_type_scheduled(self):
        scheduler = create_scheduler()

        job_ids = {job.id for job in scheduler.get_jobs()}

        assert job_ids == {
            *(f"daily_{commission_type.value}_run" for commission_type in DAILY_RUNS),
            "stale_run_watchdog",
            "balance_audit",
        }


class TestRetryPolicy:
    """Test which failures the broker redelivers."""

    def test_conflicts_are_retried(self):
        assert should_retry(0, ConcurrencyConflict("busy"))

    def test_validation_errors_are_not_retried(self):
        assert not should_retry(0, ValidationError("bad period"))


@pytest_asyncio.fixture
async def health_client(session_maker):
    # Not started: reports unhealthy while the database answers
    scheduler = AsyncIOScheduler(timezone="UTC")
    async with TestClient(TestServer(create_health_app(scheduler, session_maker))) as client:
        yield client


class TestHealth:
    """Test health endpoints."""

    @pytest.mark.asyncio
    async def test_stopped_scheduler_is_unhealthy(self, health_client):
        response = await health_client.get("/health")
        body = await response.json()

        assert response.status == 503
        assert body["scheduler_running"] is False
        assert body["database"] == "ok"
        assert body["jobs_count"] == 0

    @pytest.mark.asyncio
    async def test_not_ready(self, health_client):
        response = await health_client.get("/readiness")

        assert response.status == 503
        assert (await response.json())["ready"] is False

    @pytest.mark.asyncio
    async def test_liveness(self, health_client):
        response = await health_client.get("/liveness")

        assert response.status == 200
        assert (await response.json())["alive"] is True
