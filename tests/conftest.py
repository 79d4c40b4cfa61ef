"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests: SQLite instead of PostgreSQL, no log file
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOCK_TIMEOUT_SECONDS", "2")
os.environ.setdefault("MAX_CONFLICT_RETRIES", "2")
os.environ.setdefault("RETRY_BASE_DELAY_SECONDS", "0")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from compensation.models import Base
from compensation.services.admin_service import CompensationAdminService
from tests.helpers import settings_document


@pytest_asyncio.fixture
async def session_maker(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """
    Session factory over a fresh SQLite file database.

    A file (not :memory:) database lets every session of a run see the
    same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'compensation.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncIterator[AsyncSession]:
    """Single session for service-level tests."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def admin(session_maker) -> CompensationAdminService:
    """Admin service processing run subjects one at a time."""
    return CompensationAdminService(session_maker, run_concurrency=1, run_timeout=60)


@pytest.fixture
def test_settings() -> dict:
    return settings_document()
