"""
Database configuration.

Async engine and session factory shared by the API process.
Workers create their own NullPool engine, see jobs/utils/database.py.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from compensation.config.settings import settings


def create_engine(url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """Create async engine for the configured database."""
    return create_async_engine(
        url or settings.database_url,
        echo=settings.database_echo if echo is None else echo,
        pool_pre_ping=True,
    )


def create_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to engine."""
    return async_sessionmaker(
        bind=engine or create_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = create_engine()
async_session_maker = create_session_maker(engine)
