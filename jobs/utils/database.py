"""Database setup shared by worker tasks."""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from compensation.config.settings import settings


def create_task_engine() -> AsyncEngine:
    """Engine for worker tasks; NullPool so no connection outlives its event loop."""
    return create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
    )


def create_task_session_maker(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Session factory for worker tasks."""
    if engine is None:
        engine = create_task_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


task_engine = create_task_engine()
task_session_maker = create_task_session_maker(task_engine)
