"""
Base service class.

Provides common functionality for all service classes including session management,
logging, result containers and helper decorators.
"""

import functools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.utils.exceptions import ConcurrencyConflict, InfrastructureError


# Type variable for generic decorator return types
T = TypeVar("T")


@dataclass
class BatchResult:
    """
    Outcome of a batch operation.

    A batch never fails as a whole: every id ends up either in
    `succeeded` or in `failed` together with its reason.
    """

    succeeded: list[int] = field(default_factory=list)
    failed: list[tuple[int, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": [{"id": item_id, "reason": reason} for item_id, reason in self.failed],
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


class BaseService:
    """
    Base service class.

    Provides common functionality for all service classes:
    - Session management
    - Logging with bound service context
    - Transaction helpers
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """
        Commit current transaction.

        Raises:
            ConcurrencyConflict: If a unique constraint lost a race
            InfrastructureError: If the database is unavailable
        """
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConcurrencyConflict(f"Concurrent write detected: {e.orig}") from e
        except OperationalError as e:
            await self.session.rollback()
            raise InfrastructureError(f"Database unavailable: {e.orig}") from e

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()

    async def flush(self) -> None:
        """
        Flush pending changes, mapping unique violations to conflicts.

        Raises:
            ConcurrencyConflict: If a unique constraint lost a race
        """
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConcurrencyConflict(f"Concurrent write detected: {e.orig}") from e


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to wrap method in transaction with automatic commit/rollback.

    Commits on success, rolls back on exception.

    Usage:
        @transaction
        async def my_service_method(self, ...):
            # Your code here
            pass

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """

    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
            return result
        except Exception as e:
            await self.rollback()
            self.logger.warning(
                f"Transaction rolled back in {func.__name__}: {type(e).__name__}: {e}",
                extra={"function": func.__name__},
            )
            raise

    return wrapper
