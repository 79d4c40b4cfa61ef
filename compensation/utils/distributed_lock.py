"""
Distributed lock.

Prevents two workers from executing the same commission run at the same
time. Uses Redis locks when a client is given and falls back to an
in-process asyncio lock otherwise (single-process deployments, tests).
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError

from compensation.config.operational_constants import (
    RUN_LOCK_BLOCKING_TIMEOUT_SECONDS,
    RUN_LOCK_TIMEOUT_SECONDS,
)
from compensation.utils.exceptions import ConcurrencyConflict
from compensation.utils.member_locks import MemberLockRegistry

# Weakly held: a run's lock disappears once nobody waits on it
_local_locks = MemberLockRegistry()


class DistributedLock:
    """
    Named lock shared by all workers.

    Example:
        lock = DistributedLock(redis_client=redis_client)
        async with lock.lock("commission_run_42"):
            ...
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self.redis_client = redis_client

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        timeout: int = RUN_LOCK_TIMEOUT_SECONDS,
        blocking_timeout: float = RUN_LOCK_BLOCKING_TIMEOUT_SECONDS,
    ) -> AsyncIterator[None]:
        """
        Hold the named lock for the duration of the block.

        Args:
            key: Lock name
            timeout: Expiry of the Redis key (seconds)
            blocking_timeout: How long to wait for the lock

        Raises:
            ConcurrencyConflict: If another holder keeps the lock past blocking_timeout
        """
        if self.redis_client is None:
            async with self._local_lock(key, blocking_timeout):
                yield
            return

        redis_lock = self.redis_client.lock(
            f"lock:{key}", timeout=timeout, blocking_timeout=blocking_timeout
        )
        acquired = await redis_lock.acquire()
        if not acquired:
            raise ConcurrencyConflict(f"Lock {key} is held by another worker")

        logger.debug(f"Acquired distributed lock {key}")
        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except LockError:
                # Expired while held; the next holder already owns it
                logger.warning(f"Distributed lock {key} expired before release")

    @asynccontextmanager
    async def _local_lock(self, key: str, blocking_timeout: float) -> AsyncIterator[None]:
        lock = _local_locks.get(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=blocking_timeout)
        except TimeoutError as e:
            raise ConcurrencyConflict(f"Lock {key} is held by another task") from e
        try:
            yield
        finally:
            lock.release()
