"""
Per-member write locks.

All writes to one member's balance (and to one member's binary legs) are
serialized through an in-process asyncio lock keyed by namespace and
member id. Locks are collected into a LockScope attached to the database
session; the scope releases them when the session's transaction ends
(commit or rollback), so a lock is held for exactly as long as the
writes it protects are uncommitted.

PostgreSQL deployments additionally take row locks (SELECT ... FOR UPDATE)
on the balance / leg rows, which covers multiple worker processes.
"""

import asyncio
import weakref

from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession

from compensation.config.settings import settings
from compensation.utils.exceptions import ConcurrencyConflict

_SCOPE_KEY = "member_lock_scope"


def balance_key(member_id: int) -> str:
    return f"balance:{member_id}"


def leg_key(member_id: int) -> str:
    return f"leg:{member_id}"


class MemberLockRegistry:
    """Registry of named asyncio locks; unused locks are garbage collected."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[int, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, key: str) -> asyncio.Lock:
        # asyncio locks belong to one event loop
        loop_key = (id(asyncio.get_running_loop()), key)
        lock = self._locks.get(loop_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[loop_key] = lock
        return lock


member_locks = MemberLockRegistry()


class LockScope:
    """
    Set of member locks held by one unit of work.

    Acquisition is reentrant per key within the scope. Locks are
    released together, in reverse acquisition order.
    """

    def __init__(self, registry: MemberLockRegistry, timeout: float) -> None:
        self.registry = registry
        self.timeout = timeout
        self._held: dict[str, asyncio.Lock] = {}

    @property
    def held_keys(self) -> list[str]:
        return list(self._held)

    async def acquire(self, key: str) -> None:
        """
        Acquire lock for key.

        Raises:
            ConcurrencyConflict: If the lock is not obtained within timeout
        """
        if key in self._held:
            return

        lock = self.registry.get(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except TimeoutError as e:
            logger.warning(
                "Member lock timeout",
                extra={"key": key, "held": self.held_keys, "timeout": self.timeout},
            )
            raise ConcurrencyConflict(f"Lock {key} not acquired within {self.timeout}s") from e
        self._held[key] = lock

    async def acquire_many(self, keys: list[str]) -> None:
        """Acquire locks in the given order."""
        for key in keys:
            await self.acquire(key)

    def release_all(self) -> None:
        for lock in reversed(list(self._held.values())):
            if lock.locked():
                lock.release()
        self._held.clear()

    def _on_transaction_end(self, session, transaction) -> None:
        # Only the outermost transaction ends the unit of work
        if transaction.parent is None:
            self.release_all()


def lock_scope(session: AsyncSession, timeout: float | None = None) -> LockScope:
    """
    Get (or create) the lock scope bound to a session.

    Args:
        session: Async database session
        timeout: Lock wait timeout, defaults to settings.lock_timeout_seconds

    Returns:
        LockScope released when the session's transaction ends
    """
    scope = session.info.get(_SCOPE_KEY)
    if scope is None:
        scope = LockScope(
            member_locks,
            timeout if timeout is not None else settings.lock_timeout_seconds,
        )
        session.info[_SCOPE_KEY] = scope
        event.listen(
            session.sync_session, "after_transaction_end", scope._on_transaction_end
        )
    return scope


def release_session_locks(session: AsyncSession) -> None:
    """Release locks of a session that never started a transaction."""
    scope = session.info.get(_SCOPE_KEY)
    if scope is not None:
        scope.release_all()
