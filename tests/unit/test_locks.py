"""
Unit tests for the in-process run lock.

Tests cover:
- Contention timeout
- Released locks are not kept alive by the registry
"""

import gc

import pytest

from compensation.utils.distributed_lock import DistributedLock, _local_locks
from compensation.utils.exceptions import ConcurrencyConflict


def registered_keys() -> set[str]:
    return {key for _, key in _local_locks._locks.keys()}


class TestLocalRunLock:
    """Test the lock used when no Redis client is configured."""

    @pytest.mark.asyncio
    async def test_held_lock_times_out(self):
        lock = DistributedLock()

        async with lock.lock("commission_run_held"):
            with pytest.raises(ConcurrencyConflict):
                async with lock.lock("commission_run_held", blocking_timeout=0.01):
                    pass

    @pytest.mark.asyncio
    async def test_released_lock_is_dropped(self):
        """Every run id gets its own lock; finished runs leave nothing behind."""
        lock = DistributedLock()

        for run_id in range(20):
            async with lock.lock(f"commission_run_{run_id}"):
                assert f"commission_run_{run_id}" in registered_keys()
        gc.collect()

        assert not {f"commission_run_{run_id}" for run_id in range(20)} & registered_keys()
