"""Tests for distributed locks.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockNotOwnedError

from conftest import FakeTimer
from evcache_core.lock.base import LockOutcome, LockResult
from evcache_core.lock.memory import MemoryLock
from evcache_core.lock.redis import RedisLock
from evcache_core.store.memory import MemoryStore
from evcache_core.store.redis import RedisStore


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def lock(timer) -> MemoryLock:
    return MemoryStore(timer=timer).create_lock()


class TestMemoryLock:
    """Tests for MemoryLock."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, lock):
        """A free lock is acquired and freed."""
        result = await lock.acquire("refreshLock:k", ttl=10)

        assert result.acquired
        assert result.outcome is LockOutcome.ACQUIRED
        assert lock.is_locked("refreshLock:k")

        await lock.release(result)
        assert not lock.is_locked("refreshLock:k")

    @pytest.mark.asyncio
    async def test_contention(self, lock):
        """A held lock is not acquired twice."""
        first = await lock.acquire("refreshLock:k", ttl=10)
        second = await lock.acquire("refreshLock:k", ttl=10)

        assert first.acquired
        assert second.outcome is LockOutcome.NOT_ACQUIRED
        assert second.handle is None

    @pytest.mark.asyncio
    async def test_names_are_independent(self, lock):
        """Locks on different keys do not interact."""
        assert (await lock.acquire("refreshLock:a", ttl=10)).acquired
        assert (await lock.acquire("refreshLock:b", ttl=10)).acquired

    @pytest.mark.asyncio
    async def test_expiry(self, lock, timer):
        """An expired lease can be taken over."""
        await lock.acquire("refreshLock:k", ttl=10)

        timer.advance(10)

        assert not lock.is_locked("refreshLock:k")
        assert (await lock.acquire("refreshLock:k", ttl=10)).acquired

    @pytest.mark.asyncio
    async def test_stale_holder_cannot_release(self, lock, timer):
        """Releasing after a takeover leaves the new lease alone."""
        stale = await lock.acquire("refreshLock:k", ttl=10)
        timer.advance(11)
        current = await lock.acquire("refreshLock:k", ttl=10)

        await lock.release(stale)

        assert current.acquired
        assert lock.is_locked("refreshLock:k")

    @pytest.mark.asyncio
    async def test_release_not_acquired_is_noop(self, lock):
        """Releasing a failed acquisition does nothing."""
        held = await lock.acquire("refreshLock:k", ttl=10)

        await lock.release(LockResult(name="refreshLock:k", outcome=LockOutcome.NOT_ACQUIRED))

        assert held.acquired
        assert lock.is_locked("refreshLock:k")


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create mock Redis client with a lock factory."""
    handle = MagicMock()
    handle.acquire = AsyncMock(return_value=True)
    handle.release = AsyncMock()

    mock = MagicMock()
    mock.lock.return_value = handle
    return mock


class TestRedisLock:
    """Tests for RedisLock with a mocked client."""

    @pytest.mark.asyncio
    async def test_acquire(self, mock_redis):
        """Acquisition makes one non-blocking attempt."""
        lock = RedisLock(RedisStore(client=mock_redis))

        result = await lock.acquire("refreshLock:k", ttl=10)

        assert result.acquired
        assert result.handle is mock_redis.lock.return_value
        mock_redis.lock.assert_called_once_with("refreshLock:k", timeout=10, blocking=False)

    @pytest.mark.asyncio
    async def test_held_elsewhere(self, mock_redis):
        """A refused SET NX is reported as not acquired."""
        mock_redis.lock.return_value.acquire.return_value = False
        lock = RedisLock(RedisStore(client=mock_redis))

        result = await lock.acquire("refreshLock:k", ttl=10)

        assert result.outcome is LockOutcome.NOT_ACQUIRED

    @pytest.mark.asyncio
    async def test_release(self, mock_redis):
        """Release goes through the lock handle."""
        lock = RedisLock(RedisStore(client=mock_redis))
        result = await lock.acquire("refreshLock:k", ttl=10)

        await lock.release(result)

        mock_redis.lock.return_value.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_after_expiry(self, mock_redis):
        """Losing ownership before release is not an error."""
        mock_redis.lock.return_value.release.side_effect = LockNotOwnedError("expired")
        lock = RedisLock(RedisStore(client=mock_redis))
        result = await lock.acquire("refreshLock:k", ttl=10)

        await lock.release(result)

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_redis):
        """Store failures surface as an ERROR outcome."""
        error = RedisConnectionError("refused")
        mock_redis.lock.return_value.acquire.side_effect = error
        lock = RedisLock(RedisStore(client=mock_redis))

        result = await lock.acquire("refreshLock:k", ttl=10)

        assert result.outcome is LockOutcome.ERROR
        assert not result.acquired
        assert result.error is error


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
