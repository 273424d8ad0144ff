"""EvCache Engine - Read-Through Cache with Event Invalidation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from evcache_core.cache.decorator import cached
from evcache_core.cache.record import CacheRecord, signal_fields, value_fields
from evcache_core.events.index import EventIndex
from evcache_core.keys import KeySpace
from evcache_core.lock.base import DistributedLock
from evcache_core.protocol.serializer import SerializationError, Serializer, get_serializer
from evcache_core.store.backend import StoreAdapter
from evcache_core.store.redis import RedisConfig, RedisStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Zero-argument coroutine function producing the value to cache
Source = Callable[[], Awaitable[T]]

# Returns the current time in epoch milliseconds
Clock = Callable[[], int]

REFRESH_LOCK_TTL = 10.0
WAIT_TIMES = 10
WAIT_INTERVAL = 0.1


def epoch_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class EngineConfig:
    """Engine configuration.

    Attributes:
        unique: Deployment identifier embedded in every key
        expire_in: Record TTL in seconds, reset on every write
        refresh_lock_ttl: Refresh lock TTL in seconds
        wait_times: Polls while another caller refreshes
        wait_interval: Seconds between polls
        cache_prefix: Prefix of record keys
        event_prefix: Prefix of event binding keys
        lock_prefix: Prefix of refresh lock names
        serializer: Serializer format name
    """

    unique: str = ""
    expire_in: int = 86400
    refresh_lock_ttl: float = REFRESH_LOCK_TTL
    wait_times: int = WAIT_TIMES
    wait_interval: float = WAIT_INTERVAL
    cache_prefix: str = "evcache"
    event_prefix: str = "evcache-events"
    lock_prefix: str = "refreshLock"
    serializer: str = "json"

    def __post_init__(self):
        # EXPIRE takes whole seconds and deletes the key at 0
        if isinstance(self.expire_in, bool) or not isinstance(self.expire_in, int) or self.expire_in < 1:
            raise ValueError(f"expire_in must be a whole number of seconds >= 1, got {self.expire_in!r}")
        if self.refresh_lock_ttl <= 0:
            raise ValueError(f"refresh_lock_ttl must be positive, got {self.refresh_lock_ttl}")
        if self.wait_times < 0:
            raise ValueError(f"wait_times must not be negative, got {self.wait_times}")
        if self.wait_interval < 0:
            raise ValueError(f"wait_interval must not be negative, got {self.wait_interval}")

    def key_space(self) -> KeySpace:
        """Build the key space for this configuration."""
        return KeySpace(
            unique=self.unique,
            cache_prefix=self.cache_prefix,
            event_prefix=self.event_prefix,
            lock_prefix=self.lock_prefix,
        )


@dataclass
class EngineStats:
    """Engine statistics.

    Attributes:
        hits: Reads served from a fresh record
        misses: Reads that needed a refresh
        stale_reads: Stale values served while another caller refreshed
        refreshes: Source calls made under the refresh lock
        lock_misses: Refresh lock attempts that did not acquire
        poll_hits: Values obtained by polling another caller's refresh
        fallbacks: Source calls made without the lock
        invalidations: Staleness signals written
        decode_errors: Stored payloads that failed to decode
        started_at: When the engine was created
    """

    hits: int = 0
    misses: int = 0
    stale_reads: int = 0
    refreshes: int = 0
    lock_misses: int = 0
    poll_hits: int = 0
    fallbacks: int = 0
    invalidations: int = 0
    decode_errors: int = 0
    started_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.stale_reads = 0
        self.refreshes = 0
        self.lock_misses = 0
        self.poll_hits = 0
        self.fallbacks = 0
        self.invalidations = 0
        self.decode_errors = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_reads": self.stale_reads,
            "refreshes": self.refreshes,
            "lock_misses": self.lock_misses,
            "poll_hits": self.poll_hits,
            "fallbacks": self.fallbacks,
            "invalidations": self.invalidations,
            "decode_errors": self.decode_errors,
            "hit_rate": self.hit_rate,
        }


class CacheEngine:
    """Read-through cache over a shared store.

    Values are computed by a caller-supplied source and cached with a TTL.
    A per-key distributed lock keeps concurrent callers, in any process,
    from recomputing the same value at once; callers that lose the race
    poll for the winner's result. Firing an event marks every record bound
    to it as stale, and the next read refreshes it.

    Example:
        engine = CacheEngine(RedisStore(), EngineConfig(unique="app"))

        user = await engine.get_with_events(
            "user:1",
            lambda: load_user(1),
            ["user-updated"],
        )

        # After the user changes
        await engine.invalidate(["user-updated"])

        # Decorator
        @engine.cached(events=["user-updated"])
        async def load_user(user_id: int) -> dict:
            return await db.fetch_user(user_id)
    """

    def __init__(
        self,
        store: StoreAdapter,
        config: Optional[EngineConfig] = None,
        lock: Optional[DistributedLock] = None,
        serializer: Optional[Serializer] = None,
        event_index: Optional[EventIndex] = None,
        clock: Optional[Clock] = None,
        owns_store: bool = False,
    ):
        """Initialize engine.

        Args:
            store: Store adapter shared by all engines of a deployment
            config: Engine configuration
            lock: Refresh lock, defaults to the store's own lock
            serializer: Value serializer, defaults to config.serializer
            event_index: Event index, one per engine by default
            clock: Epoch millisecond clock
            owns_store: Close the store when the engine closes
        """
        self.config = config or EngineConfig()
        self.keys = self.config.key_space()
        self._store = store
        self._lock = lock if lock is not None else store.create_lock()
        self._serializer = serializer or get_serializer(self.config.serializer)
        self._events = event_index if event_index is not None else EventIndex(store, self.keys)
        self._clock = clock or epoch_ms
        self._owns_store = owns_store
        self._stats = EngineStats(started_at=datetime.now())

    @classmethod
    def from_redis(
        cls,
        redis_config: Optional[RedisConfig] = None,
        config: Optional[EngineConfig] = None,
        **kwargs: Any,
    ) -> "CacheEngine":
        """Create an engine owning a new Redis store.

        Args:
            redis_config: Redis connection settings
            config: Engine configuration
            **kwargs: Passed to CacheEngine

        Returns:
            CacheEngine instance
        """
        return cls(RedisStore(redis_config), config, owns_store=True, **kwargs)

    @property
    def store(self) -> StoreAdapter:
        """Store adapter."""
        return self._store

    @property
    def event_index(self) -> EventIndex:
        """Event index owned by this engine."""
        return self._events

    async def get(self, key: str, source: Source[T], force_refresh: bool = False) -> T:
        """Get a value, computing it with source when needed.

        Args:
            key: Cache key
            source: Zero-argument coroutine function producing the value
            force_refresh: Recompute even if the cached value is fresh

        Returns:
            Cached or computed value
        """
        return await self._get_generic(key, source, (), force_refresh)

    async def get_with_events(
        self,
        key: str,
        source: Source[T],
        events: Iterable[str],
    ) -> T:
        """Bind key to events, then get its value.

        The value is refreshed on the first read after any of the events
        is fired with invalidate().

        Args:
            key: Cache key
            source: Zero-argument coroutine function producing the value
            events: Event names

        Returns:
            Cached or computed value
        """
        return await self._get_generic(key, source, _event_names(events), False)

    async def invalidate(self, events: Iterable[str]) -> int:
        """Mark every record bound to events as stale.

        Nothing is recomputed here; each record refreshes on its next read.

        Args:
            events: Event names

        Returns:
            Number of staleness signals written
        """
        names = _event_names(events)
        record_keys = await self._events.resolve(names)
        if not record_keys:
            return 0

        fields = signal_fields(self._clock())
        batch = self._store.batch()
        for record_key in record_keys:
            batch.hset(record_key, fields).expire(record_key, self.config.expire_in)
        await batch.execute()

        self._stats.invalidations += len(record_keys)
        logger.debug(f"Signalled {len(record_keys)} records for events {list(names)}")
        return len(record_keys)

    async def peek(self, key: str) -> Optional[CacheRecord]:
        """Read a record without refreshing it.

        Args:
            key: Cache key

        Returns:
            CacheRecord or None
        """
        return await self._read_record(self.keys.record_key(key))

    async def _get_generic(
        self,
        key: str,
        source: Source[T],
        events: Sequence[str],
        force_refresh: bool,
    ) -> T:
        """Read-through with stampede protection.

        Args:
            key: Cache key
            source: Value producer
            events: Events to bind the key to
            force_refresh: Recompute even if fresh

        Returns:
            Cached or computed value
        """
        record_key = self.keys.record_key(key)

        if events:
            await self._events.register(record_key, events)

        record = await self._read_record(record_key)
        have_value, value = self._decode(record)

        # Without a usable value the caller has to wait for one
        must_have_value = not have_value or force_refresh
        signalled = record is not None and record.is_signalled

        if not (must_have_value or signalled):
            self._stats.hits += 1
            logger.debug(f"Cache HIT: {record_key}")
            return value

        self._stats.misses += 1
        logger.debug(f"Cache MISS: {record_key} (force={force_refresh}, stale={signalled})")

        lock = await self._lock.acquire(
            self.keys.lock_key(record_key),
            self.config.refresh_lock_ttl,
        )
        if lock.acquired:
            try:
                value = await source()
                await self._write_value(record_key, value)
                have_value = True
                self._stats.refreshes += 1
            finally:
                await self._lock.release(lock)
        else:
            self._stats.lock_misses += 1
            if must_have_value:
                polled, polled_value = await self._wait_for_refresh(record_key)
                if polled:
                    have_value, value = True, polled_value
            else:
                self._stats.stale_reads += 1
                logger.debug(f"Serving stale {record_key} while another caller refreshes")

        if not have_value:
            logger.warning(f"No value for {record_key} after waiting, calling source without lock")
            value = await source()
            await self._write_value(record_key, value)
            self._stats.fallbacks += 1

        return value

    async def _read_record(self, record_key: str) -> Optional[CacheRecord]:
        return CacheRecord.from_hash(record_key, await self._store.hgetall(record_key))

    def _decode(self, record: Optional[CacheRecord]) -> Tuple[bool, Any]:
        """Decode a record's payload.

        Returns:
            (have_value, value); undecodable payloads count as no value
        """
        if record is None or not record.has_value:
            return False, None
        try:
            return True, self._serializer.deserialize(record.val)
        except SerializationError as e:
            self._stats.decode_errors += 1
            logger.warning(f"Discarding undecodable value at {record.key}: {e}")
            return False, None

    async def _write_value(self, record_key: str, value: Any) -> None:
        payload = self._serializer.serialize(value)
        await (
            self._store.batch()
            .hset(record_key, value_fields(payload, self._clock()))
            .expire(record_key, self.config.expire_in)
            .execute()
        )

    async def _wait_for_refresh(self, record_key: str) -> Tuple[bool, Any]:
        """Poll until another caller stores a fresh value.

        Returns:
            (found, value)
        """
        for attempt in range(self.config.wait_times):
            await asyncio.sleep(self.config.wait_interval)

            record = await self._read_record(record_key)
            if record is None or record.is_stale:
                continue

            have_value, value = self._decode(record)
            if have_value:
                self._stats.poll_hits += 1
                logger.debug(f"Got {record_key} from another refresher after {attempt + 1} polls")
                return True, value

        return False, None

    def cached(
        self,
        events: Optional[Iterable[str]] = None,
        key_builder: Optional[Callable[..., str]] = None,
        key_prefix: Optional[str] = None,
        typed: bool = False,
    ) -> Callable:
        """Decorator to cache coroutine function results in this engine.

        Args:
            events: Events invalidating the cached results
            key_builder: Function to build cache key
            key_prefix: Key prefix, defaults to the function's module
            typed: Include argument types in the key

        Returns:
            Decorator function
        """
        return cached(
            self,
            events=events,
            key_builder=key_builder,
            key_prefix=key_prefix,
            typed=typed,
        )

    def get_stats(self) -> EngineStats:
        """Get engine statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats.reset()

    async def close(self) -> None:
        """Drop the event mirror and close an owned store."""
        self._events.clear()
        if self._owns_store:
            await self._store.close()
        logger.info(f"Cache engine {self.config.unique!r} closed")

    async def __aenter__(self) -> "CacheEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"CacheEngine(unique={self.config.unique!r}, store={self._store!r})"


def _event_names(events: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(events, str):
        raise TypeError("events must be an iterable of event names, not a string")
    return tuple(events)


__all__ = [
    "CacheEngine",
    "EngineConfig",
    "EngineStats",
    "Source",
    "Clock",
    "epoch_ms",
]
