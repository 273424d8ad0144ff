"""EvCache Memory Store - In-Process Store Adapter.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple, Union

from evcache_core.lock.memory import MemoryLock
from evcache_core.store.backend import Command, StoreAdapter, StoreError

logger = logging.getLogger(__name__)

Value = Union[Dict[str, str], Set[str]]


@dataclass
class MemoryStoreConfig:
    """Memory store configuration.

    Attributes:
        latency: Simulated round-trip time in seconds
    """

    latency: float = 0.0


class MemoryStore(StoreAdapter):
    """In-memory store adapter.

    Keeps hashes, sets, TTL deadlines and lock leases in dictionaries.
    Several engines sharing one MemoryStore behave like several processes
    sharing one Redis, within a single event loop.

    Features:
    - Lazy TTL expiry
    - All-or-nothing batches
    - Simulated latency at every round trip

    Example:
        store = MemoryStore()
        await store.batch().hset("k", {"val": "1"}).expire("k", 60).execute()
        record = await store.hgetall("k")
    """

    def __init__(
        self,
        config: Optional[MemoryStoreConfig] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize memory store.

        Args:
            config: Store configuration
            timer: Monotonic clock in seconds, used for TTLs
        """
        super().__init__()
        self.config = config or MemoryStoreConfig()
        self._timer = timer
        self._data: Dict[str, Value] = {}
        self._expires: Dict[str, float] = {}
        # lock name -> (token, deadline)
        self._leases: Dict[str, Tuple[str, float]] = {}

    async def _round_trip(self) -> None:
        await asyncio.sleep(self.config.latency)

    def _purge(self, key: str) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and self._timer() >= deadline:
            self._data.pop(key, None)
            self._expires.pop(key, None)

    def _lookup(self, key: str, kind: type) -> Optional[Value]:
        self._purge(key)
        value = self._data.get(key)
        if value is not None and not isinstance(value, kind):
            raise StoreError(f"WRONGTYPE operation against key {key}")
        return value

    async def hgetall(self, key: str) -> Dict[str, str]:
        """Read all fields of a hash."""
        await self._round_trip()
        self._stats.reads += 1
        value = self._lookup(key, dict)
        return dict(value) if value else {}

    async def smembers(self, key: str) -> Set[str]:
        """Read all members of a set."""
        await self._round_trip()
        self._stats.reads += 1
        value = self._lookup(key, set)
        return set(value) if value else set()

    async def execute_batch(self, commands: List[Command]) -> List[Any]:
        """Apply commands atomically.

        Types are checked for every command before anything is applied, so a
        failing batch leaves the store untouched.
        """
        self._check_commands(commands)
        await self._round_trip()

        for name, args in commands:
            if name == "hset":
                self._lookup(args[0], dict)
            elif name == "sadd":
                self._lookup(args[0], set)

        results = [self._apply(name, args) for name, args in commands]
        self._stats.batches += 1
        self._stats.writes += len(commands)
        return results

    def _apply(self, name: str, args: Tuple[Any, ...]) -> Any:
        if name == "hset":
            key, mapping = args
            return self._hset(key, mapping)
        if name == "sadd":
            key, *members = args
            return self._sadd(key, members)
        key, seconds = args
        return self._expire(key, seconds)

    def _hset(self, key: str, mapping: Mapping[str, str]) -> int:
        value = self._data.setdefault(key, {})
        added = sum(1 for field in mapping if field not in value)
        value.update({field: str(v) for field, v in mapping.items()})
        return added

    def _sadd(self, key: str, members: List[str]) -> int:
        value = self._data.setdefault(key, set())
        before = len(value)
        value.update(members)
        return len(value) - before

    def _expire(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self._data:
            return False
        if seconds <= 0:
            self._data.pop(key, None)
            self._expires.pop(key, None)
        else:
            self._expires[key] = self._timer() + seconds
        return True

    def ttl(self, key: str) -> Optional[float]:
        """Get remaining TTL in seconds, None if the key has none or is gone."""
        self._purge(key)
        deadline = self._expires.get(key)
        if key not in self._data or deadline is None:
            return None
        return max(0.0, deadline - self._timer())

    def keys(self) -> List[str]:
        """Get all live keys."""
        for key in list(self._data):
            self._purge(key)
        return list(self._data)

    def create_lock(self) -> MemoryLock:
        """Create a lock backed by this store's lease table."""
        return MemoryLock(self)

    async def close(self) -> None:
        """Drop all data."""
        self._data.clear()
        self._expires.clear()
        self._leases.clear()

    def __repr__(self) -> str:
        return f"MemoryStore(keys={len(self._data)})"


__all__ = ["MemoryStore", "MemoryStoreConfig"]
