"""EvCache Store Adapter - Abstract Key-Value Store Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set, Tuple

if TYPE_CHECKING:
    from evcache_core.lock.base import DistributedLock

logger = logging.getLogger(__name__)

# (command, args) as queued by a Batch
Command = Tuple[str, Tuple[Any, ...]]

BATCH_COMMANDS = ("hset", "expire", "sadd")


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


@dataclass
class StoreStats:
    """Store adapter statistics.

    Attributes:
        reads: Number of read round trips
        writes: Number of single-command writes
        batches: Number of executed batches
        errors: Number of errors
    """

    reads: int = 0
    writes: int = 0
    batches: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


class Batch:
    """Commands queued for one atomic execution.

    Example:
        await store.batch().hset(key, {"val": "1"}).expire(key, 60).execute()
    """

    def __init__(self, store: "StoreAdapter"):
        self._store = store
        self._commands: List[Command] = []

    def hset(self, key: str, mapping: Mapping[str, str]) -> "Batch":
        """Queue setting fields of a hash."""
        self._commands.append(("hset", (key, dict(mapping))))
        return self

    def expire(self, key: str, seconds: int) -> "Batch":
        """Queue a TTL reset."""
        self._commands.append(("expire", (key, int(seconds))))
        return self

    def sadd(self, key: str, *members: str) -> "Batch":
        """Queue adding members to a set."""
        self._commands.append(("sadd", (key, *members)))
        return self

    @property
    def commands(self) -> List[Command]:
        """Queued commands."""
        return list(self._commands)

    async def execute(self) -> List[Any]:
        """Execute all queued commands atomically.

        Returns:
            One result per command
        """
        if not self._commands:
            return []
        commands, self._commands = self._commands, []
        return await self._store.execute_batch(commands)

    def __len__(self) -> int:
        return len(self._commands)


class StoreAdapter(ABC):
    """Abstract adapter over a shared key-value store.

    Implementations provide:
    - MemoryStore: In-process store, one event loop
    - RedisStore: Redis backend shared across processes

    Every command is a suspension point. Multi-field mutations go through
    batch(), which the store applies atomically.
    """

    def __init__(self):
        self._stats = StoreStats()

    @abstractmethod
    async def hgetall(self, key: str) -> Dict[str, str]:
        """Read all fields of a hash.

        Args:
            key: Hash key

        Returns:
            Field mapping, empty if the key does not exist
        """
        pass

    @abstractmethod
    async def smembers(self, key: str) -> Set[str]:
        """Read all members of a set.

        Args:
            key: Set key

        Returns:
            Members, empty if the key does not exist
        """
        pass

    @abstractmethod
    async def execute_batch(self, commands: List[Command]) -> List[Any]:
        """Execute commands as one atomic unit.

        Args:
            commands: (command, args) pairs, command in BATCH_COMMANDS

        Returns:
            One result per command
        """
        pass

    @abstractmethod
    def create_lock(self) -> "DistributedLock":
        """Create a distributed lock bound to this store."""
        pass

    def batch(self) -> Batch:
        """Start a new batch."""
        return Batch(self)

    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        """Set fields of a hash.

        Returns:
            Number of fields added
        """
        (result,) = await self.batch().hset(key, mapping).execute()
        return result

    async def expire(self, key: str, seconds: int) -> bool:
        """Set a key's TTL.

        Returns:
            True if the key exists
        """
        (result,) = await self.batch().expire(key, seconds).execute()
        return bool(result)

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set.

        Returns:
            Number of members added
        """
        (result,) = await self.batch().sadd(key, *members).execute()
        return result

    async def close(self) -> None:
        """Release store resources."""

    def get_stats(self) -> StoreStats:
        """Get store statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = StoreStats()

    @staticmethod
    def _check_commands(commands: List[Command]) -> None:
        for name, _ in commands:
            if name not in BATCH_COMMANDS:
                raise StoreError(f"Unsupported batch command: {name}")


__all__ = ["StoreAdapter", "StoreError", "StoreStats", "Batch", "Command"]
