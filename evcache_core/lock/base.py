"""EvCache Distributed Lock - Best-Effort Mutual Exclusion.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional

logger = logging.getLogger(__name__)


class LockOutcome(Enum):
    """Result of a lock acquisition attempt."""

    ACQUIRED = auto()        # Caller holds the lock
    NOT_ACQUIRED = auto()    # Lock is held elsewhere
    ERROR = auto()           # Store failure, treated as not acquired


@dataclass
class LockResult:
    """Outcome of DistributedLock.acquire.

    Attributes:
        name: Lock name
        outcome: Acquisition outcome
        handle: Implementation handle, set when acquired
        error: Exception raised during acquisition, if any
    """

    name: str
    outcome: LockOutcome
    handle: Any = None
    error: Optional[BaseException] = None

    @property
    def acquired(self) -> bool:
        """Check if the lock is held."""
        return self.outcome is LockOutcome.ACQUIRED


class DistributedLock(ABC):
    """Named lock with a TTL, shared across processes.

    Exclusion is time-bounded: once the TTL passes, another caller can
    acquire the lock even if the holder has not released it. Acquisition
    never blocks and never raises; errors surface as LockOutcome.ERROR.
    Release never raises.

    Example:
        result = await lock.acquire("refreshLock:key", ttl=10)
        if result.acquired:
            try:
                ...
            finally:
                await lock.release(result)
    """

    @abstractmethod
    async def _acquire(self, name: str, ttl: float) -> Optional[Any]:
        """Try to take the lock.

        Returns:
            Handle if acquired, None if held elsewhere
        """
        pass

    @abstractmethod
    async def _release(self, name: str, handle: Any) -> None:
        """Release a held lock."""
        pass

    async def acquire(self, name: str, ttl: float) -> LockResult:
        """Try once to acquire a lock.

        Args:
            name: Lock name
            ttl: Lock TTL in seconds

        Returns:
            LockResult describing the outcome
        """
        try:
            handle = await self._acquire(name, ttl)
        except Exception as e:
            logger.warning(f"Lock acquire error for {name}: {e}")
            return LockResult(name=name, outcome=LockOutcome.ERROR, error=e)

        if handle is None:
            logger.debug(f"Lock {name} held elsewhere")
            return LockResult(name=name, outcome=LockOutcome.NOT_ACQUIRED)

        return LockResult(name=name, outcome=LockOutcome.ACQUIRED, handle=handle)

    async def release(self, result: LockResult) -> None:
        """Release a lock obtained by acquire.

        Args:
            result: Result returned by acquire
        """
        if not result.acquired:
            return

        try:
            await self._release(result.name, result.handle)
        except Exception as e:
            # Expired or taken over; nothing left to release
            logger.warning(f"Lock release error for {result.name}: {e}")


__all__ = ["DistributedLock", "LockOutcome", "LockResult"]
