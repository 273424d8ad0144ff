"""EvCache Memory Lock - Lease Table Lock for MemoryStore.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Optional

from evcache_core.lock.base import DistributedLock

if TYPE_CHECKING:
    from evcache_core.store.memory import MemoryStore

logger = logging.getLogger(__name__)


class MemoryLock(DistributedLock):
    """Lock whose leases live in a MemoryStore.

    Each acquisition gets a random token; release only deletes a lease that
    still carries that token, so an expired holder cannot free a lock taken
    over by someone else.
    """

    def __init__(self, store: "MemoryStore"):
        self._store = store

    async def _acquire(self, name: str, ttl: float) -> Optional[str]:
        store = self._store
        await store._round_trip()

        lease = store._leases.get(name)
        now = store._timer()
        if lease is not None and lease[1] > now:
            return None

        token = uuid.uuid4().hex
        store._leases[name] = (token, now + ttl)
        return token

    async def _release(self, name: str, handle: str) -> None:
        store = self._store
        await store._round_trip()

        lease = store._leases.get(name)
        if lease is None or lease[0] != handle:
            logger.debug(f"Lock {name} no longer owned, skipping release")
            return
        del store._leases[name]

    def is_locked(self, name: str) -> bool:
        """Check if a live lease exists for name."""
        lease = self._store._leases.get(name)
        return lease is not None and lease[1] > self._store._timer()


__all__ = ["MemoryLock"]
