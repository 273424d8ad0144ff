"""EvCache Redis Lock - Redis-Backed Distributed Lock.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from redis.asyncio.lock import Lock

from evcache_core.lock.base import DistributedLock

if TYPE_CHECKING:
    from evcache_core.store.redis import RedisStore

logger = logging.getLogger(__name__)


class RedisLock(DistributedLock):
    """Single-instance Redis lock (SET NX PX with a random token).

    Acquisition makes one attempt and never waits. Release runs a
    compare-and-delete script, so a holder whose lease expired cannot
    free a lock someone else took over.
    """

    def __init__(self, store: "RedisStore"):
        self._store = store

    async def _acquire(self, name: str, ttl: float) -> Optional[Lock]:
        lock = self._store.client.lock(name, timeout=ttl, blocking=False)
        if await lock.acquire():
            return lock
        return None

    async def _release(self, name: str, handle: Lock) -> None:
        await handle.release()


__all__ = ["RedisLock"]
