"""Lock module - Distributed refresh locks."""

from evcache_core.lock.base import DistributedLock, LockOutcome, LockResult
from evcache_core.lock.memory import MemoryLock
from evcache_core.lock.redis import RedisLock

__all__ = [
    "DistributedLock",
    "LockOutcome",
    "LockResult",
    "MemoryLock",
    "RedisLock",
]
