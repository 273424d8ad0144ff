"""Store module - Key-value store adapters."""

from evcache_core.store.backend import (
    Batch,
    StoreAdapter,
    StoreError,
    StoreStats,
)
from evcache_core.store.memory import MemoryStore, MemoryStoreConfig
from evcache_core.store.redis import RedisStore, RedisConfig

__all__ = [
    "Batch",
    "StoreAdapter",
    "StoreError",
    "StoreStats",
    "MemoryStore",
    "MemoryStoreConfig",
    "RedisStore",
    "RedisConfig",
]
