"""Cache module - Read-through engine and cache records.

This module provides the cache engine, its record model and the
caching decorator.
"""

from evcache_core.cache.record import (
    CacheRecord,
    RecordState,
)
from evcache_core.cache.engine import (
    CacheEngine,
    EngineConfig,
    EngineStats,
)
from evcache_core.cache.decorator import cached

__all__ = [
    "CacheRecord",
    "RecordState",
    "CacheEngine",
    "EngineConfig",
    "EngineStats",
    "cached",
]
