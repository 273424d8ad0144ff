"""EvCache - Read-Through Cache with Event Invalidation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A read-through cache over a shared key-value store with:
- TTL-bound cache records
- Stampede protection through per-key distributed locks
- Bounded polling for callers that lose the refresh race
- Lazy, event-driven invalidation
- In-process mirror of event bindings

Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                          EvCache                          │
    ├───────────────────────────────────────────────────────────┤
    │  ┌──────────────┐   ┌──────────────┐   ┌──────────────┐   │
    │  │ CacheEngine  │──▶│  EventIndex  │   │  Serializer  │   │
    │  │ get/refresh  │   │ event → keys │   │  JSON / MP   │   │
    │  └──────┬───────┘   └──────┬───────┘   └──────────────┘   │
    │         │                  │                              │
    │  ┌──────┴───────┐   ┌──────┴───────────────────────────┐  │
    │  │ Refresh Lock │   │          Store Adapter           │  │
    │  │ Memory/Redis │   │   hash · set · expire · batch    │  │
    │  └──────────────┘   │         Memory / Redis           │  │
    │                     └──────────────────────────────────┘  │
    └───────────────────────────────────────────────────────────┘

Example Usage:
    from evcache_core import CacheEngine, EngineConfig, RedisConfig

    engine = CacheEngine.from_redis(
        RedisConfig(host="redis.local"),
        EngineConfig(unique="shop", expire_in=3600),
    )

    # Plain read-through
    price = await engine.get("price:42", lambda: load_price(42))

    # Bound to an event
    cart = await engine.get_with_events(
        "cart:7",
        lambda: load_cart(7),
        ["prices-changed"],
    )

    # Every record bound to the event refreshes on its next read
    await engine.invalidate(["prices-changed"])

    await engine.close()
"""

__version__ = "0.1.0"
__author__ = "BlackRoad OS"

from evcache_core.keys import KeySpace
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
from evcache_core.events.index import EventIndex
from evcache_core.store.backend import (
    Batch,
    StoreAdapter,
    StoreError,
    StoreStats,
)
from evcache_core.store.memory import MemoryStore, MemoryStoreConfig
from evcache_core.store.redis import RedisStore, RedisConfig
from evcache_core.lock.base import (
    DistributedLock,
    LockOutcome,
    LockResult,
)
from evcache_core.lock.memory import MemoryLock
from evcache_core.lock.redis import RedisLock
from evcache_core.protocol.serializer import (
    Serializer,
    SerializationError,
    JSONSerializer,
    MsgPackSerializer,
)

__all__ = [
    # Cache
    "CacheEngine",
    "EngineConfig",
    "EngineStats",
    "CacheRecord",
    "RecordState",
    "KeySpace",
    "cached",
    # Events
    "EventIndex",
    # Storage
    "Batch",
    "StoreAdapter",
    "StoreError",
    "StoreStats",
    "MemoryStore",
    "MemoryStoreConfig",
    "RedisStore",
    "RedisConfig",
    # Locks
    "DistributedLock",
    "LockOutcome",
    "LockResult",
    "MemoryLock",
    "RedisLock",
    # Protocol
    "Serializer",
    "SerializationError",
    "JSONSerializer",
    "MsgPackSerializer",
]
