"""Shared fixtures for EvCache tests.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import asyncio

import pytest

from evcache_core.cache.engine import CacheEngine, EngineConfig
from evcache_core.store.memory import MemoryStore


class FakeClock:
    """Epoch millisecond clock that advances by 1ms on every read."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


class FakeTimer:
    """Monotonic timer advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class CountingSource:
    """Data source returning successive values and counting calls."""

    def __init__(self, *values, delay: float = 0.0):
        self.values = list(values)
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(self.calls, len(self.values)) - 1
        return self.values[index]


@pytest.fixture
def store() -> MemoryStore:
    """Shared in-memory store."""
    return MemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    """Strictly increasing epoch ms clock."""
    return FakeClock()


@pytest.fixture
def config() -> EngineConfig:
    """Engine config with short polling."""
    return EngineConfig(unique="test", expire_in=3600, wait_times=5, wait_interval=0.01)


@pytest.fixture
def engine(store: MemoryStore, config: EngineConfig, clock: FakeClock) -> CacheEngine:
    """Engine over the shared store."""
    return CacheEngine(store, config, clock=clock)
