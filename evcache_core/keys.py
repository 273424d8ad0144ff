"""EvCache Keys - Composite Key Naming.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Key formats:
    record:  {cache_prefix}:{unique}:{key}
    event:   {event_prefix}:{unique}:{event}
    lock:    {lock_prefix}:{record key}

`unique` separates deployments sharing one store.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KeySpace:
    """Builds the composite keys used in the store."""

    unique: str = ""
    cache_prefix: str = "evcache"
    event_prefix: str = "evcache-events"
    lock_prefix: str = "refreshLock"

    def record_key(self, key: str) -> str:
        """Key of the hash holding a cache record."""
        return f"{self.cache_prefix}:{self.unique}:{key}"

    def event_key(self, event: str) -> str:
        """Key of the set holding an event's bound record keys."""
        return f"{self.event_prefix}:{self.unique}:{event}"

    def lock_key(self, record_key: str) -> str:
        """Name of the refresh lock for a record key."""
        return f"{self.lock_prefix}:{record_key}"

    def strip_record_key(self, record_key: str) -> str:
        """Recover the caller's key from a record key.

        Raises:
            ValueError: If record_key is outside this key space
        """
        prefix = self.record_key("")
        if not record_key.startswith(prefix):
            raise ValueError(f"{record_key!r} is not a record key of {self!r}")
        return record_key[len(prefix):]


__all__ = ["KeySpace"]
