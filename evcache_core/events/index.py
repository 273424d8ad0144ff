"""EvCache Event Index - Event to Cache Key Bindings.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Each event owns a store set whose members are the record keys that must
be marked stale when the event fires. Lookups are mirrored in process so
repeated registrations and resolutions do not hit the store again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from evcache_core.keys import KeySpace
from evcache_core.store.backend import Batch, StoreAdapter, StoreError

logger = logging.getLogger(__name__)


@dataclass
class MirrorEntry:
    """In-process view of one event's bindings.

    Attributes:
        members: Record keys known to be bound to the event
        hydrated: Whether the store's set has been loaded once
    """

    members: Set[str] = field(default_factory=set)
    hydrated: bool = False


class EventIndex:
    """Maps event names to the record keys bound to them.

    Bindings only grow. The mirror is private to this instance and is
    rebuilt lazily after clear() or a process restart.

    Example:
        index = EventIndex(store, KeySpace(unique="app"))
        await index.register("evcache:app:user:1", ["user-updated"])
        keys = await index.resolve(["user-updated"])
    """

    def __init__(self, store: StoreAdapter, keys: Optional[KeySpace] = None):
        """Initialize event index.

        Args:
            store: Store holding the binding sets
            keys: Key naming
        """
        self._store = store
        self.keys = keys or KeySpace()
        self._mirror: Dict[str, MirrorEntry] = {}
        # (event, record key) -> write in progress
        self._inflight: Dict[Tuple[str, str], "asyncio.Future[None]"] = {}

    def _entry(self, event: str) -> MirrorEntry:
        entry = self._mirror.get(event)
        if entry is None:
            entry = self._mirror[event] = MirrorEntry()
        return entry

    async def register(self, record_key: str, events: Iterable[str]) -> int:
        """Bind a record key to events.

        Pairs already stored by this process are skipped; the rest are
        written in one atomic batch. A pair whose write is still in flight
        from another task is awaited, so this call only returns once every
        binding is in the store, and fails if that write fails.

        Args:
            record_key: Composite record key
            events: Event names

        Returns:
            Number of bindings written by this call
        """
        batch = self._store.batch()
        pending: List[str] = []
        waiting: List["asyncio.Future[None]"] = []

        for event in events:
            if record_key in self._entry(event).members or event in pending:
                continue
            inflight = self._inflight.get((event, record_key))
            if inflight is not None:
                waiting.append(inflight)
                continue
            pending.append(event)
            batch.sadd(self.keys.event_key(event), record_key)

        if pending:
            await self._write(record_key, pending, batch)

        for inflight in waiting:
            await asyncio.shield(inflight)

        return len(pending)

    async def _write(self, record_key: str, events: List[str], batch: Batch) -> None:
        done: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
        for event in events:
            self._inflight[(event, record_key)] = done

        try:
            await batch.execute()
        except asyncio.CancelledError:
            self._fail(done, StoreError(f"Binding write for {record_key} was cancelled"))
            raise
        except Exception as e:
            self._fail(done, e)
            raise
        else:
            for event in events:
                self._entry(event).members.add(record_key)
            done.set_result(None)
        finally:
            for event in events:
                self._inflight.pop((event, record_key), None)

        logger.debug(f"Bound {record_key} to {events}")

    @staticmethod
    def _fail(done: "asyncio.Future[None]", error: BaseException) -> None:
        done.set_exception(error)
        # Waiters re-raise it; retrieving it here keeps the loop from logging it
        done.exception()

    async def resolve(self, events: Iterable[str]) -> List[str]:
        """Get the record keys bound to events.

        Keys bound to several of the requested events are returned once per
        event; callers that need unique keys dedupe themselves.

        Args:
            events: Event names

        Returns:
            Concatenated record keys, in event order
        """
        resolved: List[str] = []

        for event in events:
            entry = self._mirror.get(event)
            if entry is not None and entry.hydrated:
                resolved.extend(entry.members)
                continue

            members = await self._store.smembers(self.keys.event_key(event))
            entry = self._entry(event)
            entry.members.update(members)
            entry.hydrated = True
            resolved.extend(members)
            logger.debug(f"Loaded {len(members)} bindings for event {event}")

        return resolved

    def is_hydrated(self, event: str) -> bool:
        """Check if an event's bindings were loaded from the store."""
        entry = self._mirror.get(event)
        return entry is not None and entry.hydrated

    def known_members(self, event: str) -> Set[str]:
        """Get the record keys this process knows for an event."""
        entry = self._mirror.get(event)
        return set(entry.members) if entry else set()

    def clear(self) -> None:
        """Drop the in-process mirror."""
        self._mirror.clear()

    def __repr__(self) -> str:
        return f"EventIndex(events={len(self._mirror)})"


__all__ = ["EventIndex", "MirrorEntry"]
