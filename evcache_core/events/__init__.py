"""Events module - Event bindings for lazy invalidation."""

from evcache_core.events.index import EventIndex, MirrorEntry

__all__ = ["EventIndex", "MirrorEntry"]
