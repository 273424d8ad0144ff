"""EvCache Decorators - Caching Coroutine Functions.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, TypeVar

if TYPE_CHECKING:
    from evcache_core.cache.engine import CacheEngine

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

MAX_KEY_LENGTH = 250


def _render(value: Any, typed: bool) -> str:
    # Default reprs embed a memory address, which differs between processes
    if type(value).__repr__ is object.__repr__:
        raise TypeError(
            f"Cannot build a stable cache key from {type(value).__name__}; "
            "define __repr__ or pass key_builder"
        )
    text = repr(value)
    return f"{type(value).__name__}:{text}" if typed else text


def make_key(
    func: Callable,
    args: tuple,
    kwargs: dict,
    key_prefix: Optional[str] = None,
    key_builder: Optional[Callable[..., str]] = None,
    typed: bool = False,
) -> str:
    """Build cache key from function call.

    Keys read like the call, e.g. ``shop.prices:load_price(42, currency='EUR')``.
    Arguments are rendered with repr(), so 1 and '1' give different keys.
    Keys shared between processes must not depend on object identity,
    so arguments using the default object repr are refused.

    Args:
        func: Function being cached
        args: Positional arguments
        kwargs: Keyword arguments
        key_prefix: Replaces the function's module
        key_builder: Custom key builder, used as-is
        typed: Also include argument type names

    Returns:
        Cache key string

    Raises:
        TypeError: If an argument has no stable repr
    """
    if key_builder:
        return key_builder(*args, **kwargs)

    head = f"{key_prefix or func.__module__}:{func.__qualname__}"
    rendered = [_render(arg, typed) for arg in args]
    rendered.extend(f"{name}={_render(kwargs[name], typed)}" for name in sorted(kwargs))
    call = f"({', '.join(rendered)})"

    # Long argument lists are hashed; the head stays readable
    if len(head) + len(call) > MAX_KEY_LENGTH:
        call = "#" + hashlib.sha256(call.encode()).hexdigest()

    return head + call


def cached(
    engine: "CacheEngine",
    events: Optional[Iterable[str]] = None,
    key_builder: Optional[Callable[..., str]] = None,
    key_prefix: Optional[str] = None,
    typed: bool = False,
) -> Callable[[F], F]:
    """Decorator to cache coroutine function results in an engine.

    Args:
        engine: Cache engine
        events: Events invalidating the cached results
        key_builder: Custom key builder
        key_prefix: Key prefix
        typed: Include argument types in key

    Returns:
        Decorated function

    Example:
        @cached(engine, events=["user-updated"])
        async def get_user(user_id: int) -> dict:
            return await db.get_user(user_id)

        user = await get_user(1)
        await get_user.invalidate()
        user = await get_user.refresh(1)
    """
    if isinstance(events, str):
        raise TypeError("events must be an iterable of event names, not a string")
    bound_events = tuple(events or ())

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"{func.__qualname__} must be a coroutine function")

        def cache_key(*args, **kwargs) -> str:
            """Get cache key for arguments."""
            return make_key(
                func, args, kwargs,
                key_prefix=key_prefix,
                key_builder=key_builder,
                typed=typed,
            )

        async def load(force_refresh: bool, args: tuple, kwargs: dict) -> Any:
            key = cache_key(*args, **kwargs)
            source = functools.partial(func, *args, **kwargs)
            if not bound_events:
                return await engine.get(key, source, force_refresh)
            if not force_refresh:
                return await engine.get_with_events(key, source, bound_events)

            # Forced reads skip get_with_events, so bind here
            await engine.event_index.register(engine.keys.record_key(key), bound_events)
            return await engine.get(key, source, True)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await load(False, args, kwargs)

        async def refresh(*args, **kwargs) -> Any:
            """Recompute and store the result for arguments."""
            return await load(True, args, kwargs)

        async def invalidate() -> int:
            """Mark every cached result of this function stale."""
            if not bound_events:
                return 0
            return await engine.invalidate(bound_events)

        wrapper.cache_key = cache_key
        wrapper.refresh = refresh
        wrapper.invalidate = invalidate
        wrapper.engine = engine

        return wrapper  # type: ignore

    return decorator


__all__ = ["cached", "make_key"]
