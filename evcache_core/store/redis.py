"""EvCache Redis Store - Redis Store Adapter.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Union

import redis.asyncio as redis
from redis.exceptions import RedisError

from evcache_core.lock.redis import RedisLock
from evcache_core.store.backend import Command, StoreAdapter, StoreError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], "redis.Redis"]


@dataclass
class RedisConfig:
    """Redis-specific configuration.

    Attributes:
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        ssl: Enable SSL
        max_connections: Connection pool size
        url: Connection URL, overrides the fields above when set
    """

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    ssl: bool = False
    max_connections: int = 10
    url: Optional[str] = None


def _text(value: Union[str, bytes]) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisStore(StoreAdapter):
    """Redis store adapter.

    The client can be given three ways:
    - client: an existing redis.asyncio.Redis, shared with the caller
    - client_factory: called on every access, for clients managed elsewhere
    - config: connection settings, the store owns the pool it creates

    Batches run as a MULTI/EXEC pipeline.

    Example:
        store = RedisStore(RedisConfig(host="redis.local"))
        await store.batch().hset("k", {"val": "1"}).expire("k", 60).execute()
        record = await store.hgetall("k")
        await store.close()
    """

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        client: Optional[redis.Redis] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """Initialize Redis store.

        Args:
            config: Redis configuration
            client: Existing client
            client_factory: Zero-argument callable returning a client
        """
        if client is not None and client_factory is not None:
            raise ValueError("Pass either client or client_factory, not both")

        super().__init__()
        self.config: RedisConfig = config or RedisConfig()
        self._client = client
        self._client_factory = client_factory
        self._pool: Optional[redis.ConnectionPool] = None
        self._owns_client = client is None and client_factory is None

    @property
    def client(self) -> redis.Redis:
        """Current Redis client."""
        return self._ensure_connected()

    def _ensure_connected(self) -> redis.Redis:
        """Ensure a Redis client exists.

        Returns:
            Redis client
        """
        if self._client_factory is not None:
            return self._client_factory()

        if self._client is not None:
            return self._client

        if self.config.url:
            self._client = redis.from_url(self.config.url, decode_responses=True)
        else:
            self._pool = redis.ConnectionPool(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                password=self.config.password,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_connect_timeout,
                max_connections=self.config.max_connections,
                connection_class=redis.SSLConnection if self.config.ssl else redis.Connection,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)

        logger.info(f"Created Redis client for {self}")
        return self._client

    def _fail(self, operation: str, error: Exception) -> StoreError:
        logger.error(f"Redis {operation} error: {error}")
        self._stats.record_error(str(error))
        return StoreError(f"Redis {operation} failed: {error}")

    async def hgetall(self, key: str) -> Dict[str, str]:
        """Read all fields of a hash."""
        client = self._ensure_connected()
        try:
            data = await client.hgetall(key)
        except RedisError as e:
            raise self._fail("hgetall", e) from e

        self._stats.reads += 1
        return {_text(field): _text(value) for field, value in data.items()}

    async def smembers(self, key: str) -> Set[str]:
        """Read all members of a set."""
        client = self._ensure_connected()
        try:
            members = await client.smembers(key)
        except RedisError as e:
            raise self._fail("smembers", e) from e

        self._stats.reads += 1
        return {_text(member) for member in members}

    async def execute_batch(self, commands: List[Command]) -> List[Any]:
        """Execute commands in one MULTI/EXEC transaction."""
        self._check_commands(commands)
        client = self._ensure_connected()

        try:
            async with client.pipeline(transaction=True) as pipe:
                for name, args in commands:
                    if name == "hset":
                        key, mapping = args
                        pipe.hset(key, mapping=mapping)
                    elif name == "expire":
                        pipe.expire(*args)
                    else:
                        pipe.sadd(*args)
                results = await pipe.execute()
        except RedisError as e:
            raise self._fail("batch", e) from e

        self._stats.batches += 1
        self._stats.writes += len(commands)
        return results

    def create_lock(self) -> RedisLock:
        """Create a lock using this store's client."""
        return RedisLock(self)

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            return bool(await self._ensure_connected().ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client if this store created it."""
        if not self._owns_client or self._client is None:
            return

        await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._client = None
        logger.info(f"Closed Redis client for {self}")

    def __repr__(self) -> str:
        if self.config.url:
            return "RedisStore(url=...)"
        return f"RedisStore(host={self.config.host}, port={self.config.port})"


__all__ = ["RedisStore", "RedisConfig"]
