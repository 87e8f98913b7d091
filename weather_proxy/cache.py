"""Key-value stores behind the cache-aside fetcher.

Both stores expose the same three coroutines — ``get``, ``set`` and
``close`` — and report every failure as ``CacheError``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from weather_proxy.errors import CacheError

log = logging.getLogger(__name__)

_BACKOFF_STEP = 0.1  # seconds per failed attempt
_BACKOFF_MAX = 3.0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"


class CacheEntry(BaseModel):
    """A serialized document and the monotonic time it stops being valid."""

    value: str
    expires_at: float


class MemoryStore:
    """In-process TTL store, used when no Redis URL is configured.

    Expired entries are dropped lazily on read.
    """

    state = ConnectionState.CONNECTED

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, CacheEntry] = {}
        self._clock = clock

    async def connect(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._store[key]
            return None
        return entry.value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def close(self) -> None:
        self._store.clear()

    def keys(self) -> list[str]:
        return list(self._store.keys())


class RedisStore:
    """Redis-backed store with an explicit connection state machine.

    DISCONNECTED -> CONNECTING -> CONNECTED on a successful PING.
    A failed connect, or a connection dropped mid-command, moves to
    BACKOFF(n) for ``min(n * 100ms, 3s)``; commands issued inside that
    window fail fast and the first one after it reconnects.
    """

    def __init__(
        self,
        url: str,
        connect_timeout: float = 10.0,
        command_timeout: float = 5.0,
        *,
        client_factory: Callable[..., Any] = aioredis.from_url,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._url = url
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._client_factory = client_factory
        self._clock = clock
        self._client: Any = None
        self._lock = asyncio.Lock()
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self._retry_at = 0.0

    # ---- connection management ----------------------------------------

    async def connect(self) -> None:
        """Connect eagerly; failure is logged and left to the backoff cycle."""
        try:
            await self._ensure_client()
        except CacheError as e:
            log.warning("Redis not available at startup: %s", e)

    async def _ensure_client(self) -> Any:
        if self.state is ConnectionState.CONNECTED:
            return self._client
        async with self._lock:
            if self.state is ConnectionState.CONNECTED:
                return self._client
            if self.state is ConnectionState.BACKOFF:
                wait = self._retry_at - self._clock()
                if wait > 0:
                    raise CacheError(f"Redis reconnect in {wait:.2f}s")
            self.state = ConnectionState.CONNECTING
            client = None
            try:
                client = self._client_factory(
                    self._url,
                    decode_responses=True,
                    socket_connect_timeout=self._connect_timeout,
                    socket_timeout=self._command_timeout,
                )
                await client.ping()
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                if client is not None:
                    await self._discard(client)
                self._enter_backoff()
                raise CacheError(f"Redis connect failed: {e}") from e
            self._client = client
            self.state = ConnectionState.CONNECTED
            self.attempts = 0
            log.info("Redis client connected")
            return client

    def _enter_backoff(self) -> None:
        self.attempts += 1
        delay = min(self.attempts * _BACKOFF_STEP, _BACKOFF_MAX)
        self._retry_at = self._clock() + delay
        self.state = ConnectionState.BACKOFF
        log.info(
            "Redis client reconnecting in %.1fs (attempt %d)", delay, self.attempts
        )

    async def _connection_lost(self, exc: Exception) -> None:
        log.warning("Redis connection lost: %s", exc)
        client, self._client = self._client, None
        if client is not None:
            await self._discard(client)
        self._enter_backoff()

    @staticmethod
    async def _discard(client: Any) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            log.debug("Ignoring error while closing Redis client: %s", e)

    # ---- public API ----------------------------------------------------

    async def get(self, key: str) -> str | None:
        client = await self._ensure_client()
        try:
            return await client.get(key)
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            await self._connection_lost(e)
            raise CacheError(f"Redis GET {key} failed: {e}") from e
        except RedisError as e:
            raise CacheError(f"Redis GET {key} failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        client = await self._ensure_client()
        try:
            await client.set(key, value, ex=ttl)
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            await self._connection_lost(e)
            raise CacheError(f"Redis SET {key} failed: {e}") from e
        except RedisError as e:
            raise CacheError(f"Redis SET {key} failed: {e}") from e

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await self._discard(client)
        self.state = ConnectionState.DISCONNECTED


def create_store(
    redis_url: str,
    connect_timeout: float = 10.0,
    command_timeout: float = 5.0,
) -> MemoryStore | RedisStore:
    if redis_url:
        return RedisStore(redis_url, connect_timeout, command_timeout)
    return MemoryStore()
