from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod

import redis.asyncio as redis
from redis.exceptions import RedisError

from tutor_orchestrator.core.cache_metrics import record_cache_failure, record_cache_get, record_cache_set
from tutor_orchestrator.core.errors import StateStoreError
from tutor_orchestrator.core.settings import settings


class StateCache(ABC):
    """Key-value cache with per-entry expiry. Raises StateStoreError when the backend is unreachable."""

    backend_name: str

    @abstractmethod
    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class RedisStateCache(StateCache):
    """Wraps the Redis client to record cache hits, misses, and sets for /metrics/app."""

    backend_name = "redis"

    def __init__(self, client: redis.Redis):
        self._client = client

    async def get(self, key: str) -> str | None:
        try:
            out = await self._client.get(key)
        except RedisError as exc:
            record_cache_failure(key)
            raise StateStoreError(f"redis get failed: {exc}") from exc
        record_cache_get(key, out is not None)
        return out

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            record_cache_failure(key)
            raise StateStoreError(f"redis set failed: {exc}") from exc
        record_cache_set(key)

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            record_cache_failure(key)
            raise StateStoreError(f"redis delete failed: {exc}") from exc


class InMemoryStateCache(StateCache):
    """Process-local cache for single-worker runs and tests; honours TTLs lazily on read."""

    backend_name = "memory"

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[1] <= self._clock():
                self._entries.pop(key, None)
                entry = None
        record_cache_get(key, entry is not None)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)
        record_cache_set(key)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)


def build_state_cache() -> StateCache:
    backend = settings.state_cache_backend.strip().lower()
    if backend == "memory":
        return InMemoryStateCache()
    return RedisStateCache(redis.from_url(settings.redis_url, decode_responses=True))
