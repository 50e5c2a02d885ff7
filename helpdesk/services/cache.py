from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Protocol

import redis.asyncio as redis

from core.config import RedisConfig


class CacheBackend(Protocol):
    name: str

    async def incr(self, key: str, ttl: int | None = None) -> int: ...
    async def ping(self) -> bool: ...
    async def close(self) -> None: ...


@dataclass(slots=True)
class _MemoryValue:
    value: Any
    expires_at: float | None


class MemoryCache(CacheBackend):
    name = "memory"

    def __init__(self) -> None:
        self._store: dict[str, _MemoryValue] = {}
        self._lock = asyncio.Lock()

    def _is_expired(self, entry: _MemoryValue) -> bool:
        if entry.expires_at is None:
            return False
        return time.monotonic() >= entry.expires_at

    async def incr(self, key: str, ttl: int | None = None) -> int:
        async with self._lock:
            entry = self._store.get(key)
            if not entry or self._is_expired(entry):
                expires_at = time.monotonic() + ttl if ttl else None
                self._store[key] = _MemoryValue(value=1, expires_at=expires_at)
                return 1
            new_val = int(entry.value) + 1
            self._store[key] = _MemoryValue(value=new_val, expires_at=entry.expires_at)
            return new_val

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._store.clear()


class RedisCache(CacheBackend):
    name = "redis"

    def __init__(self, url: str) -> None:
        self._client = redis.from_url(url, decode_responses=True)

    async def incr(self, key: str, ttl: int | None = None) -> int:
        # Only the first hit in a window sets the expiry.
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            if ttl:
                pipe.expire(key, ttl, nx=True)
            result = await pipe.execute()
        return int(result[0])

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


def build_cache(config: RedisConfig) -> CacheBackend:
    if config.enabled:
        return RedisCache(config.url)
    return MemoryCache()
