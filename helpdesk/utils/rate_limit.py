from __future__ import annotations

from dataclasses import dataclass

from core.errors import ValidationError
from services.cache import CacheBackend


@dataclass(slots=True)
class RateLimitResult:
    allowed: bool
    current: int
    limit: int
    window_seconds: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.current, 0)


class DistributedRateLimiter:
    """Fixed-window counter kept in the shared cache."""

    def __init__(self, cache: CacheBackend) -> None:
        self.cache = cache

    async def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        current = await self.cache.incr(key, ttl=window_seconds)
        return RateLimitResult(
            allowed=current <= limit,
            current=current,
            limit=limit,
            window_seconds=window_seconds,
        )

    async def enforce(self, key: str, *, limit: int, window_seconds: int, message: str) -> RateLimitResult:
        result = await self.hit(key, limit=limit, window_seconds=window_seconds)
        if not result.allowed:
            raise ValidationError(message)
        return result
