from __future__ import annotations

import asyncio

import pytest

from core.errors import ValidationError
from services.cache import MemoryCache
from utils.rate_limit import DistributedRateLimiter


@pytest.mark.asyncio
async def test_rate_limiter_blocks_after_limit() -> None:
    limiter = DistributedRateLimiter(MemoryCache())

    first = await limiter.hit("ticket:hourly:u1", limit=2, window_seconds=1)
    second = await limiter.hit("ticket:hourly:u1", limit=2, window_seconds=1)
    third = await limiter.hit("ticket:hourly:u1", limit=2, window_seconds=1)

    assert first.allowed is True
    assert second.allowed is True
    assert second.remaining == 0
    assert third.allowed is False


@pytest.mark.asyncio
async def test_rate_limiter_resets_after_window() -> None:
    limiter = DistributedRateLimiter(MemoryCache())

    assert (await limiter.hit("upgrade:u2", limit=1, window_seconds=1)).allowed is True
    await asyncio.sleep(1.1)
    assert (await limiter.hit("upgrade:u2", limit=1, window_seconds=1)).allowed is True


@pytest.mark.asyncio
async def test_enforce_raises_validation_error() -> None:
    limiter = DistributedRateLimiter(MemoryCache())
    await limiter.enforce("cooldown:u3", limit=1, window_seconds=60, message="slow down")

    with pytest.raises(ValidationError) as excinfo:
        await limiter.enforce("cooldown:u3", limit=1, window_seconds=60, message="slow down")
    assert excinfo.value.user_message == "slow down"
