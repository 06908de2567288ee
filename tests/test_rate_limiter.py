import asyncio

import pytest

from gitea_activity.client.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_slots_are_refilled_after_a_second():
    limiter = RateLimiter(2)
    loop = asyncio.get_running_loop()
    started = loop.time()

    for _ in range(3):
        await limiter.acquire()

    elapsed = loop.time() - started
    await limiter.close()

    assert elapsed >= 0.9


@pytest.mark.asyncio
async def test_close_without_use_is_noop():
    limiter = RateLimiter(1)
    await limiter.close()


def test_rate_limit_must_be_positive():
    with pytest.raises(ValueError):
        RateLimiter(0)
