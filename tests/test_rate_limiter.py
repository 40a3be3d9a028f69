import pytest

from catalog_bridge.rate_limiter import TokenBucketRateLimiter


def test_burst_is_capped():
    limiter = TokenBucketRateLimiter(rate=0.001, burst_size=2)
    assert limiter.try_acquire()
    assert limiter.try_acquire()
    assert not limiter.try_acquire()


@pytest.mark.asyncio
async def test_acquire_waits_for_refill():
    limiter = TokenBucketRateLimiter(rate=200, burst_size=1)
    await limiter.acquire()
    await limiter.acquire()
    assert limiter.tokens < 1
