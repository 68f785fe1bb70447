import asyncio

import pytest

from namus_crawler.crawl.limiter import ConcurrencyLimiter


def test_limiter_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        ConcurrencyLimiter(0)


def test_permit_occupies_one_slot_until_released():
    async def _run():
        limiter = ConcurrencyLimiter(2)
        first = await limiter.acquire()
        second = await limiter.acquire()
        assert limiter.in_use == 2

        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        first.release()
        third = await asyncio.wait_for(waiter, timeout=1)
        assert limiter.in_use == 2

        # releasing twice must not free an extra slot
        first.release()
        assert limiter.in_use == 2

        second.release()
        third.release()
        assert limiter.in_use == 0
        return limiter.get_stats()

    stats = asyncio.run(_run())
    assert stats == {"max_in_flight": 2, "in_use": 0, "peak_in_use": 2, "acquired": 3}


def test_permit_context_releases_on_error():
    async def _run():
        limiter = ConcurrencyLimiter(1)
        with pytest.raises(RuntimeError):
            async with limiter.permit():
                assert limiter.in_use == 1
                raise RuntimeError("boom")
        assert limiter.in_use == 0

        permit = await limiter.acquire()
        with permit:
            pass
        assert permit.released
        assert limiter.in_use == 0

    asyncio.run(_run())


def test_concurrent_holders_never_exceed_bound():
    async def _run():
        limiter = ConcurrencyLimiter(3)
        observed = []

        async def worker(i):
            async with limiter.permit():
                observed.append(limiter.in_use)
                await asyncio.sleep(0.001 * (i % 4))

        await asyncio.gather(*(worker(i) for i in range(40)))
        return limiter, observed

    limiter, observed = asyncio.run(_run())
    assert max(observed) <= 3
    assert limiter.peak_in_use == 3
    assert limiter.in_use == 0
