import asyncio

import pytest

from namus_crawler.crawl.errors import BadResponseError, TransportError
from namus_crawler.crawl.limiter import ConcurrencyLimiter
from namus_crawler.crawl.stage import run_stage


def _stage(items, operation, max_in_flight=5):
    async def _run():
        limiter = ConcurrencyLimiter(max_in_flight)
        result = await run_stage(items, operation, limiter)
        return result, limiter

    return asyncio.run(_run())


@pytest.mark.parametrize("n", [0, 1, 7, 60])
def test_every_item_accounted_for_once(n):
    async def op(i):
        await asyncio.sleep(0)
        if i % 3 == 0:
            raise TransportError(f"item {i}")
        return i * 10

    result, _ = _stage(range(n), op)
    assert result.total == n
    assert sorted(result.failed_items() + [i for i, _ in result.successes]) == list(range(n))
    assert all(v == i * 10 for i, v in result.successes)


def test_failure_is_recorded_with_its_item_and_cause():
    async def op(i):
        if i == 2:
            raise BadResponseError("no results list")
        return f"body-{i}"

    result, _ = _stage([1, 2, 3], op)
    assert sorted(result.successes) == [(1, "body-1"), (3, "body-3")]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.item == 2
    assert isinstance(failure.error, BadResponseError)
    assert failure.kind == "bad_response"


def test_unexpected_exception_does_not_abort_siblings():
    async def op(i):
        if i == 1:
            raise KeyError("bug")
        await asyncio.sleep(0.005)
        return i

    result, limiter = _stage([0, 1, 2], op)
    assert sorted(result.values()) == [0, 2]
    assert result.failures[0].item == 1
    assert result.failures[0].kind == "unexpected"
    assert limiter.in_use == 0


def test_in_flight_operations_stay_within_bound():
    active = {"now": 0, "max": 0}

    async def op(i):
        active["now"] += 1
        active["max"] = max(active["max"], active["now"])
        try:
            await asyncio.sleep(0.002)
        finally:
            active["now"] -= 1
        return i

    result, limiter = _stage(range(50), op, max_in_flight=4)
    assert result.total == 50
    assert active["max"] == 4
    assert limiter.peak_in_use == 4
    assert limiter.get_stats()["acquired"] == 50


def test_duplicate_items_each_get_an_outcome():
    async def op(i):
        return i

    result, _ = _stage([5, 5, 6], op)
    assert sorted(result.values()) == [5, 5, 6]


def test_cancelling_a_stage_releases_permits():
    async def _run():
        limiter = ConcurrencyLimiter(2)

        async def op(i):
            await asyncio.sleep(3600)

        task = asyncio.create_task(run_stage(range(6), op, limiter))
        await asyncio.sleep(0.01)
        assert limiter.in_use == 2
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return limiter.in_use

    assert asyncio.run(_run()) == 0
