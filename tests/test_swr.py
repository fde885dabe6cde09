"""Tests for stale-while-revalidate resolution and request de-duplication."""

import asyncio
import gc

import pytest

from explorer_gateway.cache import DurableCache, StaleWhileRevalidate, TieredCache


class CountingFetcher:
    """Fetcher returning successive values, optionally blocking until released."""

    def __init__(self, *values, gate: asyncio.Event | None = None, error: Exception | None = None):
        self.values = list(values)
        self.gate = gate
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.values[min(self.calls, len(self.values)) - 1]


@pytest.fixture
def cache(clock):
    return TieredCache(clock=clock)


@pytest.mark.asyncio
async def test_miss_fetches_and_caches(cache):
    swr = StaleWhileRevalidate(cache)
    fetcher = CountingFetcher({"height": 1})

    assert await swr.resolve("key", fetcher, ttl=10) == {"height": 1}
    assert await cache.get("key") == {"height": 1}
    assert fetcher.calls == 1
    assert not swr.in_flight("key")


@pytest.mark.asyncio
async def test_fresh_hit_skips_fetch(cache):
    swr = StaleWhileRevalidate(cache)
    cache.set("key", "cached", ttl=10)
    fetcher = CountingFetcher("fresh")

    assert await swr.resolve("key", fetcher, ttl=10) == "cached"
    assert fetcher.calls == 0


@pytest.mark.asyncio
async def test_stale_value_returned_while_refreshing(cache, clock):
    """Test that an expired entry is served at once and refreshed once in the background."""
    swr = StaleWhileRevalidate(cache)
    cache.set("key", "old", ttl=10)
    clock.advance(11)
    fetcher = CountingFetcher("new")

    first = await swr.resolve("key", fetcher, ttl=10)
    second = await swr.resolve("key", fetcher, ttl=10)

    assert first == "old"
    assert second == "old"
    assert swr.pending() == ["key"]

    await swr.drain()

    assert fetcher.calls == 1
    assert await cache.get("key") == "new"
    assert await swr.resolve("key", fetcher, ttl=10) == "new"


@pytest.mark.asyncio
async def test_failed_background_refresh_keeps_stale_value(cache, clock):
    swr = StaleWhileRevalidate(cache)
    cache.set("key", "old", ttl=10)
    clock.advance(11)
    fetcher = CountingFetcher(error=RuntimeError("upstream down"))

    assert await swr.resolve("key", fetcher, ttl=10) == "old"
    await swr.drain()

    assert fetcher.calls == 1
    assert await cache.get_stale("key") == "old"
    assert not swr.in_flight("key")


@pytest.mark.asyncio
async def test_revalidation_disabled_treats_stale_as_miss(cache, clock):
    swr = StaleWhileRevalidate(cache)
    cache.set("key", "old", ttl=10)
    clock.advance(11)

    value = await swr.resolve("key", CountingFetcher("new"), ttl=10, stale_while_revalidate=False)

    assert value == "new"


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_fetch(cache):
    """Test that concurrent callers for one key trigger a single upstream call."""
    swr = StaleWhileRevalidate(cache)
    gate = asyncio.Event()
    fetcher = CountingFetcher({"validators": ["a"]}, gate=gate)

    callers = [asyncio.create_task(swr.resolve("key", fetcher, ttl=10)) for _ in range(10)]
    await asyncio.sleep(0)
    assert swr.in_flight("key")

    gate.set()
    results = await asyncio.gather(*callers)

    assert fetcher.calls == 1
    assert all(result == {"validators": ["a"]} for result in results)
    assert not swr.in_flight("key")


@pytest.mark.asyncio
async def test_miss_failure_propagates_to_every_caller(cache):
    swr = StaleWhileRevalidate(cache)
    gate = asyncio.Event()
    fetcher = CountingFetcher(gate=gate, error=RuntimeError("all endpoints failed"))

    callers = [asyncio.create_task(swr.resolve("key", fetcher, ttl=10)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*callers, return_exceptions=True)

    assert fetcher.calls == 1
    assert all(isinstance(result, RuntimeError) for result in results)
    assert await cache.get_stale("key") is None
    assert not swr.in_flight("key")


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_fetch(cache):
    swr = StaleWhileRevalidate(cache)
    gate = asyncio.Event()
    fetcher = CountingFetcher("value", gate=gate)

    impatient = asyncio.create_task(swr.resolve("key", fetcher, ttl=10))
    patient = asyncio.create_task(swr.resolve("key", fetcher, ttl=10))
    await asyncio.sleep(0)

    impatient.cancel()
    gate.set()

    assert await patient == "value"
    assert impatient.cancelled()
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_forget_pattern_detaches_markers(cache):
    """Test that forgotten keys start a new fetch while the old one finishes on its own."""
    swr = StaleWhileRevalidate(cache)
    gate = asyncio.Event()
    first = CountingFetcher("first", gate=gate)

    caller = asyncio.create_task(swr.resolve("v1_blocks_osmosis", first, ttl=10))
    await asyncio.sleep(0)

    assert swr.forget_pattern("osmosis") == 1
    assert swr.pending() == []

    second = CountingFetcher("second")
    assert await swr.resolve("v1_blocks_osmosis", second, ttl=10) == "second"

    gate.set()
    assert await caller == "first"
    await swr.drain()
    assert first.calls == 1
    assert second.calls == 1


@pytest.mark.asyncio
async def test_concurrent_misses_through_durable_tier_share_one_fetch(tmp_path, clock):
    """Test that callers waiting on a suspended durable read never start a second fetch."""
    cache = TieredCache(durable=DurableCache(tmp_path / "cache.db", clock=clock), clock=clock)
    swr = StaleWhileRevalidate(cache)
    calls = 0

    async def fetcher():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0)
        return {"v": calls}

    for round_ in range(5):
        calls = 0
        key = f"v1_validators_testchain_{round_}"

        results = await asyncio.gather(*(swr.resolve(key, fetcher, ttl=10) for _ in range(10)))

        assert calls == 1
        assert results == [{"v": 1}] * 10
        assert not swr.in_flight(key)
    await cache.stop()


@pytest.mark.asyncio
async def test_durable_hit_is_shared_and_promoted(tmp_path, clock):
    durable = DurableCache(tmp_path / "cache.db", clock=clock)
    await durable.set("key", "persisted", ttl=10)
    cache = TieredCache(durable=durable, clock=clock)
    swr = StaleWhileRevalidate(cache)
    fetcher = CountingFetcher("fetched")

    results = await asyncio.gather(*(swr.resolve("key", fetcher, ttl=10) for _ in range(3)))

    assert results == ["persisted"] * 3
    assert fetcher.calls == 0
    assert cache.memory.get("key") == "persisted"
    await cache.stop()


@pytest.mark.asyncio
async def test_abandoned_failing_fetch_is_not_reported_unretrieved(cache):
    """Test that a miss whose every caller was cancelled still has its failure consumed."""
    loop = asyncio.get_running_loop()
    reported = []
    loop.set_exception_handler(lambda loop, context: reported.append(context))
    swr = StaleWhileRevalidate(cache)
    gate = asyncio.Event()
    fetcher = CountingFetcher(gate=gate, error=RuntimeError("upstream down"))

    caller = asyncio.create_task(swr.resolve("key", fetcher, ttl=10))
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    gate.set()
    for _ in range(5):
        await asyncio.sleep(0)
    gc.collect()

    try:
        assert fetcher.calls == 1
        assert swr.pending() == []
        assert reported == []
    finally:
        loop.set_exception_handler(None)
