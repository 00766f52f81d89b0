import asyncio

import pytest

from app.core.cache import QueryCache


class CountingLoader:
    def __init__(self, value="rows"):
        self.calls = 0
        self.value = value

    async def __call__(self):
        self.calls += 1
        return f"{self.value}-{self.calls}"


def test_fetch_returns_cached_value():
    async def scenario():
        cache = QueryCache()
        loader = CountingLoader()
        first = await cache.fetch(("visits", "2024-01-01", ()), loader)
        second = await cache.fetch(("visits", "2024-01-01", ()), loader)
        return first, second, loader.calls

    first, second, calls = asyncio.run(scenario())
    assert first == second == "rows-1"
    assert calls == 1


def test_repeated_invalidation_causes_single_refetch():
    async def scenario():
        cache = QueryCache()
        loader = CountingLoader()
        key = ("visits", "2024-01-01", ())
        await cache.fetch(key, loader)
        for _ in range(5):
            cache.invalidate(("visits", "2024-01-01"))
        await cache.fetch(key, loader)
        await cache.fetch(key, loader)
        return loader.calls

    assert asyncio.run(scenario()) == 2


def test_invalidate_matches_prefix_only():
    async def scenario():
        cache = QueryCache()
        await cache.fetch(("visits", "2024-01-01", ()), CountingLoader())
        await cache.fetch(("visits", "2024-01-02", ()), CountingLoader())
        await cache.fetch(("patient-detail", "P1"), CountingLoader())
        count = cache.invalidate(("visits", "2024-01-01"))
        return cache, count

    cache, count = asyncio.run(scenario())
    assert count == 1
    assert not cache.is_fresh(("visits", "2024-01-01", ()))
    assert cache.is_fresh(("visits", "2024-01-02", ()))
    assert cache.is_fresh(("patient-detail", "P1"))


def test_invalidating_unknown_key_is_noop():
    cache = QueryCache()
    assert cache.invalidate(("visits", "2024-01-01")) == 0
    assert cache.keys() == []


def test_inflight_result_stays_stale_after_invalidation():
    async def scenario():
        cache = QueryCache()
        key = ("visits", "2024-01-01", ())
        release = asyncio.Event()
        calls = 0

        async def slow_loader():
            nonlocal calls
            calls += 1
            if calls == 1:
                await release.wait()
            return calls

        pending = asyncio.ensure_future(cache.fetch(key, slow_loader))
        await asyncio.sleep(0)
        cache.invalidate(("visits",))
        release.set()
        first = await pending
        fresh_after_first = cache.is_fresh(key)
        second = await cache.fetch(key, slow_loader)
        return first, fresh_after_first, second

    first, fresh_after_first, second = asyncio.run(scenario())
    assert first == 1
    assert fresh_after_first is False
    assert second == 2


def test_concurrent_readers_share_one_fetch():
    async def scenario():
        cache = QueryCache()
        loader = CountingLoader()
        key = ("visits", "2024-01-01", ())
        results = await asyncio.gather(*(cache.fetch(key, loader) for _ in range(4)))
        return results, loader.calls

    results, calls = asyncio.run(scenario())
    assert calls == 1
    assert set(results) == {"rows-1"}


def test_loader_error_is_not_cached():
    async def scenario():
        cache = QueryCache()
        key = ("visits", "2024-01-01", ())

        async def failing():
            raise RuntimeError("backend down")

        with pytest.raises(RuntimeError):
            await cache.fetch(key, failing)
        return cache, await cache.fetch(key, CountingLoader())

    cache, value = asyncio.run(scenario())
    assert value == "rows-1"


def test_evict_removes_matching_keys():
    async def scenario():
        cache = QueryCache()
        await cache.fetch(("visits", "2024-01-01", ()), CountingLoader())
        await cache.fetch(("visits", "2024-01-02", ()), CountingLoader())
        removed = cache.evict(lambda key: key[1] == "2024-01-01")
        return cache, removed

    cache, removed = asyncio.run(scenario())
    assert removed == 1
    assert cache.keys() == [("visits", "2024-01-02", ())]


def test_failed_lookups_leave_no_bookkeeping():
    async def scenario():
        cache = QueryCache()

        async def missing():
            raise LookupError("no such patient")

        for index in range(500):
            with pytest.raises(LookupError):
                await cache.fetch(("patient-detail", f"P{index}"), missing)
        return cache

    cache = asyncio.run(scenario())
    assert cache.keys() == []
    assert cache.tracked_keys() == 0


def test_failed_refetch_keeps_stale_entry_generation():
    async def scenario():
        cache = QueryCache()
        key = ("patient-detail", "P1")
        await cache.fetch(key, CountingLoader())
        cache.invalidate(key)

        async def failing():
            raise RuntimeError("backend down")

        with pytest.raises(RuntimeError):
            await cache.fetch(key, failing)
        return cache, key

    cache, key = asyncio.run(scenario())
    assert cache.peek(key) == "rows-1"
    assert not cache.is_fresh(key)
    assert cache.tracked_keys() == 1
