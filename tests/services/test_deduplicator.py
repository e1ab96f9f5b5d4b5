"""Unit tests for RequestDeduplicator."""

import asyncio

import pytest

from console_server.services.deduplicator import RequestDeduplicator


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingFactory:
    """Request function that blocks on ``gate`` and counts invocations."""

    def __init__(self, error: Exception | None = None):
        self.calls = 0
        self.gate = asyncio.Event()
        self.error = error

    async def __call__(self) -> dict:
        self.calls += 1
        call = self.calls
        await self.gate.wait()
        if self.error:
            raise self.error
        return {"call": call}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dedup(clock: FakeClock) -> RequestDeduplicator:
    return RequestDeduplicator(ttl=1.0, clock=clock)


class TestSingleFlight:
    async def test_concurrent_calls_share_one_request(
        self, dedup: RequestDeduplicator
    ) -> None:
        factory = CountingFactory()
        factory.gate.set()

        results = await asyncio.gather(*(dedup.dedupe("k", factory) for _ in range(5)))

        assert factory.calls == 1
        assert all(result is results[0] for result in results)

    async def test_concurrent_callers_share_the_same_exception(
        self, dedup: RequestDeduplicator
    ) -> None:
        error = RuntimeError("upstream down")
        factory = CountingFactory(error=error)

        pending = [asyncio.create_task(dedup.dedupe("k", factory)) for _ in range(3)]
        await asyncio.sleep(0)
        factory.gate.set()
        results = await asyncio.gather(*pending, return_exceptions=True)

        assert factory.calls == 1
        assert all(result is error for result in results)

    async def test_settled_request_is_reused_inside_window(
        self, dedup: RequestDeduplicator, clock: FakeClock
    ) -> None:
        factory = CountingFactory()
        factory.gate.set()

        first = await dedup.dedupe("k", factory)
        clock.now = 0.5
        second = await dedup.dedupe("k", factory)

        assert factory.calls == 1
        assert second is first

    async def test_independent_keys_do_not_block_each_other(
        self, dedup: RequestDeduplicator
    ) -> None:
        slow = CountingFactory()
        fast = CountingFactory()
        fast.gate.set()

        slow_task = asyncio.create_task(dedup.dedupe("slow", slow))
        result = await asyncio.wait_for(dedup.dedupe("fast", fast), timeout=1)

        assert result == {"call": 1}
        assert not slow_task.done()
        slow.gate.set()
        assert await slow_task == {"call": 1}

    async def test_cancelled_waiter_does_not_cancel_shared_request(
        self, dedup: RequestDeduplicator
    ) -> None:
        factory = CountingFactory()
        first = asyncio.create_task(dedup.dedupe("k", factory))
        second = asyncio.create_task(dedup.dedupe("k", factory))
        await asyncio.sleep(0)

        first.cancel()
        factory.gate.set()

        assert await second == {"call": 1}
        assert first.cancelled()


class TestExpiry:
    async def test_new_request_after_window(
        self, dedup: RequestDeduplicator, clock: FakeClock
    ) -> None:
        factory = CountingFactory()
        factory.gate.set()

        first = await dedup.dedupe("k", factory)
        clock.now = 1.0
        second = await dedup.dedupe("k", factory)

        assert factory.calls == 2
        assert first == {"call": 1}
        assert second == {"call": 2}

    async def test_failure_is_not_reused_after_window(
        self, dedup: RequestDeduplicator, clock: FakeClock
    ) -> None:
        failing = CountingFactory(error=RuntimeError("boom"))
        failing.gate.set()
        with pytest.raises(RuntimeError):
            await dedup.dedupe("k", failing)

        clock.now = 2.0
        working = CountingFactory()
        working.gate.set()

        assert await dedup.dedupe("k", working) == {"call": 1}

    async def test_entry_removed_after_ttl(self) -> None:
        dedup = RequestDeduplicator(ttl=0.05)
        factory = CountingFactory()
        factory.gate.set()

        await dedup.dedupe("k", factory)
        assert dedup.get_keys() == ["k"]

        await asyncio.sleep(0.1)
        assert dedup.get_keys() == []

    async def test_stale_timer_does_not_remove_newer_entry(self) -> None:
        clock = FakeClock()
        dedup = RequestDeduplicator(ttl=0.2, clock=clock)
        factory = CountingFactory()
        factory.gate.set()

        await dedup.dedupe("k", factory)
        await asyncio.sleep(0.1)
        # Logical window elapsed, a second request replaces the entry
        clock.now = 5.0
        await dedup.dedupe("k", factory)

        # First timer has fired, second has not
        await asyncio.sleep(0.15)
        assert dedup.get_keys() == ["k"]
        assert await dedup.dedupe("k", factory) == {"call": 2}
        assert factory.calls == 2


class TestClear:
    async def test_clear_forces_fresh_request(
        self, dedup: RequestDeduplicator
    ) -> None:
        factory = CountingFactory()
        first = asyncio.create_task(dedup.dedupe("k", factory))
        await asyncio.sleep(0)

        assert dedup.clear() == 1
        second = asyncio.create_task(dedup.dedupe("k", factory))
        await asyncio.sleep(0)
        factory.gate.set()

        # The first request was not cancelled, it simply stopped being shared
        assert await first == {"call": 1}
        assert await second == {"call": 2}
        assert factory.calls == 2


class TestStats:
    async def test_counts_unique_and_deduplicated(
        self, dedup: RequestDeduplicator
    ) -> None:
        factory = CountingFactory()
        factory.gate.set()

        await asyncio.gather(*(dedup.dedupe("k", factory) for _ in range(4)))
        stats = dedup.get_stats().to_dict()

        assert stats["started"] == 1
        assert stats["shared"] == 3
        assert stats["live_entries"] == 1
        assert stats["in_flight"] == 0
        assert stats["share_ratio"] == "75.00%"

        dedup.clear()
        stats = dedup.get_stats().to_dict()

        assert stats["cleared"] == 1
        assert stats["live_entries"] == 0

    def test_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RequestDeduplicator(ttl=0)
