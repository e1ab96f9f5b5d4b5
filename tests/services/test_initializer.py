"""Unit tests for SingleFlightInitializer."""

import asyncio

import pytest

from console_server.services.errors import InitializationError
from console_server.services.initializer import (
    InitializerState,
    SingleFlightInitializer,
)


class FakeProvider:
    """Config provider whose outcomes are scripted per call."""

    def __init__(self, outcomes: list | None = None):
        self.calls = 0
        self.gate = asyncio.Event()
        self.gate.set()
        self.outcomes = outcomes or [{"fulfillmentApiUrl": "https://f.example.com"}]

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        await self.gate.wait()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestSingleFlightInitializer:
    async def test_concurrent_callers_share_one_resolution(self) -> None:
        provider = FakeProvider()
        provider.gate.clear()
        init = SingleFlightInitializer(provider, name="config")

        first = asyncio.create_task(init.ensure_initialized())
        second = asyncio.create_task(init.ensure_initialized())
        await asyncio.sleep(0)
        assert init.state == InitializerState.INITIALIZING

        provider.gate.set()
        results = await asyncio.gather(first, second)

        assert provider.calls == 1
        assert results[0] is results[1]
        assert init.state == InitializerState.READY

    async def test_ready_value_is_cached(self) -> None:
        provider = FakeProvider()
        init = SingleFlightInitializer(provider)

        first = await init.ensure_initialized()
        second = await init.ensure_initialized()

        assert provider.calls == 1
        assert second is first
        assert init.value is first

    async def test_ready_value_returns_without_suspending(self) -> None:
        provider = FakeProvider()
        init = SingleFlightInitializer(provider)
        first = await init.ensure_initialized()

        coro = init.ensure_initialized()
        with pytest.raises(StopIteration) as exc_info:
            coro.send(None)

        assert exc_info.value.value is first
        assert provider.calls == 1

    async def test_failure_resets_and_next_call_retries(self) -> None:
        error = InitializationError("config unavailable")
        provider = FakeProvider(outcomes=[error, {"ok": True}])
        init = SingleFlightInitializer(provider)

        with pytest.raises(InitializationError) as exc_info:
            await init.ensure_initialized()

        assert exc_info.value is error
        assert init.state == InitializerState.UNINITIALIZED

        assert await init.ensure_initialized() == {"ok": True}
        assert provider.calls == 2
        assert init.attempts == 2

    async def test_failure_is_shared_by_concurrent_callers(self) -> None:
        error = InitializationError("config unavailable")
        provider = FakeProvider(outcomes=[error])
        provider.gate.clear()
        init = SingleFlightInitializer(provider)

        pending = [asyncio.create_task(init.ensure_initialized()) for _ in range(3)]
        await asyncio.sleep(0)
        provider.gate.set()
        results = await asyncio.gather(*pending, return_exceptions=True)

        assert provider.calls == 1
        assert all(result is error for result in results)

    async def test_initialize_is_an_eager_alias(self) -> None:
        provider = FakeProvider()
        init = SingleFlightInitializer(provider)

        await init.initialize()
        await init.ensure_initialized()

        assert init.is_ready
        assert provider.calls == 1

    async def test_reset_forces_new_resolution(self) -> None:
        provider = FakeProvider()
        init = SingleFlightInitializer(provider)
        await init.initialize()

        init.reset()

        assert init.state == InitializerState.UNINITIALIZED
        await init.ensure_initialized()
        assert provider.calls == 2

    def test_value_before_initialization_raises(self) -> None:
        init = SingleFlightInitializer(FakeProvider())
        with pytest.raises(RuntimeError):
            _ = init.value
