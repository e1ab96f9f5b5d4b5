"""
SingleFlightInitializer - Lazily resolves a value exactly once.

States:
- UNINITIALIZED: Nothing resolved yet, or the last attempt failed
- INITIALIZING: One resolution is in flight, callers share it
- READY: Value resolved, returned without suspending
- FAILED: Transient, logged on the way back to UNINITIALIZED

Transitions:
- UNINITIALIZED → INITIALIZING: First call to ensure_initialized()
- INITIALIZING → READY: Provider returned
- INITIALIZING → FAILED → UNINITIALIZED: Provider raised, next call retries
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class InitializerState(str, Enum):
    """Initializer lifecycle states."""

    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    FAILED = "FAILED"


class SingleFlightInitializer(Generic[T]):
    """
    Shares one in-flight resolution among all concurrent callers.

    State is only read and written between awaits, so on a single event
    loop no lock is needed around the check-then-start sequence.

    Usage:
        init = SingleFlightInitializer(provider.get_config, name="config")

        config = await init.ensure_initialized()
    """

    def __init__(self, provider: Callable[[], Awaitable[T]], name: str = "initializer"):
        self._provider = provider
        self.name = name

        self._state = InitializerState.UNINITIALIZED
        self._value: T | None = None
        self._future: asyncio.Future[T] | None = None
        self._attempts = 0
        self._generation = 0

    @property
    def state(self) -> InitializerState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == InitializerState.READY

    @property
    def attempts(self) -> int:
        """Number of provider invocations so far."""
        return self._attempts

    @property
    def value(self) -> T:
        """Resolved value. Raises RuntimeError before initialization."""
        if self._state != InitializerState.READY:
            raise RuntimeError(f"'{self.name}' is not initialized")
        return self._value  # type: ignore[return-value]

    async def initialize(self) -> T:
        """Resolve eagerly, e.g. at startup."""
        return await self.ensure_initialized()

    async def ensure_initialized(self) -> T:
        """Return the resolved value, starting or joining a resolution if needed."""
        if self._state == InitializerState.READY:
            return self._value  # type: ignore[return-value]

        if self._state != InitializerState.INITIALIZING or self._future is None:
            self._state = InitializerState.INITIALIZING
            self._future = asyncio.ensure_future(self._resolve(self._generation))

        # Shielded so one cancelled caller does not fail the others
        return await asyncio.shield(self._future)

    async def _resolve(self, generation: int) -> T:
        """Invoke the provider once and settle the state."""
        self._attempts += 1
        try:
            value = await self._provider()
        except asyncio.CancelledError:
            if generation == self._generation:
                self._reset_state()
            raise
        except Exception as e:
            logger.error(f"Failed to initialize '{self.name}': {e}")
            if generation == self._generation:
                self._state = InitializerState.FAILED
                self._reset_state()
            raise

        # reset() was called while in flight
        if generation != self._generation:
            return value

        self._value = value
        self._state = InitializerState.READY
        logger.info(f"'{self.name}' initialized")
        return value

    def _reset_state(self) -> None:
        self._state = InitializerState.UNINITIALIZED
        self._value = None
        self._future = None

    def reset(self) -> None:
        """Forget the resolved value so the next call resolves again."""
        self._generation += 1
        self._reset_state()
        logger.debug(f"'{self.name}' reset")
