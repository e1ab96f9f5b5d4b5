"""
Retry with exponential backoff and jitter.

Wraps an arbitrary coroutine factory:

    delay  = min(initial_delay_ms * backoff_factor ** attempt, max_delay_ms)
    jitter = uniform(0, delay * 0.3)

The executor has no notion of reads or writes. Callers pick a policy;
mutations should use MUTATION_POLICY since a retried write can repeat
its side effect.
"""

import asyncio
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from loguru import logger

from console_server.services.errors import TransportError

T = TypeVar("T")

JITTER_RATIO = 0.3


def default_should_retry(error: BaseException) -> bool:
    """Retry on network failures and 5xx responses only."""
    if isinstance(error, asyncio.CancelledError):
        return False
    if isinstance(error, TransportError):
        return error.retryable
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    if isinstance(error, httpx.TransportError):
        return True

    message = str(error).lower()
    return "fetch" in message or "network" in message


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for a single invocation."""

    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    should_retry: Callable[[BaseException], bool] = default_should_retry

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def with_overrides(self, **changes: Any) -> "RetryPolicy":
        return replace(self, **changes)

    def compute_delay_ms(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``, without jitter."""
        return min(
            self.initial_delay_ms * self.backoff_factor**attempt,
            self.max_delay_ms,
        )


DEFAULT_POLICY = RetryPolicy()
READ_POLICY = DEFAULT_POLICY
MUTATION_POLICY = RetryPolicy(max_retries=2)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    rng: Callable[[float, float], float] | None = None,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> T:
    """
    Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Retry configuration (DEFAULT_POLICY if omitted)
        rng: ``uniform(a, b)`` replacement, used for jitter
        sleep: ``asyncio.sleep`` replacement, receives seconds

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception raised by ``operation``, unchanged
    """
    policy = policy or DEFAULT_POLICY
    uniform = rng or random.uniform
    wait = sleep or asyncio.sleep

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= policy.max_retries or not policy.should_retry(e):
                raise

            delay = policy.compute_delay_ms(attempt)
            final_delay = delay + uniform(0, delay * JITTER_RATIO)
            attempt += 1

            logger.info(
                f"Retry attempt {attempt}/{policy.max_retries} "
                f"after {round(final_delay)}ms: {type(e).__name__}: {e}"
            )
            await wait(final_delay / 1000)
