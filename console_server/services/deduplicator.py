"""
RequestDeduplicator - Prevents duplicate requests within a short window.

When multiple callers request the same resource within ``ttl`` seconds,
only one actual request is made and its outcome (value or exception)
is shared by all of them, whether or not it has already settled.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")

DEFAULT_TTL = 1.0


@dataclass(frozen=True)
class PendingEntry:
    """A request shared by every caller of the same key inside the window."""

    key: str
    task: "asyncio.Future[Any]"
    inserted_at: float


class RequestDeduplicator:
    """
    Deduplicates async requests per key within a fixed TTL window.

    Lookup and insertion happen without any await in between, so two
    coroutines can never both start a request for the same key.

    Usage:
        dedup = RequestDeduplicator(ttl=1.0)

        async def list_vms():
            return await dedup.dedupe(
                key="virtual-machines-list",
                request_fn=lambda: client.get("/virtual_machines"),
            )
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, PendingEntry] = {}
        self._debug = debug
        self._stats = DeduplicatorStats()

    @property
    def ttl(self) -> float:
        return self._ttl

    async def dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute request with deduplication.

        If a request with the same key was started less than ``ttl`` seconds
        ago, wait for and return its outcome instead of making a new request.

        Args:
            key: Unique identifier for this request
            request_fn: Async function to execute if no live entry exists

        Returns:
            Result from request_fn (either fresh or shared)
        """
        now = self._clock()
        entry = self._entries.get(key)

        if entry is not None and now - entry.inserted_at < self._ttl:
            self._stats.shared += 1
            self._log(f"DEDUPE: Sharing request: {key[:50]}...")
            task = entry.task
        else:
            self._stats.started += 1
            self._log(f"NEW: Starting request: {key[:50]}...")
            task = asyncio.ensure_future(request_fn())
            self._entries[key] = PendingEntry(key=key, task=task, inserted_at=now)
            asyncio.get_running_loop().call_later(
                self._ttl, self._expire, key, task
            )

        # A cancelled waiter must not cancel the request other callers share
        return await asyncio.shield(task)

    def _expire(self, key: str, task: "asyncio.Future[Any]") -> None:
        """Drop the entry for ``key`` unless a newer request replaced it."""
        current = self._entries.get(key)
        if current is not None and current.task is task:
            del self._entries[key]
            self._stats.expired += 1
            self._log(f"EXPIRE: {key[:50]}...")

    def clear(self) -> int:
        """
        Forget every entry. Running requests are left to finish, but the
        next call for any key starts fresh.
        """
        count = len(self._entries)
        self._entries.clear()
        self._stats.cleared += count
        if count:
            self._log(f"CLEAR: {count} entries removed")
        return count

    def get_in_flight_count(self) -> int:
        """Get number of requests still running."""
        return sum(1 for entry in self._entries.values() if not entry.task.done())

    def get_keys(self) -> list[str]:
        """Get keys of all entries still inside their window."""
        return list(self._entries.keys())

    def get_stats(self) -> "DeduplicatorStats":
        """Get deduplication statistics."""
        self._stats.live = len(self._entries)
        self._stats.in_flight = self.get_in_flight_count()
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")


@dataclass
class DeduplicatorStats:
    """Counters over the lifetime of one deduplicator."""

    started: int = 0
    shared: int = 0
    expired: int = 0
    cleared: int = 0
    live: int = 0
    in_flight: int = 0

    @property
    def share_ratio(self) -> float:
        calls = self.started + self.shared
        return self.shared / calls if calls else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "shared": self.shared,
            "expired": self.expired,
            "cleared": self.cleared,
            "live_entries": self.live,
            "in_flight": self.in_flight,
            "share_ratio": f"{self.share_ratio:.2%}",
        }
