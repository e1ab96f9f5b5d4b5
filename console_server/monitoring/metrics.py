"""
In-memory request metrics.

Counts every completed request by status class and keeps the latencies of
the last ``capacity`` requests. Exported as a JSON snapshot or as
Prometheus text. Nothing survives a restart.
"""

import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

import psutil
from pydantic import BaseModel

DEFAULT_CAPACITY = 1000
METRIC_PREFIX = "osac_ui_"

# Exposition schema: name, type, help. Names and help text are consumed by
# dashboards and alerts, do not rename.
PROMETHEUS_SCHEMA: tuple[tuple[str, str, str], ...] = (
    ("uptime_seconds", "gauge", "Application uptime in seconds"),
    ("requests_total", "counter", "Total number of HTTP requests"),
    (
        "requests_success",
        "counter",
        "Total number of successful HTTP requests (2xx)",
    ),
    (
        "requests_client_error",
        "counter",
        "Total number of client error HTTP requests (4xx)",
    ),
    (
        "requests_server_error",
        "counter",
        "Total number of server error HTTP requests (5xx)",
    ),
    ("response_time_avg_ms", "gauge", "Average response time in milliseconds"),
    (
        "response_time_p95_ms",
        "gauge",
        "95th percentile response time in milliseconds",
    ),
    (
        "response_time_p99_ms",
        "gauge",
        "99th percentile response time in milliseconds",
    ),
    ("memory_usage_mb", "gauge", "Memory usage in megabytes"),
    ("memory_total_mb", "gauge", "Total memory allocated in megabytes"),
)


class MetricsSnapshot(BaseModel):
    """Point-in-time view of the aggregator."""

    uptime_seconds: int
    requests_total: int
    requests_success: int
    requests_client_error: int
    requests_server_error: int
    response_time_avg_ms: int
    response_time_p95_ms: int
    response_time_p99_ms: int
    memory_usage_mb: int
    memory_total_mb: int


@dataclass
class RequestCounters:
    total: int = 0
    success: int = 0
    client_error: int = 0
    server_error: int = 0


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def process_memory_mb() -> tuple[int, int]:
    """(resident, virtual) memory of this process in MB."""
    info = psutil.Process().memory_info()
    return (
        round_half_up(info.rss / 1024 / 1024),
        round_half_up(info.vms / 1024 / 1024),
    )


def percentile(samples: list[float], p: float) -> float:
    """Nearest-rank percentile, 0 for an empty sample set."""
    if not samples:
        return 0
    ordered = sorted(samples)
    index = math.ceil(p / 100 * len(ordered)) - 1
    index = min(max(index, 0), len(ordered) - 1)
    return ordered[index]


class MetricsAggregator:
    """
    Request counters plus a bounded latency window.

    Usage:
        metrics = MetricsAggregator(capacity=1000)
        metrics.record(200, 12.5)
        metrics.snapshot().response_time_p95_ms
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
        memory_probe: Callable[[], tuple[int, int]] = process_memory_mb,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._clock = clock
        self._memory_probe = memory_probe

        self._started_at = clock()
        self._counters = RequestCounters()
        self._latencies: deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def counters(self) -> RequestCounters:
        return self._counters

    @property
    def window(self) -> list[float]:
        return list(self._latencies)

    def record(self, status_code: int, duration_ms: float) -> None:
        """Record one completed request."""
        self._counters.total += 1

        if 200 <= status_code < 300:
            self._counters.success += 1
        elif 400 <= status_code < 500:
            self._counters.client_error += 1
        elif 500 <= status_code < 600:
            self._counters.server_error += 1

        # deque(maxlen) drops the oldest sample
        self._latencies.append(duration_ms)

    def snapshot(self) -> MetricsSnapshot:
        samples = list(self._latencies)
        average = round_half_up(sum(samples) / len(samples)) if samples else 0
        memory_usage, memory_total = self._memory_probe()

        return MetricsSnapshot(
            uptime_seconds=math.floor(self._clock() - self._started_at),
            requests_total=self._counters.total,
            requests_success=self._counters.success,
            requests_client_error=self._counters.client_error,
            requests_server_error=self._counters.server_error,
            response_time_avg_ms=average,
            response_time_p95_ms=round_half_up(percentile(samples, 95)),
            response_time_p99_ms=round_half_up(percentile(samples, 99)),
            memory_usage_mb=memory_usage,
            memory_total_mb=memory_total,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.snapshot().model_dump()

    def to_prometheus(self) -> str:
        """Prometheus text exposition, one HELP/TYPE block per metric."""
        values = self.to_dict()
        blocks = []
        for name, metric_type, help_text in PROMETHEUS_SCHEMA:
            full_name = f"{METRIC_PREFIX}{name}"
            blocks.append(
                f"# HELP {full_name} {help_text}\n"
                f"# TYPE {full_name} {metric_type}\n"
                f"{full_name} {values[name]}\n"
            )
        return "\n".join(blocks)

    def reset(self) -> None:
        """Back to the state of a fresh process."""
        self._started_at = self._clock()
        self._counters = RequestCounters()
        self._latencies = deque(maxlen=self._capacity)
