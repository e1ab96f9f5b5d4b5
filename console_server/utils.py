import time
from datetime import datetime, timezone


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string, e.g. 2024-05-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def elapsed_ms(started: float) -> int:
    """Milliseconds since ``started``, a time.perf_counter() reading."""
    return max(0, round((time.perf_counter() - started) * 1000))
