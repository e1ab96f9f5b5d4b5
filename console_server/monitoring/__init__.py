from console_server.monitoring.health import (
    BasicHealth,
    Dependency,
    HealthCheckResult,
    HealthProber,
    OverallHealth,
    basic_check,
    default_dependencies,
)
from console_server.monitoring.metrics import (
    MetricsAggregator,
    MetricsSnapshot,
    percentile,
)

__all__ = [
    "BasicHealth",
    "Dependency",
    "HealthCheckResult",
    "HealthProber",
    "OverallHealth",
    "basic_check",
    "default_dependencies",
    "MetricsAggregator",
    "MetricsSnapshot",
    "percentile",
]
