"""
Service layer infrastructure - resilience patterns for outbound API calls.

Provides:
- SingleFlightInitializer: Lazy, shared, retry-on-failure initialization
- retry_with_backoff: Exponential backoff with jitter
- RequestDeduplicator: Shares one request among callers within a TTL window
- FulfillmentClient: HTTP client combining all patterns
"""

from console_server.services.errors import (
    ServiceError,
    InitializationError,
    UnexpectedContentTypeError,
    TransportError,
    RetryableTransportError,
    NonRetryableTransportError,
    RequestTimeoutError,
    ProbeError,
)
from console_server.services.initializer import (
    InitializerState,
    SingleFlightInitializer,
)
from console_server.services.retry import (
    RetryPolicy,
    DEFAULT_POLICY,
    READ_POLICY,
    MUTATION_POLICY,
    default_should_retry,
    retry_with_backoff,
)
from console_server.services.deduplicator import PendingEntry, RequestDeduplicator
from console_server.services.config_provider import (
    AppConfig,
    ConfigProvider,
    RemoteConfigProvider,
    StaticConfigProvider,
)
from console_server.services.tokens import TokenStore
from console_server.services.client import FulfillmentClient
from console_server.services.resources import (
    FulfillmentApi,
    ResourceCollection,
    build_fulfillment_api,
)

__all__ = [
    # Errors
    "ServiceError",
    "InitializationError",
    "UnexpectedContentTypeError",
    "TransportError",
    "RetryableTransportError",
    "NonRetryableTransportError",
    "RequestTimeoutError",
    "ProbeError",
    # Initializer
    "InitializerState",
    "SingleFlightInitializer",
    # Retry
    "RetryPolicy",
    "DEFAULT_POLICY",
    "READ_POLICY",
    "MUTATION_POLICY",
    "default_should_retry",
    "retry_with_backoff",
    # Deduplicator
    "PendingEntry",
    "RequestDeduplicator",
    # Config
    "AppConfig",
    "ConfigProvider",
    "RemoteConfigProvider",
    "StaticConfigProvider",
    # Client
    "TokenStore",
    "FulfillmentClient",
    "FulfillmentApi",
    "ResourceCollection",
    "build_fulfillment_api",
]
