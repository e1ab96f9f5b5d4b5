"""
Service layer exceptions.

Errors raised by the resilience layer keep the original cause reachable:
retries and deduplication re-raise the very same instance, and the
transport errors below chain the httpx error with ``raise ... from``.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class InitializationError(ServiceError):
    """Configuration could not be resolved or was incomplete."""

    pass


class UnexpectedContentTypeError(ServiceError):
    """A successful response did not carry JSON."""

    def __init__(self, content_type: str, endpoint: str, service_id: str | None = None):
        self.content_type = content_type
        self.endpoint = endpoint
        super().__init__(
            f"API returned {content_type} instead of JSON", service_id=service_id
        )


class TransportError(ServiceError):
    """An outbound call failed at the HTTP or network level."""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        service_id: str | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, service_id=service_id)


class RetryableTransportError(TransportError):
    """Network failure or 5xx response."""

    retryable = True


class NonRetryableTransportError(TransportError):
    """4xx response or explicit cancellation."""

    pass


class RequestTimeoutError(RetryableTransportError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s "
            "(network error)",
            service_id=service_id,
        )


class ProbeError(ServiceError):
    """A health probe failed. Never escapes the prober."""

    def __init__(
        self,
        dependency: str,
        message: str,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, service_id=dependency)
