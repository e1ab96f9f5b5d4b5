"""
FulfillmentClient - Async HTTP client for the fulfillment API.

Combines:
- SingleFlightInitializer to resolve the base URL once, lazily
- retry_with_backoff with a read policy for GET and a stricter one for mutations
- TokenStore for the bearer token
"""

from typing import Any

import httpx
from loguru import logger

from console_server.services.config_provider import ConfigProvider
from console_server.services.errors import (
    InitializationError,
    NonRetryableTransportError,
    RequestTimeoutError,
    RetryableTransportError,
    UnexpectedContentTypeError,
)
from console_server.services.initializer import SingleFlightInitializer
from console_server.services.retry import (
    MUTATION_POLICY,
    READ_POLICY,
    RetryPolicy,
    retry_with_backoff,
)
from console_server.services.tokens import TokenStore


class FulfillmentClient:
    """
    HTTP client whose first request triggers configuration loading.

    Usage:
        client = FulfillmentClient(RemoteConfigProvider("https://console/api/config"))
        await client.initialize()  # optional, otherwise done on first request

        vms = await client.get("/virtual_machines")
        await client.delete(f"/virtual_machines/{vm_id}")
    """

    SERVICE_ID = "fulfillment"

    def __init__(
        self,
        config_provider: ConfigProvider,
        token_store: TokenStore | None = None,
        timeout: float = 30.0,
        read_policy: RetryPolicy = READ_POLICY,
        mutation_policy: RetryPolicy = MUTATION_POLICY,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config_provider = config_provider
        self._tokens = token_store or TokenStore()
        self._timeout = timeout
        self._transport = transport

        self.read_policy = read_policy
        self.mutation_policy = mutation_policy

        self._initializer: SingleFlightInitializer[str] = SingleFlightInitializer(
            self._resolve_base_url, name="fulfillment-client"
        )

        # HTTP client (lazy initialization, needs the base URL)
        self._http_client: httpx.AsyncClient | None = None

    @property
    def config_provider(self) -> ConfigProvider:
        return self._config_provider

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def base_url(self) -> str | None:
        return self._initializer.value if self._initializer.is_ready else None

    async def initialize(self) -> None:
        """Pre-initialize on startup instead of on the first request."""
        await self._initializer.initialize()

    async def _resolve_base_url(self) -> str:
        config = await self._config_provider.get_config()
        if not config.fulfillment_api_url:
            raise InitializationError(
                "fulfillmentApiUrl not found in configuration",
                service_id=self.SERVICE_ID,
            )
        base_url = config.fulfillment_base_url
        logger.info(f"API client initialized with baseURL {base_url}")
        return base_url

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client, initializing first."""
        base_url = await self._initializer.ensure_initialized()
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._http_client

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        logger.debug(f"API GET request {endpoint}")

        async def attempt() -> Any:
            response = await self._send("GET", endpoint, params=params)
            content_type = response.headers.get("content-type")
            if content_type and "application/json" not in content_type:
                logger.error(
                    f"Expected JSON but received {content_type} for {endpoint}"
                )
                raise UnexpectedContentTypeError(
                    content_type, endpoint, service_id=self.SERVICE_ID
                )
            return self._decode(response)

        return await retry_with_backoff(attempt, self.read_policy)

    async def post(self, endpoint: str, data: Any = None) -> Any:
        return await self._mutate("POST", endpoint, data)

    async def put(self, endpoint: str, data: Any = None) -> Any:
        return await self._mutate("PUT", endpoint, data)

    async def patch(self, endpoint: str, data: Any = None) -> Any:
        return await self._mutate("PATCH", endpoint, data)

    async def delete(self, endpoint: str) -> Any:
        return await self._mutate("DELETE", endpoint)

    async def _mutate(self, method: str, endpoint: str, data: Any = None) -> Any:
        logger.debug(f"API {method} request {endpoint}")

        async def attempt() -> Any:
            response = await self._send(method, endpoint, json_data=data)
            return self._decode(response)

        return await retry_with_backoff(attempt, self.mutation_policy)

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> httpx.Response:
        """Execute one HTTP request and classify failures."""
        client = await self._get_http_client()
        headers = {"Accept": "application/json", **self._tokens.auth_headers()}

        try:
            response = await client.request(
                method=method,
                url=endpoint,
                params=params,
                headers=headers,
                json=json_data,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self.SERVICE_ID, self._timeout) from e
        except httpx.RequestError as e:
            raise RetryableTransportError(
                f"Network error: {e}", service_id=self.SERVICE_ID
            ) from e

        status = response.status_code
        logger.debug(f"API {method} response {endpoint} {status}")

        if status >= 500:
            raise RetryableTransportError(
                f"HTTP {status}: {response.text[:200]}",
                status_code=status,
                service_id=self.SERVICE_ID,
            )
        if not response.is_success:
            raise NonRetryableTransportError(
                f"HTTP {status}: {response.text[:200]}",
                status_code=status,
                service_id=self.SERVICE_ID,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    def get_status(self) -> dict[str, Any]:
        """Initialization status, for diagnostics."""
        return {
            "service_id": self.SERVICE_ID,
            "state": self._initializer.state.value,
            "base_url": self.base_url,
            "attempts": self._initializer.attempts,
        }

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("FulfillmentClient closed")

    async def __aenter__(self) -> "FulfillmentClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
