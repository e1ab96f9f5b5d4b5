"""
Health checks for the console server.

Two levels:
- basic_check(): liveness, no I/O
- HealthProber.check_all(): readiness, probes every dependency concurrently

A dependency is healthy when it answers with a status below 500. 4xx still
means the service is up and rejected the request. Timeouts, connection
errors and 5xx are unhealthy. Probe failures are reported, never raised.
"""

import asyncio
import time
from typing import Literal

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from console_server.services.errors import ProbeError
from console_server.settings import Settings
from console_server.utils import elapsed_ms, utc_timestamp

DEFAULT_TIMEOUT = 5.0


class Dependency(BaseModel):
    """An external service probed by the deep health check."""

    name: str
    probe_url: str


class HealthCheckResult(BaseModel):
    """Outcome of a single probe."""

    name: str
    status: Literal["healthy", "unhealthy"]
    response_time_ms: int
    http_status: int | None = None
    error: str | None = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"


class OverallHealth(BaseModel):
    """Folded result of every probe."""

    status: Literal["healthy", "degraded"]
    checks: dict[str, HealthCheckResult] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_timestamp)

    @classmethod
    def from_results(cls, results: list[HealthCheckResult]) -> "OverallHealth":
        checks = {result.name: result for result in results}
        healthy = all(result.is_healthy for result in results)
        return cls(status="healthy" if healthy else "degraded", checks=checks)


class BasicHealth(BaseModel):
    """Liveness answer."""

    status: Literal["healthy"] = "healthy"
    timestamp: str = Field(default_factory=utc_timestamp)


def default_dependencies(settings: Settings) -> list[Dependency]:
    """Fulfillment API and Keycloak probes for the given settings."""
    fulfillment = settings.fulfillment_api_url.rstrip("/")
    keycloak = settings.keycloak_url.rstrip("/")
    return [
        Dependency(
            name="fulfillment_api",
            probe_url=f"{fulfillment}/api/fulfillment/v1/virtual_machines?size=1",
        ),
        Dependency(
            name="keycloak",
            probe_url=(
                f"{keycloak}/realms/{settings.keycloak_realm}"
                "/.well-known/openid-configuration"
            ),
        ),
    ]


def basic_check() -> BasicHealth:
    """Process liveness, without touching any dependency."""
    return BasicHealth()


class HealthProber:
    """
    Probes dependencies concurrently, each under its own timeout.

    Usage:
        prober = HealthProber.for_settings(global_settings)
        health = await prober.check_all()
        if health.status != "healthy":
            ...
    """

    def __init__(
        self,
        dependencies: list[Dependency] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.dependencies = list(dependencies or [])
        self.timeout = timeout
        # Non-production clusters use self-signed certificates
        self._verify = verify
        self._transport = transport

    @classmethod
    def for_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HealthProber":
        return cls(
            dependencies=default_dependencies(settings),
            timeout=settings.health_check_timeout,
            transport=transport,
        )

    async def check_all(
        self, dependencies: list[Dependency] | None = None
    ) -> OverallHealth:
        """Probe every dependency and fold the results."""
        targets = self.dependencies if dependencies is None else dependencies

        async with httpx.AsyncClient(
            verify=self._verify,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        ) as client:
            outcomes = await asyncio.gather(
                *(self._probe(client, dep) for dep in targets),
                return_exceptions=True,
            )

        results = []
        for dep, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                # _probe converts its own errors, this only covers the unexpected
                outcome = HealthCheckResult(
                    name=dep.name,
                    status="unhealthy",
                    response_time_ms=0,
                    error=str(outcome) or type(outcome).__name__,
                )
            results.append(outcome)

        health = OverallHealth.from_results(results)
        if health.status != "healthy":
            unhealthy = [r.name for r in results if not r.is_healthy]
            logger.warning(f"Deep health check degraded: {', '.join(unhealthy)}")
        return health

    async def _probe(
        self, client: httpx.AsyncClient, dependency: Dependency
    ) -> HealthCheckResult:
        started = time.perf_counter()
        try:
            status_code = await asyncio.wait_for(
                self._request_status(client, dependency), timeout=self.timeout
            )
        except ProbeError as e:
            return self._unhealthy(dependency, started, str(e), e.status_code)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return self._unhealthy(dependency, started, "Timeout")
        except Exception as e:
            return self._unhealthy(dependency, started, str(e) or type(e).__name__)

        return HealthCheckResult(
            name=dependency.name,
            status="healthy",
            response_time_ms=elapsed_ms(started),
            http_status=status_code,
        )

    async def _request_status(
        self, client: httpx.AsyncClient, dependency: Dependency
    ) -> int:
        # Stream so the body is never read, only the status line matters
        async with client.stream("GET", dependency.probe_url) as response:
            status_code = response.status_code
        if status_code >= 500:
            raise ProbeError(
                dependency.name, f"HTTP {status_code}", status_code=status_code
            )
        return status_code

    def _unhealthy(
        self,
        dependency: Dependency,
        started: float,
        error: str,
        http_status: int | None = None,
    ) -> HealthCheckResult:
        result = HealthCheckResult(
            name=dependency.name,
            status="unhealthy",
            response_time_ms=elapsed_ms(started),
            http_status=http_status,
            error=error,
        )
        logger.debug(f"Probe {dependency.name} unhealthy: {error}")
        return result
