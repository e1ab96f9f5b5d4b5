"""FastAPI server for the console: runtime config, health, metrics and the SPA bundle."""

import time
from pathlib import Path

from fastapi import FastAPI, Query, Request
from fastapi.responses import (
    FileResponse,
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    Response,
)
from loguru import logger

from console_server.exceptions import StaticAssetError
from console_server.monitoring.health import HealthProber, basic_check
from console_server.monitoring.metrics import MetricsAggregator
from console_server.services.config_provider import StaticConfigProvider
from console_server.settings import Settings
from console_server.utils import elapsed_ms, utc_timestamp

UNMETERED_PATHS = ("/health", "/metrics")
CACHEABLE_SUFFIXES = (
    ".js", ".css", ".png", ".jpg", ".jpeg", ".gif", ".svg",
    ".woff", ".woff2", ".ttf", ".eot",
)
PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


def security_headers(settings: Settings) -> dict[str, str]:
    """Headers added to every response."""
    csp = "; ".join(
        [
            "default-src 'self'",
            "script-src 'self' 'unsafe-inline'",
            "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
            "img-src 'self' data: https://cdn.jsdelivr.net",
            "font-src 'self' data:",
            f"connect-src 'self' {settings.keycloak_url} {settings.fulfillment_api_url}",
            "frame-ancestors 'none'",
            "base-uri 'self'",
            "form-action 'self'",
        ]
    )
    return {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "X-XSS-Protection": "0",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        "Content-Security-Policy": csp,
    }


class ConsoleServer:
    """HTTP server wiring the monitoring state to its endpoints."""

    def __init__(
        self,
        settings: Settings,
        metrics: MetricsAggregator | None = None,
        prober: HealthProber | None = None,
    ):
        self.settings = settings
        self.metrics = metrics or MetricsAggregator(
            capacity=settings.metrics_window_size
        )
        self.prober = prober or HealthProber.for_settings(settings)
        self.config_provider = StaticConfigProvider(settings)
        self.static_dir = Path(settings.static_dir)
        self._headers = security_headers(settings)

        self.app = FastAPI(title="OSAC Console Server", docs_url=None, redoc_url=None)

        # Last registered middleware runs first
        self.app.middleware("http")(self.add_security_headers)
        self.app.middleware("http")(self.record_request)
        self.app.exception_handler(Exception)(self.unhandled_error)

        # Register routes
        self.app.get("/api/config")(self.runtime_config)
        self.app.get("/health")(self.health_check)
        self.app.get("/metrics")(self.metrics_endpoint)
        self.app.get("/{full_path:path}")(self.serve_spa)

    async def add_security_headers(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(self._headers)
        return response

    async def unhandled_error(self, request: Request, exc: Exception) -> Response:
        # Built outside the middleware stack, so the headers are set here
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return PlainTextResponse(
            "Internal Server Error", status_code=500, headers=self._headers
        )

    async def record_request(self, request: Request, call_next) -> Response:
        """Log every request and feed the metrics aggregator."""
        started = time.perf_counter()
        path = request.url.path
        try:
            response = await call_next(request)
        except Exception:
            if path not in UNMETERED_PATHS:
                self.metrics.record(500, elapsed_ms(started))
            raise

        duration = elapsed_ms(started)
        if path not in UNMETERED_PATHS:
            self.metrics.record(response.status_code, duration)

        message = (
            f"HTTP Request {request.method} {path} {response.status_code} "
            f"{duration}ms ua={request.headers.get('user-agent', '')[:50]}"
        )
        if response.status_code >= 400:
            logger.warning(message)
        else:
            logger.debug(message)
        return response

    async def runtime_config(self):
        """Runtime configuration for the browser bundle."""
        logger.debug("Serving runtime configuration")
        config = await self.config_provider.get_config()
        return config.to_public_dict()

    async def health_check(self, deep: str = Query(default="false")):
        """Liveness by default, dependency readiness with ?deep=true."""
        if deep != "true":
            return basic_check().model_dump()

        try:
            health = await self.prober.check_all()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "error": str(e),
                    "timestamp": utc_timestamp(),
                },
            )

        status_code = 200 if health.status == "healthy" else 503
        return JSONResponse(
            status_code=status_code, content=health.model_dump(exclude_none=True)
        )

    async def metrics_endpoint(self, format: str = Query(default="prometheus")):
        """Prometheus text by default, JSON with ?format=json."""
        if format == "json":
            return self.metrics.to_dict()
        return PlainTextResponse(
            self.metrics.to_prometheus(), media_type=PROMETHEUS_CONTENT_TYPE
        )

    async def serve_spa(self, full_path: str) -> Response:
        """Static asset if one exists, otherwise index.html for client routing."""
        asset = self._resolve_asset(full_path)
        if asset is not None:
            headers = {}
            if asset.suffix.lower() in CACHEABLE_SUFFIXES:
                headers["Cache-Control"] = "public, max-age=31536000, immutable"
            return FileResponse(asset, headers=headers)

        index_path = self.static_dir / "index.html"
        try:
            html = index_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading index.html: {e}")
            raise StaticAssetError() from e

        return HTMLResponse(
            self._inject_runtime_config(html),
            headers={
                "Cache-Control": "no-cache, no-store, must-revalidate",
                "Pragma": "no-cache",
                "Expires": "0",
            },
        )

    def _resolve_asset(self, full_path: str) -> Path | None:
        if not full_path:
            return None
        root = self.static_dir.resolve()
        candidate = (root / full_path).resolve()
        if not candidate.is_relative_to(root) or not candidate.is_file():
            return None
        return candidate

    def _inject_runtime_config(self, html: str) -> str:
        strict_mode = "true" if self.settings.react_strict_mode else "false"
        script = (
            "\n    <script>\n"
            "      window.__OSAC_UI_CONFIG__ = {\n"
            f"        strictMode: {strict_mode}\n"
            "      };\n"
            "    </script>"
        )
        return html.replace("</head>", f"{script}\n  </head>", 1)


def create_app(
    settings: Settings,
    metrics: MetricsAggregator | None = None,
    prober: HealthProber | None = None,
) -> FastAPI:
    """Create FastAPI app for the console.

    Args:
        settings: Server settings
        metrics: Shared aggregator, a fresh one if omitted
        prober: Health prober, built from settings if omitted

    Returns:
        FastAPI app
    """
    server = ConsoleServer(settings, metrics=metrics, prober=prober)
    return server.app
