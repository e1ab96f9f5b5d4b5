"""Shared test fixtures for the console server test suite."""

from collections.abc import Callable
from pathlib import Path

import pytest

from console_server.settings import Settings

FULFILLMENT_URL = "https://fulfillment.example.com"
KEYCLOAK_URL = "https://keycloak.example.com"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at fake upstreams and a temporary static dir."""
    return Settings(
        FULFILLMENT_API_URL=FULFILLMENT_URL,
        KEYCLOAK_URL=KEYCLOAK_URL,
        KEYCLOAK_REALM="test-realm",
        STATIC_DIR=str(tmp_path / "dist"),
        HEALTH_CHECK_TIMEOUT=0.5,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Delays passed to the fake sleep, in seconds."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable:
    """asyncio.sleep replacement that records instead of waiting."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep
