"""
Runtime configuration providers.

The browser bundle learns where the fulfillment service and the identity
provider live from ``GET /api/config``. Providers resolve that document
into an AppConfig; they are meant to be wrapped by a
SingleFlightInitializer, not cached here.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from console_server.services.errors import InitializationError
from console_server.settings import Settings

REQUIRED_FIELDS = ("fulfillmentApiUrl", "keycloakUrl", "keycloakRealm")


class AppConfig(BaseModel):
    """Runtime configuration served to the console."""

    model_config = ConfigDict(populate_by_name=True)

    keycloak_url: str = Field(alias="keycloakUrl")
    keycloak_realm: str = Field(alias="keycloakRealm")
    fulfillment_api_url: str = Field(alias="fulfillmentApiUrl")
    oidc_client_id: str = Field(default="osac-ui", alias="oidcClientId")
    namespace: str = Field(default="", alias="namespace")
    generic_template_id: str = Field(default="", alias="genericTemplateId")

    @property
    def fulfillment_base_url(self) -> str:
        return f"{self.fulfillment_api_url.rstrip('/')}/api/fulfillment/v1"

    @property
    def oidc_authority(self) -> str:
        return f"{self.keycloak_url.rstrip('/')}/realms/{self.keycloak_realm}"

    def to_public_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


def parse_app_config(data: Any) -> AppConfig:
    """Validate a raw config document, naming any missing required field."""
    if not isinstance(data, dict):
        raise InitializationError(
            "Invalid configuration: expected a JSON object", service_id="config"
        )
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise InitializationError(
            f"Invalid configuration: missing required fields ({', '.join(missing)})",
            service_id="config",
        )
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise InitializationError(
            f"Invalid configuration: {e}", service_id="config"
        ) from e


class ConfigProvider(ABC):
    """Source of the runtime configuration."""

    @abstractmethod
    async def get_config(self) -> AppConfig:
        ...


class StaticConfigProvider(ConfigProvider):
    """Configuration taken from the server's own settings."""

    def __init__(self, settings: Settings):
        self._settings = settings

    async def get_config(self) -> AppConfig:
        s = self._settings
        return parse_app_config(
            {
                "keycloakUrl": s.keycloak_url,
                "keycloakRealm": s.keycloak_realm,
                "oidcClientId": s.oidc_client_id,
                "fulfillmentApiUrl": s.fulfillment_api_url,
                "namespace": s.namespace,
                "genericTemplateId": s.generic_template_id,
            }
        )


class RemoteConfigProvider(ConfigProvider):
    """Configuration fetched from a console server's ``/api/config``."""

    def __init__(
        self,
        config_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config_url = config_url
        self._timeout = timeout
        self._transport = transport

    async def get_config(self) -> AppConfig:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout), transport=self._transport
        ) as client:
            try:
                response = await client.get(self.config_url)
            except httpx.RequestError as e:
                raise InitializationError(
                    f"Failed to fetch config: {e}", service_id="config"
                ) from e

        if not response.is_success:
            raise InitializationError(
                f"Failed to fetch config: {response.status_code} "
                f"{response.reason_phrase}",
                service_id="config",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InitializationError(
                "Failed to fetch config: response is not JSON", service_id="config"
            ) from e

        config = parse_app_config(data)
        logger.info(f"Loaded runtime config from {self.config_url}")
        return config
