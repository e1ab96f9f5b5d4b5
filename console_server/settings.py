import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from console_server.exceptions import ConfigurationError

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Upstream services
    fulfillment_api_url: str = Field(default="", alias="FULFILLMENT_API_URL")
    keycloak_url: str = Field(default="", alias="KEYCLOAK_URL")
    keycloak_realm: str = Field(default="innabox", alias="KEYCLOAK_REALM")
    oidc_client_id: str = Field(default="osac-ui", alias="OIDC_CLIENT_ID")
    namespace: str = Field(default="innabox-devel", alias="NAMESPACE")
    generic_template_id: str = Field(
        default="osac.templates.ocp_virt_vm", alias="GENERIC_TEMPLATE_ID"
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")
    static_dir: str = Field(default="dist", alias="STATIC_DIR")
    react_strict_mode: bool = Field(default=False, alias="REACT_STRICT_MODE")

    # Resilience Configuration
    health_check_timeout: float = Field(default=5.0, alias="HEALTH_CHECK_TIMEOUT")
    metrics_window_size: int = Field(default=1000, alias="METRICS_WINDOW_SIZE")
    dedup_ttl: float = Field(default=1.0, alias="DEDUP_TTL")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate_required(self) -> None:
        """Raise ConfigurationError if a variable needed to serve is unset."""
        if not self.fulfillment_api_url:
            raise ConfigurationError(
                "FULFILLMENT_API_URL environment variable is not set in ConfigMap"
            )
        if not self.keycloak_url:
            raise ConfigurationError(
                "KEYCLOAK_URL environment variable is not set in ConfigMap"
            )


def load_settings() -> Settings:
    """Build Settings from the current process environment."""
    names = {field.alias for field in Settings.model_fields.values() if field.alias}
    return Settings(**{k: v for k, v in os.environ.items() if k in names})


global_settings = load_settings()
