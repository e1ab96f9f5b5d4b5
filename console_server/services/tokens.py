"""In-memory bearer token storage for outbound requests."""

from loguru import logger


class TokenStore:
    """Holds the current access token. Refresh is handled elsewhere."""

    def __init__(self, token: str | None = None):
        self._token = token

    def get_token(self) -> str | None:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token
        logger.debug("Access token updated")

    def clear(self) -> None:
        self._token = None

    def auth_headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}
