"""
Custom exceptions and error handlers
"""

from fastapi import HTTPException, status


class ConfigurationError(Exception):
    """Required runtime configuration is missing or invalid"""

    def __init__(self, detail: str = "Invalid configuration"):
        self.detail = detail
        super().__init__(detail)


class StaticAssetError(HTTPException):
    """Static bundle could not be served"""

    def __init__(self, detail: str = "Internal Server Error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail
        )
