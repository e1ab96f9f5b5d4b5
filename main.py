"""
OSAC console server entry point
Serves the console bundle, runtime config, health and metrics endpoints
"""

import sys

import uvicorn
from loguru import logger

from console_server.app import create_app
from console_server.exceptions import ConfigurationError
from console_server.monitoring.logging import setup_logging
from console_server.settings import global_settings


def main() -> None:
    """Main function"""
    setup_logging(global_settings)

    try:
        global_settings.validate_required()
    except ConfigurationError as e:
        logger.error(e.detail)
        sys.exit(1)

    app = create_app(global_settings)

    logger.info(f"OSAC UI server listening on port {global_settings.port}")
    uvicorn.run(
        app,
        host=global_settings.host,
        port=global_settings.port,
        log_level="warning",
    )


if __name__ == "__main__":
    main()
