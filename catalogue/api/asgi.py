# ASGI entry point
"""
================================================================================
FILE: catalogue/api/asgi.py
================================================================================

PURPOSE:
    ASGI entry point for production servers. Exposes `app` for
    `uvicorn catalogue.api.asgi:app` and `main()` for the
    `catalogue-server` console script.

WORKFLOW (main):
    1. Load Settings from env (.env supported); invalid values exit with
       status 1
    2. Configure logging
    3. Resolve the connection profile; misconfiguration exits with status 1
       before the listener is bound
    4. Log "Started on <port>" and hand over to uvicorn

KEY FACTS:
    - Do NOT rename `app`; ASGI servers look for it by default
    - Settings for `app` are loaded at startup, not at import
    - uvicorn's own logging config is disabled so every line goes through
      the service's formatter
"""

import logging
import sys

import uvicorn
from pydantic import ValidationError

from catalogue.api.main import create_app
from catalogue.config.settings import Settings
from catalogue.core.exceptions import ConfigurationError
from catalogue.core.logging_setup import configure_logging

logger = logging.getLogger(__name__)

app = create_app()

__all__ = ["app", "main"]


def main() -> None:
    """Run the catalogue service under uvicorn."""
    try:
        settings = Settings()
    except ValidationError as e:
        configure_logging()
        logger.critical(f"STARTUP FAILED: invalid settings: {e}", extra={"error_code": "CONFIG_ERROR"})
        sys.exit(1)
    configure_logging(settings.log_level, settings.log_format)

    try:
        config = settings.resolve_connection_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP FAILED: {e.message}", extra={"error_code": e.error_code})
        sys.exit(1)

    logger.info(
        f"Started on {settings.server_port}",
        extra={"mode": config.mode.value, "url": config.redacted_url},
    )
    uvicorn.run(
        create_app(settings=settings),
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
