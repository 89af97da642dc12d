"""
================================================================================
FILE: catalogue/api/main.py
================================================================================

PURPOSE:
    FastAPI application factory and initialization. Creates and configures the
    FastAPI app instance, registers the request dispatcher middleware, the
    exception handlers and the routes, and wires the connection supervisor
    into the lifespan (startup/shutdown).

WORKFLOW:
    1. create_app(): build FastAPI app, middleware, handlers, routes
    2. Lifespan startup:
       a. Load Settings (unless injected), configure logging, log the
          redacted settings
       b. Resolve ConnectionConfig -> ConfigurationError aborts startup
       c. Build ConnectionSupervisor + AvailabilityGate (unless injected)
       d. supervisor.start() (fire-and-forget, does not block startup)
    3. Lifespan shutdown: await supervisor.stop()

REQUEST DISPATCH (middleware, every request):
    1. request_id = inbound X-Request-ID or fresh UUID4
    2. request.state.log = logger bound to request_id/method/path
    3. call matched handler (unmatched -> 404)
    4. set Timing-Allow-Origin: * and Access-Control-Allow-Origin: *
       (plus X-Request-ID) on the response
    5. log "request completed" with status and response time

ERROR MAPPING:
    - StoreUnavailableError -> 500 text "Database not available"
    - QueryError / other CatalogueException -> 500 JSON (to_dict + request_id)
    - anything else -> 500 JSON generic body, uniform headers still set

KEY FACTS:
    - Startup fails (server never serves) on a configuration error
    - Startup does NOT wait for MongoDB; requests are gated until connected
    - One supervisor per app instance, kept on app.state

TESTING ENVIRONMENT:
    - create_app(settings=Settings(...), supervisor=ConnectionSupervisor(...))
    - httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) for routes
    - TestClient(app) as context manager to run startup/shutdown
"""


from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from catalogue import __version__
from catalogue.api import routes
from catalogue.config.constants import (
    API_DESCRIPTION,
    API_TITLE,
    REQUEST_ID_HEADER,
    UNIFORM_RESPONSE_HEADERS,
)
from catalogue.config.settings import Settings
from catalogue.core.availability import AvailabilityGate
from catalogue.core.exceptions import CatalogueException, StoreUnavailableError
from catalogue.core.logging_setup import bind_request_logger, configure_logging
from catalogue.core.supervisor import ConnectionSupervisor
from catalogue.utils import format_logger_context, generate_request_id

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("catalogue.request")


def _apply_uniform_headers(response: Response, request_id: Optional[str]) -> Response:
    for name, value in UNIFORM_RESPONSE_HEADERS.items():
        response.headers[name] = value
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _request_log(request: Request):
    return getattr(request.state, "log", logger)


def install_supervisor(app: FastAPI, supervisor: ConnectionSupervisor) -> None:
    """Attach a supervisor and the gate that reads it to the app."""
    app.state.supervisor = supervisor
    app.state.gate = AvailabilityGate(supervisor)


# =========================================================================
# STARTUP / SHUTDOWN
# =========================================================================

async def _startup(app: FastAPI) -> None:
    """
    SEQUENCE:
    1. Load settings from env (.env supported)
    2. Configure logging, log settings with credentials redacted
    3. Resolve connection profile (fatal on misconfiguration)
    4. Build supervisor + gate
    5. Start the connect loop in the background
    """
    if app.state.settings is None:
        app.state.settings = Settings()
    settings = app.state.settings

    configure_logging(settings.log_level, settings.log_format)
    logger.info("Settings loaded", extra={"settings": settings.to_dict()})

    try:
        config = settings.resolve_connection_config()
    except CatalogueException as e:
        logger.critical(
            f"STARTUP FAILED: {e.message}",
            extra={"error_code": e.error_code},
        )
        raise

    if app.state.supervisor is None:
        install_supervisor(app, ConnectionSupervisor(config))

    app.state.supervisor.start()
    logger.info(
        f"Catalogue service started (store mode={config.mode.value}, "
        f"connecting in background)"
    )


async def _shutdown(app: FastAPI) -> None:
    """Cancel the connect loop and close the MongoDB client."""
    if app.state.supervisor is not None:
        await app.state.supervisor.stop()
    logger.info("Catalogue service shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    supervisor: Optional[ConnectionSupervisor] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Pre-built settings (default: loaded from env at startup)
        supervisor: Pre-built supervisor (default: built at startup from
            the resolved connection config)

    Returns:
        FastAPI: Configured application instance ready for startup.
    """
    # =========================================================================
    # LIFESPAN (startup / shutdown)
    # =========================================================================
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await _startup(app)
        try:
            yield
        finally:
            await _shutdown(app)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.supervisor = None
    app.state.gate = None
    if supervisor is not None:
        install_supervisor(app, supervisor)

    # =========================================================================
    # EXCEPTION HANDLERS
    # =========================================================================
    @app.exception_handler(StoreUnavailableError)
    async def unavailable_exception_handler(request: Request, exc: StoreUnavailableError):
        """Gate rejection (already logged by the gate)."""
        return PlainTextResponse(exc.message, status_code=500)

    @app.exception_handler(CatalogueException)
    async def catalogue_exception_handler(request: Request, exc: CatalogueException):
        """Query failures and other service errors: log, 500 with detail."""
        request_id = getattr(request.state, "request_id", None)
        _request_log(request).error(
            f"ERROR {exc.error_code}: {exc.message}",
            extra={"error_code": exc.error_code, "error_context": exc.context},
        )
        body = exc.to_dict()
        body["request_id"] = request_id
        return JSONResponse(status_code=500, content=body)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)
        _request_log(request).error(
            f"Unexpected error: {str(exc)}",
            exc_info=True,
        )
        response = JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "error_code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            },
        )
        return _apply_uniform_headers(response, request_id)

    # =========================================================================
    # MIDDLEWARE (request dispatcher)
    # =========================================================================
    @app.middleware("http")
    async def dispatch_middleware(request: Request, call_next):
        """Bind per-request logger, apply uniform headers, log completion."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id
        request.state.log = bind_request_logger(
            request_logger,
            format_logger_context(
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                client=request.client.host if request.client else None,
            ),
        )

        start_time = time.perf_counter()
        response = await call_next(request)
        response_time_ms = round((time.perf_counter() - start_time) * 1000, 2)

        _apply_uniform_headers(response, request_id)
        request.state.log.info(
            "request completed",
            extra={
                "status_code": response.status_code,
                "response_time_ms": response_time_ms,
            },
        )
        return response

    # =========================================================================
    # ROUTES
    # =========================================================================
    app.include_router(routes.router)

    return app
