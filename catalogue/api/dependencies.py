"""
================================================================================
FILE: catalogue/api/dependencies.py
================================================================================

PURPOSE:
FastAPI dependency injection functions. Provides reusable dependencies
that are injected into route handlers via Depends():
- Configuration access
- Connection supervisor / availability gate access
- Per-request logger
- Gated store access (the Availability Gate in front of every data route)

DEPENDENCY CHAIN:
get_settings()
├─ Used by: by-SKU route (GO_SLOW)
get_supervisor()
├─ Used by: health route
get_gate()
├─ Used by: require_store
get_request_logger()
├─ Bound by the dispatcher middleware, used by all routes
require_store()
├─ Depends on: get_gate, get_request_logger
├─ Used by: every data-serving route

KEY FACTS:
- Components live on app.state (set by create_app / startup hook)
- Missing components mean startup did not complete -> 503
- require_store raises StoreUnavailableError BEFORE any store call

TESTING ENVIRONMENT:
- create_app(settings=..., supervisor=...) installs test doubles
- Or override with: app.dependency_overrides[require_store] = ...
"""

import logging
from typing import Union

from fastapi import Depends, HTTPException, Request, status

from catalogue.config.settings import Settings
from catalogue.core.availability import AvailabilityGate
from catalogue.core.logging_setup import bind_request_logger
from catalogue.core.store_handle import StoreHandle
from catalogue.core.supervisor import ConnectionSupervisor
from catalogue.utils import format_logger_context, generate_request_id

logger = logging.getLogger(__name__)


async def get_settings(request: Request) -> Settings:
    """
    Get application settings.

    Raises:
        HTTPException: If settings not initialized (startup failed)
    """
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        logger.error("Settings not available: startup did not complete")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service initialization failed"
        )
    return settings


async def get_supervisor(request: Request) -> ConnectionSupervisor:
    """
    Get the ConnectionSupervisor (read-only use: flag, handle).

    Raises:
        HTTPException: If the supervisor was never installed
    """
    supervisor = getattr(request.app.state, "supervisor", None)
    if supervisor is None:
        logger.error("ConnectionSupervisor not available: startup did not complete")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Connection supervisor not initialized"
        )
    return supervisor


async def get_gate(request: Request) -> AvailabilityGate:
    """Get the AvailabilityGate bound to the app's supervisor."""
    gate = getattr(request.app.state, "gate", None)
    if gate is None:
        logger.error("AvailabilityGate not available: startup did not complete")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Availability gate not initialized"
        )
    return gate


async def get_request_logger(
    request: Request,
) -> Union[logging.Logger, logging.LoggerAdapter]:
    """
    Per-request logger bound by the dispatcher middleware.

    Falls back to a freshly bound adapter when called outside the middleware
    (e.g. a router mounted on a bare app in tests).
    """
    log = getattr(request.state, "log", None)
    if log is None:
        log = bind_request_logger(
            logging.getLogger("catalogue.request"),
            format_logger_context(
                request_id=getattr(request.state, "request_id", None) or generate_request_id(),
                method=request.method,
                path=request.url.path,
            ),
        )
        request.state.log = log
    return log


async def require_store(
    gate: AvailabilityGate = Depends(get_gate),
    log: logging.LoggerAdapter = Depends(get_request_logger),
) -> StoreHandle:
    """
    Availability gate as a dependency.

    Returns:
        StoreHandle for the request

    Raises:
        StoreUnavailableError: If the store is not available (logged)
    """
    return gate.acquire(log)
