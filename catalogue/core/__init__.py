# Connection lifecycle and availability gating
"""
================================================================================
FILE: catalogue/core/__init__.py
================================================================================

PURPOSE:
    Package initialization for core layer.

MODULES:
    - exceptions: error hierarchy (imported here, dependency-free)
    - store_handle: StoreHandle (motor client + collection, queries)
    - supervisor: ConnectionSupervisor (connect/retry state machine)
    - availability: AvailabilityGate (request-time guard)
    - logging_setup: formatters and per-request logger adapter

KEY FACTS:
    - Only the exception hierarchy is re-exported; the other modules import
      catalogue.config and are imported directly by their callers.
"""

from catalogue.core.exceptions import (
    CatalogueException,
    ConfigurationError,
    FatalException,
    QueryError,
    RecoverableException,
    StoreConnectionError,
    StoreUnavailableError,
)

__all__ = [
    "CatalogueException",
    "RecoverableException",
    "FatalException",
    "StoreConnectionError",
    "StoreUnavailableError",
    "QueryError",
    "ConfigurationError",
]
