"""
================================================================================
FILE: catalogue/core/exceptions.py
================================================================================

PURPOSE:
    Custom exception hierarchy for the catalogue service. Defines every
    exception type the store, supervisor and API layers raise, so that the
    supervisor knows what to retry and the API knows how to answer.

EXCEPTION CATEGORIES:
    - RECOVERABLE (transient):
        * StoreConnectionError: connect attempt failed (supervisor retries)
        * StoreUnavailableError: store not usable at request time (500 text)
        * QueryError: store reachable, operation failed (500 JSON, no retry)

    - FATAL (fail fast):
        * ConfigurationError: no usable connection profile (startup aborts)

KEY FACTS:
    - NO imports from catalogue modules (prevents circular dependencies)
    - All exceptions inherit from CatalogueException
    - Each exception has error_code for categorization
    - Not-found is NOT an exception (handlers answer 404 directly)
"""

from typing import Any, Dict, Optional


# ================================================================================
# SECTION 1: BASE EXCEPTIONS
# ================================================================================

class CatalogueException(Exception):
    """
    Root exception for all catalogue service errors.

    Attributes:
        message (str): Human-readable error message
        error_code (str): Machine-readable error code for categorization
        context (dict): Additional context (optional)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dict for JSON response"""
        return {
            "error": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context
        }


class RecoverableException(CatalogueException):
    """
    Transient failure. The condition may clear on its own
    (store comes up, network recovers).
    """
    pass


class FatalException(CatalogueException):
    """
    Permanent failure. Retrying will not help; fail fast.
    """
    pass

# ================================================================================
# SECTION 2: STORE EXCEPTIONS
# ================================================================================

class StoreConnectionError(RecoverableException):
    """Connection attempt to the document store failed (supervisor retries)"""

    def __init__(self, message: str, context: Optional[Dict] = None):
        super().__init__(message, error_code="STORE_CONNECTION_ERROR", context=context)


class StoreUnavailableError(RecoverableException):
    """Store is not usable right now; request rejected before any query"""

    def __init__(self, message: str, context: Optional[Dict] = None):
        super().__init__(message, error_code="SERVICE_UNAVAILABLE", context=context)


class QueryError(RecoverableException):
    """Store reachable but the operation failed (surfaced as 500, not retried)"""

    def __init__(self, message: str, context: Optional[Dict] = None):
        super().__init__(message, error_code="QUERY_ERROR", context=context)

# ================================================================================
# SECTION 3: CONFIGURATION EXCEPTIONS
# ================================================================================

class ConfigurationError(FatalException):
    """Invalid configuration (fatal, aborts startup)"""

    def __init__(self, message: str, context: Optional[Dict] = None):
        super().__init__(message, error_code="CONFIG_ERROR", context=context)
