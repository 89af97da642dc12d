# ============================================================================
# API Models - Response Schemas
# ============================================================================

"""
Pydantic models for API responses.
Products are passed through as opaque documents and have no model here.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


# ============================================================================
# HEALTH
# ============================================================================


class HealthResponse(BaseModel):
    """Response for GET /health. `mongo` mirrors the availability flag."""
    app: str
    mongo: bool

    model_config = ConfigDict(
        json_schema_extra={"example": {"app": "OK", "mongo": True}}
    )


# ============================================================================
# GENERIC ERROR RESPONSE
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body for query failures and unexpected errors."""
    error: str
    error_code: str
    message: str
    context: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "QueryError",
                "error_code": "QUERY_ERROR",
                "message": "text search failed: text index required for $text query",
                "context": {"text": "rocket"},
                "request_id": "5b0d2f1e-7c1e-4a52-9a5e-3c1f0f1f2a10",
            }
        }
    )
