"""
Error Response Schemas
======================

Pydantic models for consistent error responses.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    timestamp: datetime | None = Field(None, description="When the error occurred")
    details: dict[str, Any] | None = Field(None, description="Additional context")

    model_config = {
        "json_schema_extra": {
            "example": {
                "code": "CONNECTOR_NOT_FOUND",
                "message": "Connector 42 not found",
                "timestamp": "2026-01-15T10:30:00Z",
            }
        }
    }


class ErrorResponse(BaseModel):
    """Standard error response wrapper."""

    error: ErrorDetail
