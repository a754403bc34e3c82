"""
Exception Handlers
==================

Global exception handlers for consistent error responses.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from tributary.api.schemas.errors import ErrorDetail, ErrorResponse
from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
    ExternalOAuthTokenError,
    InvalidInternalIdError,
    RemoteDatabaseNotReadonlyError,
)
from tributary.shared.error_handling import map_exception_to_error_data

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[str, int] = {
    ConnectorManagerErrorCode.CONNECTOR_NOT_FOUND.value: 404,
    ConnectorManagerErrorCode.CONTENT_NODE_NOT_FOUND.value: 404,
    ConnectorManagerErrorCode.CONNECTOR_OAUTH_TARGET_MISMATCH.value: 400,
    ConnectorManagerErrorCode.CONNECTOR_OAUTH_USER_MISSING_RIGHTS.value: 403,
    ConnectorManagerErrorCode.EXTERNAL_OAUTH_TOKEN_ERROR.value: 401,
    ConnectorManagerErrorCode.INVALID_PERMISSION.value: 400,
    ConnectorManagerErrorCode.INVALID_INTERNAL_ID.value: 400,
    ConnectorManagerErrorCode.REMOTE_DATABASE_NOT_READONLY.value: 400,
    ConnectorManagerErrorCode.MISSING_CURSOR.value: 409,
    ConnectorManagerErrorCode.UNSUPPORTED_OPERATION.value: 400,
}


def _create_error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    error = ErrorDetail(
        code=code,
        message=message,
        timestamp=datetime.now(UTC),
        details=details or None,
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error).model_dump(mode="json"),
    )


async def connector_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Convert connector errors to their mapped status code."""
    error = map_exception_to_error_data(exc)
    status_code = STATUS_BY_CODE.get(error["code"], 500)
    logger.warning(
        f"Connector error: {error['code']} - {error['message']}",
        extra={"path": request.url.path, "method": request.method, "error_code": error["code"]},
    )
    return _create_error_response(error["code"], error["message"], status_code, error["details"])


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to a user-friendly format.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {len(errors)} errors")
    return _create_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        status_code=422,
        details={"errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unhandled exceptions.

    Logs the full exception and returns a safe error message.
    """
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={"path": request.url.path, "method": request.method},
    )
    error = map_exception_to_error_data(exc)
    return _create_error_response(error["code"], error["message"], 500)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    for exc_class in (
        ConnectorManagerError,
        ExternalOAuthTokenError,
        RemoteDatabaseNotReadonlyError,
        InvalidInternalIdError,
    ):
        app.add_exception_handler(exc_class, connector_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
