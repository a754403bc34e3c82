"""
Shared Error Handling
=====================

Utilities for consistent exception mapping across the application.
"""

import logging
from typing import Any

from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
    ExternalOAuthTokenError,
    InvalidInternalIdError,
    RemoteDatabaseNotReadonlyError,
)
from tributary.shared.messages import ERROR_MESSAGES

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "INTERNAL_ERROR"


def map_exception_to_error_data(e: Exception) -> dict[str, Any]:
    """
    Map an exception to a structured error data dictionary.

    Handles:
    - ConnectorManagerError (its own code and message)
    - ExternalOAuthTokenError
    - RemoteDatabaseNotReadonlyError (offending privileges in details)
    - InvalidInternalIdError

    Returns:
        dict: {
            "code": str,       # ConnectorManagerErrorCode value or INTERNAL_ERROR
            "message": str,    # User-facing message
            "details": dict,   # Extra context, possibly empty
        }
    """
    if isinstance(e, ConnectorManagerError):
        return {"code": e.code.value, "message": e.message, "details": {}}

    if isinstance(e, ExternalOAuthTokenError):
        return {
            "code": ConnectorManagerErrorCode.EXTERNAL_OAUTH_TOKEN_ERROR.value,
            "message": ERROR_MESSAGES["external_oauth_token_error"],
            "details": {"reason": str(e)},
        }

    if isinstance(e, RemoteDatabaseNotReadonlyError):
        return {
            "code": ConnectorManagerErrorCode.REMOTE_DATABASE_NOT_READONLY.value,
            "message": ERROR_MESSAGES["remote_database_not_readonly"],
            "details": {"privileges": e.privileges},
        }

    if isinstance(e, InvalidInternalIdError):
        return {
            "code": ConnectorManagerErrorCode.INVALID_INTERNAL_ID.value,
            "message": ERROR_MESSAGES["invalid_internal_id"],
            "details": {"internal_id": e.internal_id},
        }

    logger.debug(f"No specific mapping for {type(e).__name__}")
    return {"code": INTERNAL_ERROR, "message": ERROR_MESSAGES["default"], "details": {}}
