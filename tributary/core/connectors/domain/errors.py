"""
Connector Errors
================

Exception taxonomy shared by every provider.

- Fatal/configuration errors (``ConnectorManagerError``, ``InvalidInternalIdError``)
  are surfaced to the caller and never retried.
- ``ExternalOAuthTokenError`` pauses the owning connector when raised inside an activity.
- ``RemoteDatabaseNotReadonlyError`` triggers the safety garbage collection path.
"""

from enum import Enum


class ConnectorManagerErrorCode(str, Enum):
    """Machine-readable failure reasons returned by connector managers."""

    CONNECTOR_NOT_FOUND = "CONNECTOR_NOT_FOUND"
    CONNECTOR_OAUTH_TARGET_MISMATCH = "CONNECTOR_OAUTH_TARGET_MISMATCH"
    CONNECTOR_OAUTH_USER_MISSING_RIGHTS = "CONNECTOR_OAUTH_USER_MISSING_RIGHTS"
    EXTERNAL_OAUTH_TOKEN_ERROR = "EXTERNAL_OAUTH_TOKEN_ERROR"
    INVALID_PERMISSION = "INVALID_PERMISSION"
    INVALID_INTERNAL_ID = "INVALID_INTERNAL_ID"
    CONTENT_NODE_NOT_FOUND = "CONTENT_NODE_NOT_FOUND"
    REMOTE_DATABASE_NOT_READONLY = "REMOTE_DATABASE_NOT_READONLY"
    MISSING_CURSOR = "MISSING_CURSOR"
    UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"


class ConnectorManagerError(Exception):
    """Typed failure of a connector management operation."""

    def __init__(self, code: ConnectorManagerErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code.value}: {message}")


class ExternalOAuthTokenError(Exception):
    """The provider rejected our credentials (expired, revoked or insufficient token)."""

    def __init__(self, message: str = "External OAuth token error", inner: Exception | None = None):
        self.inner = inner
        super().__init__(message)


class RemoteDatabaseNotReadonlyError(Exception):
    """A warehouse connection that must be read-only has write privileges."""

    def __init__(self, message: str, privileges: list[str] | None = None):
        self.privileges = privileges or []
        super().__init__(message)


class InvalidInternalIdError(ValueError):
    """An internal id could not be parsed into its structural components."""

    def __init__(self, internal_id: str):
        self.internal_id = internal_id
        super().__init__(f"Invalid internal id: {internal_id}")


class ConnectorNotFoundError(Exception):
    """Raised by activities when the connector row is gone."""

    def __init__(self, connector_id: int):
        self.connector_id = connector_id
        super().__init__(f"Connector not found: {connector_id}")
