"""
Sync Status State Machine
=========================

Defines the valid states and transitions of a connector's sync status.
"""

from enum import Enum


class SyncStatus(str, Enum):
    """Enumeration of connector sync states."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    ERRORED = "errored"


class SyncErrorType(str, Enum):
    """Reasons recorded alongside an ERRORED sync status."""

    OAUTH_TOKEN_REVOKED = "oauth_token_revoked"
    REMOTE_DATABASE_CONNECTION_NOT_READONLY = "remote_database_connection_not_readonly"
    WORKFLOW_TIMEOUT_FAILURE = "workflow_timeout_failure"
    UNHANDLED_INTERNAL_ACTIVITY_ERROR = "unhandled_internal_activity_error"


class InvalidTransitionError(Exception):
    """Exception raised when an invalid state transition is attempted."""

    def __init__(self, current_status: SyncStatus, new_status: SyncStatus):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(f"Invalid transition from {current_status.value} to {new_status.value}")


class TransitionManager:
    """Manages valid sync status transitions."""

    _VALID_TRANSITIONS = {
        SyncStatus.IDLE: {
            SyncStatus.RUNNING,
            SyncStatus.ERRORED,
            SyncStatus.SUCCEEDED,  # Creation marks an empty connector as synced
        },
        SyncStatus.RUNNING: {
            SyncStatus.SUCCEEDED,
            SyncStatus.ERRORED,
        },
        SyncStatus.SUCCEEDED: {
            SyncStatus.RUNNING,
            SyncStatus.ERRORED,
        },
        SyncStatus.ERRORED: {
            SyncStatus.RUNNING,
            SyncStatus.SUCCEEDED,
        },
    }

    @classmethod
    def validate_transition(cls, current_status: SyncStatus, new_status: SyncStatus) -> None:
        """
        Validate if a transition is allowed.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        # A retried activity may re-apply the status it already set
        if current_status == new_status:
            return

        allowed_next_states = cls._VALID_TRANSITIONS.get(current_status, set())
        if new_status not in allowed_next_states:
            raise InvalidTransitionError(current_status, new_status)
