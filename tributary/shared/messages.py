"""
Shared User Messages
====================

User-facing messages for errors returned by the connector API.
"""

ERROR_MESSAGES = {
    # Credentials
    "external_oauth_token_error": "The connection's credentials were rejected by the provider.",
    "remote_database_not_readonly": "The warehouse role must only hold read privileges.",
    # Requests
    "invalid_internal_id": "The content node id is malformed.",
    # Generic
    "default": "An unexpected error occurred.",
}
