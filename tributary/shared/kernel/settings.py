"""
Settings Protocol
=================

Defines the settings interface that core/application layers depend on.
Infrastructure provides implementations (e.g., from tributary.api.config).
"""

from typing import Protocol


class DatabaseSettingsProtocol(Protocol):
    """Protocol for database settings."""

    database_url: str
    pool_size: int
    max_overflow: int


class ContentStoreSettingsProtocol(Protocol):
    """Protocol for the downstream content store API."""

    base_url: str
    timeout_seconds: float


class CredentialsSettingsProtocol(Protocol):
    """Protocol for the connection credentials service."""

    base_url: str
    api_key: str
    timeout_seconds: float


class SyncSettingsProtocol(Protocol):
    """Protocol for sync engine tuning."""

    zendesk_batch_size: int
    zendesk_retention_period_days: int
    item_concurrency: int
    sub_fetch_concurrency: int
    incremental_sync_interval_seconds: int
    garbage_collection_interval_seconds: int
    snowflake_sync_interval_seconds: int
    activity_time_limit_seconds: int
    max_rate_limit_wait_seconds: int


class SettingsProtocol(Protocol):
    """
    Protocol defining the settings interface used by core/application layers.

    This allows core to depend on an abstraction rather than tributary.api.config directly.
    """

    # Application
    app_name: str
    debug: bool
    log_level: str

    # Nested settings
    db: DatabaseSettingsProtocol
    content_store: ContentStoreSettingsProtocol
    credentials: CredentialsSettingsProtocol
    sync: SyncSettingsProtocol
