"""
Composition Root
=================

The single place where all dependencies are wired together.
Settings arrive through ``bootstrap``; core modules never import tributary.api.config.

Infrastructure adapters are created here and injected into application services.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import assert_never

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tributary.core.connectors.application.manager import BaseConnectorManager, ConnectorDeps
from tributary.core.connectors.domain.connector import ConnectorProvider
from tributary.core.connectors.domain.ports.credentials import SnowflakeCredentials, ZendeskAccess
from tributary.core.connectors.domain.ports.scheduler import Scheduler
from tributary.core.connectors.infrastructure.repositories.postgres_connector_repository import (
    PostgresConnectorRepository,
)
from tributary.core.database.session import configure_database, session_scope
from tributary.core.snowflake.application.activities import SnowflakeActivities
from tributary.core.snowflake.application.manager import SnowflakeConnectorManager
from tributary.core.snowflake.infrastructure.client import SnowflakeClient
from tributary.core.snowflake.infrastructure.repository import PostgresRemoteDatabaseRepository
from tributary.core.zendesk.application.activities import ZendeskActivities
from tributary.core.zendesk.application.manager import ZendeskConnectorManager
from tributary.core.zendesk.application.workflows import ZendeskWorkflows
from tributary.core.zendesk.infrastructure.client import ZendeskClient
from tributary.core.zendesk.infrastructure.repository import PostgresZendeskRepository
from tributary.infrastructure.adapters.http_content_store import HttpContentStore
from tributary.infrastructure.adapters.http_credentials import HttpCredentialsProvider
from tributary.shared.kernel.runtime import configure_settings, get_settings
from tributary.shared.kernel.settings import SettingsProtocol


def bootstrap(settings: SettingsProtocol) -> None:
    """Inject settings and database configuration. Called once per process."""
    configure_settings(settings)
    configure_database(
        settings.db.database_url,
        pool_size=settings.db.pool_size,
        max_overflow=settings.db.max_overflow,
    )


# -----------------------------------------------------------------------------
# Client Factories
# -----------------------------------------------------------------------------


def build_zendesk_client(access: ZendeskAccess) -> ZendeskClient:
    settings = get_settings()
    return ZendeskClient(
        access.subdomain,
        access.access_token,
        max_rate_limit_wait=settings.sync.max_rate_limit_wait_seconds,
    )


def build_snowflake_client(credentials: SnowflakeCredentials) -> SnowflakeClient:
    return SnowflakeClient(credentials)


@lru_cache
def build_scheduler() -> Scheduler:
    from tributary.infrastructure.adapters.celery_scheduler import CeleryScheduler

    return CeleryScheduler()


# -----------------------------------------------------------------------------
# Per-session services
# -----------------------------------------------------------------------------


@dataclass
class Services:
    """Adapters bound to one database session and one event loop."""

    session: AsyncSession
    connectors: PostgresConnectorRepository
    zendesk: PostgresZendeskRepository
    remote_databases: PostgresRemoteDatabaseRepository
    content_store: HttpContentStore
    credentials: HttpCredentialsProvider
    scheduler: Scheduler

    @property
    def deps(self) -> ConnectorDeps:
        return ConnectorDeps(
            connectors=self.connectors, scheduler=self.scheduler, credentials=self.credentials
        )


@asynccontextmanager
async def open_services(
    scheduler: Scheduler | None = None,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[Services]:
    settings = get_settings()
    content_store = HttpContentStore(
        settings.content_store.base_url, timeout=settings.content_store.timeout_seconds
    )
    credentials = HttpCredentialsProvider(
        settings.credentials.base_url,
        settings.credentials.api_key,
        timeout=settings.credentials.timeout_seconds,
    )
    try:
        async with session_scope(session_maker) as session:
            yield Services(
                session=session,
                connectors=PostgresConnectorRepository(session),
                zendesk=PostgresZendeskRepository(session),
                remote_databases=PostgresRemoteDatabaseRepository(session),
                content_store=content_store,
                credentials=credentials,
                scheduler=scheduler or build_scheduler(),
            )
    finally:
        await content_store.close()
        await credentials.close()


# -----------------------------------------------------------------------------
# Connector manager registry
# -----------------------------------------------------------------------------


def get_connector_manager(
    provider: ConnectorProvider, connector_id: int | None, services: Services
) -> BaseConnectorManager:
    """Map a provider to its lifecycle manager."""
    match provider:
        case ConnectorProvider.ZENDESK:
            return ZendeskConnectorManager(
                connector_id,
                services.deps,
                repository=services.zendesk,
                client_factory=build_zendesk_client,
                retention_period_days=get_settings().sync.zendesk_retention_period_days,
            )
        case ConnectorProvider.SNOWFLAKE:
            return SnowflakeConnectorManager(
                connector_id,
                services.deps,
                repository=services.remote_databases,
                client_factory=build_snowflake_client,
            )
        case _:
            assert_never(provider)


# -----------------------------------------------------------------------------
# Workflows
# -----------------------------------------------------------------------------


def build_zendesk_workflows(
    services: Services, heartbeat: Callable[[], None] | None = None
) -> ZendeskWorkflows:
    sync_settings = get_settings().sync
    return ZendeskWorkflows(
        ZendeskActivities(
            connectors=services.connectors,
            repository=services.zendesk,
            content_store=services.content_store,
            credentials=services.credentials,
            client_factory=build_zendesk_client,
            batch_size=sync_settings.zendesk_batch_size,
            item_concurrency=sync_settings.item_concurrency,
            sub_fetch_concurrency=sync_settings.sub_fetch_concurrency,
            heartbeat=heartbeat,
        )
    )


def build_snowflake_activities(
    services: Services, heartbeat: Callable[[], None] | None = None
) -> SnowflakeActivities:
    return SnowflakeActivities(
        connectors=services.connectors,
        repository=services.remote_databases,
        content_store=services.content_store,
        credentials=services.credentials,
        client_factory=build_snowflake_client,
        item_concurrency=get_settings().sync.item_concurrency,
        heartbeat=heartbeat,
    )
