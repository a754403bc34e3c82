"""
Snowflake Sync Activity
=======================

A warehouse connector is synced in one activity: the whole table catalog is
listed, diffed against the permission tree, and every table that lost its
grant or vanished is retracted.
"""

import logging
from collections.abc import Callable

from tributary.core.connectors.application.reconciler import Reconciler, ReconcileResult
from tributary.core.connectors.application.sync_status import SyncStatusService
from tributary.core.connectors.domain.connector import Connector
from tributary.core.connectors.domain.errors import (
    ConnectorNotFoundError,
    RemoteDatabaseNotReadonlyError,
)
from tributary.core.connectors.domain.permissions import Permission, explicit_permissions
from tributary.core.connectors.domain.ports.connector_repository import ConnectorRepository
from tributary.core.connectors.domain.ports.content_store import (
    ContentStore,
    data_source_from_connector,
)
from tributary.core.connectors.domain.ports.credentials import (
    CredentialsProvider,
    SnowflakeCredentials,
)
from tributary.core.snowflake.application.leaves import TableLeafAdapter, table_leaf
from tributary.core.snowflake.domain.ports.repository import RemoteDatabaseRepository
from tributary.core.snowflake.infrastructure.client import SnowflakeClient
from tributary.core.state.machine import SyncErrorType

logger = logging.getLogger(__name__)

SnowflakeClientFactory = Callable[[SnowflakeCredentials], SnowflakeClient]


async def snowflake_explicit_permissions(
    repository: RemoteDatabaseRepository, connector_id: int
) -> dict[str, Permission]:
    databases = await repository.list_databases(connector_id)
    schemas = await repository.list_schemas(connector_id)
    tables = await repository.list_tables(connector_id)
    return explicit_permissions(
        (row.internal_id, row.permission) for row in [*databases, *schemas, *tables]
    )


class SnowflakeActivities:
    def __init__(
        self,
        *,
        connectors: ConnectorRepository,
        repository: RemoteDatabaseRepository,
        content_store: ContentStore,
        credentials: CredentialsProvider,
        client_factory: SnowflakeClientFactory,
        item_concurrency: int = 10,
        heartbeat: Callable[[], None] | None = None,
    ):
        self._connectors = connectors
        self._repository = repository
        self._content_store = content_store
        self._credentials = credentials
        self._client_factory = client_factory
        self._item_concurrency = item_concurrency
        self._heartbeat = heartbeat
        self._sync_status = SyncStatusService(connectors)

    def _reconciler(self, connector: Connector) -> Reconciler:
        data_source = data_source_from_connector(connector)
        return Reconciler(
            content_store=self._content_store,
            data_source=data_source,
            adapter=TableLeafAdapter(
                repository=self._repository,
                content_store=self._content_store,
                data_source=data_source,
                connector_id=connector.id,
                connection_id=connector.connection_id,
            ),
            concurrency=self._item_concurrency,
            heartbeat=self._heartbeat,
        )

    async def sync_snowflake_connection(self, connector_id: int) -> ReconcileResult:
        connector = await self._connectors.get(connector_id)
        if connector is None:
            raise ConnectorNotFoundError(connector_id)
        credentials = await self._credentials.get_snowflake_credentials(connector.connection_id)

        await self._sync_status.sync_started(connector_id)
        reconciler = self._reconciler(connector)
        tables = await self._repository.list_tables(connector_id)

        client = self._client_factory(credentials)
        try:
            try:
                await client.check_connection_readonly()
            except RemoteDatabaseNotReadonlyError as exc:
                logger.error(
                    f"Connection of connector {connector_id} is not read-only, "
                    f"retracting {len(tables)} tables: {exc.privileges}"
                )
                await self._sync_status.sync_failed(
                    connector_id, SyncErrorType.REMOTE_DATABASE_CONNECTION_NOT_READONLY.value
                )
                return await reconciler.garbage_collect_all(tables)

            remote_tables = await client.fetch_tables()
        finally:
            await client.close()

        explicit = await snowflake_explicit_permissions(self._repository, connector_id)
        result = await reconciler.reconcile(
            [table_leaf(table) for table in remote_tables],
            tables,
            explicit,
            complete_catalog=True,
        )

        await self._sync_status.sync_succeeded(connector_id)
        return result
