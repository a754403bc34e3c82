"""
Snowflake Connector Manager
===========================

Warehouse connectors must connect through a read-only role. The check runs
at creation and on every reconnection; the sync activity repeats it and
retracts everything when it fails.
"""

import logging
from collections.abc import Callable
from typing import assert_never

from tributary.core.connectors.application.manager import BaseConnectorManager, ConnectorDeps
from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.content_node import ContentNode
from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
    InvalidInternalIdError,
    RemoteDatabaseNotReadonlyError,
)
from tributary.core.connectors.domain.permissions import (
    Permission,
    is_read_granted,
    parse_settable_permission,
)
from tributary.core.connectors.domain.ports.content_store import DataSourceConfig
from tributary.core.connectors.domain.ports.credentials import SnowflakeCredentials
from tributary.core.connectors.domain.ports.scheduler import SyncSignal
from tributary.core.snowflake.application.activities import snowflake_explicit_permissions
from tributary.core.snowflake.application.content_nodes import snowflake_node
from tributary.core.snowflake.domain.internal_ids import (
    SnowflakeNodeIds,
    SnowflakeNodeType,
    get_schema_internal_id,
    parse_internal_id,
)
from tributary.core.snowflake.domain.ports.repository import RemoteDatabaseRepository
from tributary.core.snowflake.infrastructure.client import SnowflakeClient

logger = logging.getLogger(__name__)


def _parse(internal_id: str) -> SnowflakeNodeIds:
    try:
        return parse_internal_id(internal_id)
    except InvalidInternalIdError as exc:
        raise ConnectorManagerError(ConnectorManagerErrorCode.INVALID_INTERNAL_ID, str(exc)) from exc


def _effective(ids: SnowflakeNodeIds, explicit: dict[str, Permission]) -> Permission:
    return Permission.READ if is_read_granted(ids.parent_internal_ids(), explicit) else Permission.NONE


class SnowflakeConnectorManager(BaseConnectorManager):
    provider = ConnectorProvider.SNOWFLAKE

    def __init__(
        self,
        connector_id: int | None,
        deps: ConnectorDeps,
        *,
        repository: RemoteDatabaseRepository,
        client_factory: Callable[[SnowflakeCredentials], SnowflakeClient],
    ):
        super().__init__(connector_id, deps)
        self._repository = repository
        self._client_factory = client_factory

    async def _check_readonly(self, credentials: SnowflakeCredentials) -> None:
        client = self._client_factory(credentials)
        try:
            await client.check_connection_readonly()
        except RemoteDatabaseNotReadonlyError as exc:
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.REMOTE_DATABASE_NOT_READONLY,
                f"The role {credentials.role} must be read-only: {', '.join(exc.privileges)}",
            ) from exc
        finally:
            await client.close()

    async def create(self, *, data_source: DataSourceConfig, connection_id: str) -> int:
        credentials = await self._credentials.get_snowflake_credentials(connection_id)
        await self._check_readonly(credentials)

        connector = await self._connectors.create(
            ConnectorProvider.SNOWFLAKE,
            connection_id=connection_id,
            workspace_id=data_source.workspace_id,
            workspace_api_key=data_source.workspace_api_key,
            data_source_id=data_source.data_source_id,
        )
        self.connector_id = connector.id

        try:
            await self._launch_workflows(connector)
        except Exception as exc:
            await self._rollback_creation(connector, exc)
            raise

        await self._sync_status.sync_succeeded(connector.id)
        logger.info(f"[snowflake] Created connector {connector.id} on account {credentials.account}")
        return connector.id

    async def update(self, *, connection_id: str | None = None) -> int:
        connector = await self._load()
        if not connection_id:
            return connector.id

        current = await self._credentials.get_snowflake_credentials(connector.connection_id)
        updated = await self._credentials.get_snowflake_credentials(connection_id)
        if current.account != updated.account:
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.CONNECTOR_OAUTH_TARGET_MISMATCH,
                "Cannot change the account of a Snowflake connector",
            )
        await self._check_readonly(updated)

        connector.connection_id = connection_id
        await self._connectors.save(connector)
        if connector.is_paused():
            await self.unpause()
        else:
            await self._scheduler.launch_sync_workflow(connector)
        return connector.id

    async def sync(self, *, from_ts: int | None = None) -> str:
        if from_ts is not None:
            logger.info("[snowflake] from_ts ignored, warehouse syncs always list the whole catalog")
        connector = await self._load()
        return await self._scheduler.launch_sync_workflow(connector)

    async def _set_node_permission(
        self, connector: Connector, ids: SnowflakeNodeIds, permission: Permission
    ) -> bool:
        """Record an explicit choice on a node. Returns whether it changed."""
        match ids.type:
            case SnowflakeNodeType.DATABASE:
                row = await self._repository.get_database(connector.id, ids.internal_id)
                if row is None:
                    await self._repository.create_database(
                        connector.id,
                        internal_id=ids.internal_id,
                        name=ids.database_name,
                        permission=permission,
                    )
                    return True
            case SnowflakeNodeType.SCHEMA:
                row = await self._repository.get_schema(connector.id, ids.internal_id)
                if row is None:
                    await self._repository.create_schema(
                        connector.id,
                        internal_id=ids.internal_id,
                        name=ids.schema_name,
                        database_name=ids.database_name,
                        permission=permission,
                    )
                    return True
            case SnowflakeNodeType.TABLE:
                row = await self._repository.get_table(connector.id, ids.internal_id)
                if row is None:
                    await self._repository.create_table(
                        connector.id,
                        internal_id=ids.internal_id,
                        name=ids.table_name,
                        schema_name=ids.schema_name,
                        database_name=ids.database_name,
                        permission=permission,
                    )
                    return True
            case _:
                assert_never(ids.type)

        if row.permission == permission:
            return False
        row.permission = permission
        await self._repository.save(row)
        return True

    async def set_permissions(self, permissions: dict[str, str]) -> None:
        connector = await self._load()

        parsed: list[tuple[SnowflakeNodeIds, Permission]] = []
        for internal_id, value in permissions.items():
            try:
                permission = parse_settable_permission(value)
            except ValueError as exc:
                raise ConnectorManagerError(
                    ConnectorManagerErrorCode.INVALID_PERMISSION,
                    f"Invalid permission {value} for connector {connector.id}",
                ) from exc
            parsed.append((_parse(internal_id), permission))

        changed = [
            ids.internal_id
            for ids, permission in parsed
            if await self._set_node_permission(connector, ids, permission)
        ]
        if not changed:
            return
        await self._scheduler.launch_sync_workflow(connector, SyncSignal(internal_ids=changed))

    async def retrieve_permissions(
        self,
        *,
        parent_internal_id: str | None = None,
        filter_permission: Permission | None = None,
    ) -> list[ContentNode]:
        connector = await self._load()
        explicit = await snowflake_explicit_permissions(self._repository, connector.id)

        if filter_permission == Permission.READ and parent_internal_id is None:
            nodes = [
                snowflake_node(parse_internal_id(internal_id), Permission.READ)
                for internal_id, permission in explicit.items()
                if permission == Permission.READ
            ]
            return sorted(nodes, key=lambda node: node.title.lower())

        parent = _parse(parent_internal_id) if parent_internal_id is not None else None
        credentials = await self._credentials.get_snowflake_credentials(connector.connection_id)
        client = self._client_factory(credentials)
        try:
            if parent is None:
                children = [
                    SnowflakeNodeIds(SnowflakeNodeType.DATABASE, name)
                    for name in await client.fetch_databases()
                ]
            elif parent.type == SnowflakeNodeType.DATABASE:
                children = [
                    parse_internal_id(get_schema_internal_id(parent.database_name, name))
                    for name in await client.fetch_schemas(parent.database_name)
                ]
            elif parent.type == SnowflakeNodeType.SCHEMA:
                children = [
                    parse_internal_id(table.internal_id)
                    for table in await client.fetch_tables(parent.database_name, parent.schema_name)
                ]
            else:
                children = []
        finally:
            await client.close()

        nodes = [snowflake_node(ids, _effective(ids, explicit)) for ids in children]
        if filter_permission is not None:
            nodes = [node for node in nodes if node.permission == filter_permission]
        return sorted(nodes, key=lambda node: node.title.lower())

    async def retrieve_batch_content_nodes(self, internal_ids: list[str]) -> list[ContentNode]:
        connector = await self._load()
        explicit = await snowflake_explicit_permissions(self._repository, connector.id)
        return [
            snowflake_node(ids, _effective(ids, explicit))
            for ids in (_parse(internal_id) for internal_id in internal_ids)
        ]

    async def retrieve_content_node_parents(self, internal_id: str) -> list[str]:
        return _parse(internal_id).parent_internal_ids()
