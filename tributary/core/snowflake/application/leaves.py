"""
Warehouse tables as reconciler leaves, pushed to the content store as
remote table references under their database and schema folders.
"""

from datetime import datetime

from tributary.core.connectors.application.reconciler import FolderSpec, RemoteLeaf
from tributary.core.connectors.domain.content_node import MimeTypes
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.domain.ports.content_store import ContentStore, DataSourceConfig
from tributary.core.snowflake.domain.internal_ids import get_schema_internal_id
from tributary.core.snowflake.domain.models import RemoteTable
from tributary.core.snowflake.domain.ports.repository import RemoteDatabaseRepository
from tributary.core.snowflake.infrastructure.client import SnowflakeTable


def database_folder(database_name: str) -> FolderSpec:
    return FolderSpec(database_name, database_name, MimeTypes.SNOWFLAKE_DATABASE)


def schema_folder(database_name: str, schema_name: str) -> FolderSpec:
    return FolderSpec(
        get_schema_internal_id(database_name, schema_name), schema_name, MimeTypes.SNOWFLAKE_SCHEMA
    )


def table_leaf(table: SnowflakeTable) -> RemoteLeaf:
    return RemoteLeaf(
        internal_id=table.internal_id,
        title=table.name,
        ancestors=[
            schema_folder(table.database_name, table.schema_name),
            database_folder(table.database_name),
        ],
        payload=table,
    )


class TableLeafAdapter:
    def __init__(
        self,
        *,
        repository: RemoteDatabaseRepository,
        content_store: ContentStore,
        data_source: DataSourceConfig,
        connector_id: int,
        connection_id: str,
    ):
        self._repository = repository
        self._content_store = content_store
        self._data_source = data_source
        self._connector_id = connector_id
        self._connection_id = connection_id

    async def prepare(self, leaves: list[RemoteLeaf]) -> None:
        return None

    async def create_row(self, leaf: RemoteLeaf) -> RemoteTable:
        table: SnowflakeTable = leaf.payload
        return await self._repository.create_table(
            self._connector_id,
            internal_id=table.internal_id,
            name=table.name,
            schema_name=table.schema_name,
            database_name=table.database_name,
            permission=Permission.INHERITED,
        )

    async def upsert(self, leaf: RemoteLeaf, row: RemoteTable) -> None:
        # The content store queries the warehouse itself with the connection's secret
        await self._content_store.upsert_table(
            self._data_source,
            table_id=leaf.internal_id,
            title=leaf.title,
            parents=leaf.parents,
            parent_id=leaf.parent_id,
            mime_type=MimeTypes.SNOWFLAKE_TABLE,
            remote_table_id=leaf.internal_id,
            remote_secret_id=self._connection_id,
        )

    async def mark_upserted(self, leaf: RemoteLeaf, row: RemoteTable, upserted_at: datetime) -> None:
        row.last_upserted_at = upserted_at
        await self._repository.save(row)

    async def delete(self, row: RemoteTable) -> None:
        await self._content_store.delete_table(self._data_source, row.internal_id)

    async def destroy_row(self, row: RemoteTable) -> None:
        await self._repository.delete(row)

    async def clear_row(self, row: RemoteTable) -> None:
        row.last_upserted_at = None
        await self._repository.save(row)
