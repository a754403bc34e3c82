from sqlalchemy import select

from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.infrastructure.repositories.base import SqlAlchemyRepository
from tributary.core.snowflake.domain.models import RemoteDatabase, RemoteSchema, RemoteTable
from tributary.core.snowflake.domain.ports.repository import RemoteDatabaseRepository


class PostgresRemoteDatabaseRepository(SqlAlchemyRepository, RemoteDatabaseRepository):
    """
    PostgreSQL implementation of RemoteDatabaseRepository using SQLAlchemy.
    """

    async def list_databases(self, connector_id: int) -> list[RemoteDatabase]:
        return await self._scalars(
            select(RemoteDatabase).where(RemoteDatabase.connector_id == connector_id)
        )

    async def list_schemas(self, connector_id: int) -> list[RemoteSchema]:
        return await self._scalars(
            select(RemoteSchema).where(RemoteSchema.connector_id == connector_id)
        )

    async def list_tables(
        self, connector_id: int, internal_ids: list[str] | None = None
    ) -> list[RemoteTable]:
        stmt = select(RemoteTable).where(RemoteTable.connector_id == connector_id)
        if internal_ids is not None:
            stmt = stmt.where(RemoteTable.internal_id.in_(internal_ids))
        return await self._scalars(stmt.order_by(RemoteTable.internal_id))

    async def get_database(self, connector_id: int, internal_id: str) -> RemoteDatabase | None:
        return await self._first(
            select(RemoteDatabase).where(
                RemoteDatabase.connector_id == connector_id,
                RemoteDatabase.internal_id == internal_id,
            )
        )

    async def get_schema(self, connector_id: int, internal_id: str) -> RemoteSchema | None:
        return await self._first(
            select(RemoteSchema).where(
                RemoteSchema.connector_id == connector_id,
                RemoteSchema.internal_id == internal_id,
            )
        )

    async def get_table(self, connector_id: int, internal_id: str) -> RemoteTable | None:
        return await self._first(
            select(RemoteTable).where(
                RemoteTable.connector_id == connector_id,
                RemoteTable.internal_id == internal_id,
            )
        )

    async def create_database(
        self, connector_id: int, *, internal_id: str, name: str, permission: Permission
    ) -> RemoteDatabase:
        return await self._add(
            RemoteDatabase(
                connector_id=connector_id,
                internal_id=internal_id,
                name=name,
                permission=permission,
            )
        )

    async def create_schema(
        self,
        connector_id: int,
        *,
        internal_id: str,
        name: str,
        database_name: str,
        permission: Permission,
    ) -> RemoteSchema:
        return await self._add(
            RemoteSchema(
                connector_id=connector_id,
                internal_id=internal_id,
                name=name,
                database_name=database_name,
                permission=permission,
            )
        )

    async def create_table(
        self,
        connector_id: int,
        *,
        internal_id: str,
        name: str,
        schema_name: str,
        database_name: str,
        permission: Permission,
    ) -> RemoteTable:
        return await self._add(
            RemoteTable(
                connector_id=connector_id,
                internal_id=internal_id,
                name=name,
                schema_name=schema_name,
                database_name=database_name,
                permission=permission,
                last_upserted_at=None,
            )
        )
