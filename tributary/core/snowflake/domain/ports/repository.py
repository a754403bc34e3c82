from typing import Protocol, TypeVar

from tributary.core.connectors.domain.permissions import Permission
from tributary.core.snowflake.domain.models import RemoteDatabase, RemoteSchema, RemoteTable

RowT = TypeVar("RowT")


class RemoteDatabaseRepository(Protocol):
    """
    Port for the permission tree of warehouse connectors.
    """

    async def list_databases(self, connector_id: int) -> list[RemoteDatabase]: ...

    async def list_schemas(self, connector_id: int) -> list[RemoteSchema]: ...

    async def list_tables(
        self, connector_id: int, internal_ids: list[str] | None = None
    ) -> list[RemoteTable]: ...

    async def get_database(self, connector_id: int, internal_id: str) -> RemoteDatabase | None: ...

    async def get_schema(self, connector_id: int, internal_id: str) -> RemoteSchema | None: ...

    async def get_table(self, connector_id: int, internal_id: str) -> RemoteTable | None: ...

    async def create_database(
        self, connector_id: int, *, internal_id: str, name: str, permission: Permission
    ) -> RemoteDatabase: ...

    async def create_schema(
        self,
        connector_id: int,
        *,
        internal_id: str,
        name: str,
        database_name: str,
        permission: Permission,
    ) -> RemoteSchema: ...

    async def create_table(
        self,
        connector_id: int,
        *,
        internal_id: str,
        name: str,
        schema_name: str,
        database_name: str,
        permission: Permission,
    ) -> RemoteTable: ...

    async def save(self, row: RowT) -> RowT: ...

    async def delete(self, row: object) -> None: ...
