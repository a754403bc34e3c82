from sqlalchemy import select

from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.ports.connector_repository import ConnectorRepository
from tributary.core.connectors.infrastructure.repositories.base import SqlAlchemyRepository
from tributary.core.state.machine import SyncStatus


class PostgresConnectorRepository(SqlAlchemyRepository, ConnectorRepository):
    """
    PostgreSQL implementation of ConnectorRepository using SQLAlchemy.
    """

    async def get(self, connector_id: int) -> Connector | None:
        async with self._serialized() as session:
            return await session.get(Connector, connector_id)

    async def create(
        self,
        provider: ConnectorProvider,
        *,
        connection_id: str,
        workspace_id: str,
        workspace_api_key: str,
        data_source_id: str,
    ) -> Connector:
        connector = Connector(
            type=provider,
            connection_id=connection_id,
            workspace_id=workspace_id,
            workspace_api_key=workspace_api_key,
            data_source_id=data_source_id,
            sync_status=SyncStatus.IDLE,
        )
        async with self._serialized() as session:
            session.add(connector)
            await session.commit()
            await session.refresh(connector)
        return connector

    async def save(self, connector: Connector) -> Connector:
        async with self._serialized() as session:
            session.add(connector)
            await session.commit()
        return connector

    async def delete(self, connector: Connector) -> None:
        async with self._serialized() as session:
            await session.delete(connector)
            await session.commit()

    async def list_by_provider(self, provider: ConnectorProvider) -> list[Connector]:
        async with self._serialized() as session:
            result = await session.execute(
                select(Connector).where(Connector.type == provider).order_by(Connector.id)
            )
            return list(result.scalars().all())
