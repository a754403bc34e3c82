from typing import Protocol

from tributary.core.connectors.domain.connector import Connector, ConnectorProvider


class ConnectorRepository(Protocol):
    """
    Port for Connector persistence operations.
    """

    async def get(self, connector_id: int) -> Connector | None:
        """Retrieve a connector by ID."""
        ...

    async def create(
        self,
        provider: ConnectorProvider,
        *,
        connection_id: str,
        workspace_id: str,
        workspace_api_key: str,
        data_source_id: str,
    ) -> Connector:
        """Persist a new connector."""
        ...

    async def save(self, connector: Connector) -> Connector:
        """Persist changes made to a connector."""
        ...

    async def delete(self, connector: Connector) -> None:
        """Delete a connector and, by cascade, every row it owns."""
        ...

    async def list_by_provider(self, provider: ConnectorProvider) -> list[Connector]:
        """List connectors of a provider."""
        ...
