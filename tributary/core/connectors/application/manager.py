"""
Connector Lifecycle
===================

Base class of the per-provider connector managers. Pause, unpause, stop,
resume and clean behave the same for every provider; creation, updates,
permissions and content node projections are provider specific.

Failures the caller must render (connector not found, bad permission value,
mismatched reconnection...) are raised as ``ConnectorManagerError``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime

from tributary.core.connectors.application.sync_status import SyncStatusService
from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.content_node import ContentNode
from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
)
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.domain.ports.connector_repository import ConnectorRepository
from tributary.core.connectors.domain.ports.content_store import DataSourceConfig
from tributary.core.connectors.domain.ports.credentials import CredentialsProvider
from tributary.core.connectors.domain.ports.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class ConnectorDeps:
    """Collaborators shared by every connector manager."""

    connectors: ConnectorRepository
    scheduler: Scheduler
    credentials: CredentialsProvider


class BaseConnectorManager(ABC):
    provider: ConnectorProvider

    def __init__(self, connector_id: int | None, deps: ConnectorDeps):
        self.connector_id = connector_id
        self._connectors = deps.connectors
        self._scheduler = deps.scheduler
        self._credentials = deps.credentials
        self._sync_status = SyncStatusService(deps.connectors)

    async def _load(self) -> Connector:
        connector = (
            await self._connectors.get(self.connector_id) if self.connector_id is not None else None
        )
        if connector is None:
            logger.error(f"[{self.provider.value}] Connector not found: {self.connector_id}")
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.CONNECTOR_NOT_FOUND,
                f"Connector {self.connector_id} not found",
            )
        return connector

    async def _launch_workflows(self, connector: Connector) -> None:
        """Start the recurring workflows of a connector."""
        await self._scheduler.launch_sync_workflow(connector)

    async def _rollback_creation(self, connector: Connector, error: Exception) -> None:
        logger.error(
            f"[{self.provider.value}] Creating connector {connector.id} failed, rolling back: {error}"
        )
        await self._scheduler.stop_workflows(connector)
        await self._connectors.delete(connector)

    # Provider specific

    @abstractmethod
    async def create(self, *, data_source: DataSourceConfig, connection_id: str) -> int:
        """Validate the connection, persist the connector and start its workflows."""

    @abstractmethod
    async def update(self, *, connection_id: str | None = None) -> int: ...

    @abstractmethod
    async def sync(self, *, from_ts: int | None = None) -> str:
        """Trigger a sync. Returns the launched workflow id."""

    @abstractmethod
    async def set_permissions(self, permissions: dict[str, str]) -> None: ...

    @abstractmethod
    async def retrieve_permissions(
        self,
        *,
        parent_internal_id: str | None = None,
        filter_permission: Permission | None = None,
    ) -> list[ContentNode]: ...

    @abstractmethod
    async def retrieve_batch_content_nodes(self, internal_ids: list[str]) -> list[ContentNode]: ...

    @abstractmethod
    async def retrieve_content_node_parents(self, internal_id: str) -> list[str]:
        """Ancestor chain of a node, nearest first, starting with the node itself."""

    # Shared lifecycle

    async def stop(self) -> int:
        """Stop every workflow of the connector."""
        connector = await self._load()
        return await self._scheduler.stop_workflows(connector)

    async def resume(self) -> None:
        """
        Restart the recurring workflows. Resuming a paused connector is a
        no-op so batch resumes never fail on one paused connector.
        """
        connector = await self._load()
        if connector.is_paused():
            logger.warning(f"[{self.provider.value}] Not resuming paused connector {connector.id}")
            return
        await self._launch_workflows(connector)

    async def pause(self) -> int:
        """Mark the connector as paused and stop its workflows. Data is kept."""
        connector = await self._load()
        connector.paused_at = datetime.now(UTC)
        await self._connectors.save(connector)
        return await self._scheduler.stop_workflows(connector)

    async def unpause(self) -> None:
        """Clear the pause flag and restart the recurring workflows, never a full resync."""
        connector = await self._load()
        connector.paused_at = None
        await self._connectors.save(connector)
        await self.resume()

    async def clean(self) -> None:
        """Stop the workflows and hard delete the connector with every row it owns."""
        connector = await self._load()
        await self._scheduler.stop_workflows(connector)
        await self._connectors.delete(connector)
        logger.info(f"[{self.provider.value}] Connector {connector.id} deleted")

    async def garbage_collect(self) -> str:
        raise ConnectorManagerError(
            ConnectorManagerErrorCode.UNSUPPORTED_OPERATION,
            f"Garbage collection is not supported for {self.provider.value}",
        )

    async def configure(self, config_key: str, config_value: str) -> None:
        raise ConnectorManagerError(
            ConnectorManagerErrorCode.UNSUPPORTED_OPERATION,
            f"Configuration key {config_key} is not supported for {self.provider.value}",
        )
