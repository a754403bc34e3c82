"""
Sync Status
===========

Explicit start / succeed / fail transitions of a connector's sync status.
The status drives UI and alerting only; the engine never branches on it.
"""

import logging
from datetime import UTC, datetime

from tributary.core.connectors.domain.connector import Connector
from tributary.core.connectors.domain.errors import ConnectorNotFoundError
from tributary.core.connectors.domain.ports.connector_repository import ConnectorRepository
from tributary.core.state.machine import SyncStatus, TransitionManager

logger = logging.getLogger(__name__)


class SyncStatusService:
    def __init__(self, connectors: ConnectorRepository):
        self._connectors = connectors

    async def _load(self, connector_id: int) -> Connector:
        connector = await self._connectors.get(connector_id)
        if connector is None:
            raise ConnectorNotFoundError(connector_id)
        return connector

    async def sync_started(self, connector_id: int, started_at: datetime | None = None) -> Connector:
        connector = await self._load(connector_id)
        TransitionManager.validate_transition(connector.sync_status, SyncStatus.RUNNING)
        connector.sync_status = SyncStatus.RUNNING
        connector.last_sync_start_time = started_at or datetime.now(UTC)
        return await self._connectors.save(connector)

    async def sync_succeeded(self, connector_id: int, finished_at: datetime | None = None) -> Connector:
        connector = await self._load(connector_id)
        TransitionManager.validate_transition(connector.sync_status, SyncStatus.SUCCEEDED)
        now = finished_at or datetime.now(UTC)
        connector.sync_status = SyncStatus.SUCCEEDED
        connector.error_type = None
        connector.last_sync_finish_time = now
        connector.last_sync_success_time = now
        return await self._connectors.save(connector)

    async def sync_failed(self, connector_id: int, error_type: str) -> Connector:
        connector = await self._load(connector_id)
        TransitionManager.validate_transition(connector.sync_status, SyncStatus.ERRORED)
        connector.sync_status = SyncStatus.ERRORED
        connector.error_type = error_type
        connector.last_sync_finish_time = datetime.now(UTC)
        logger.warning(f"Sync failed for connector {connector_id}: {error_type}")
        return await self._connectors.save(connector)
