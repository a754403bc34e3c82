"""
Activity Runtime
================

Glue between a Celery task and the connector activities it runs: progress
heartbeats, structured log context, and the OAuth revocation path.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from celery import Task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tributary.core.connectors.application.sync_status import SyncStatusService
from tributary.core.connectors.domain.connector import ConnectorProvider
from tributary.core.connectors.domain.errors import ExternalOAuthTokenError
from tributary.core.state.machine import SyncErrorType
from tributary.platform.composition_root import open_services
from tributary.workers.task_management import revoke_connector_tasks

logger = logging.getLogger(__name__)


class Heartbeat:
    """
    Counts completed items and reports them as task progress, at most once
    every ``min_interval`` seconds.
    """

    def __init__(self, task: Task, min_interval: float = 10.0):
        self._task = task
        self._min_interval = min_interval
        self._last: float | None = None
        self.items = 0

    def __call__(self) -> None:
        self.items += 1
        if self._task.request.is_eager or not self._task.request.id:
            return
        now = time.monotonic()
        if self._last is not None and now - self._last < self._min_interval:
            return
        self._last = now
        self._task.update_state(state="PROGRESS", meta={"items": self.items})


async def pause_on_revoked_token(
    task: Task,
    connector_id: int,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> None:
    """Fail the sync, pause the connector and stop its other workflows."""
    async with open_services(session_maker=session_maker) as services:
        connector = await services.connectors.get(connector_id)
        if connector is None:
            return
        await SyncStatusService(services.connectors).sync_failed(
            connector_id, SyncErrorType.OAUTH_TOKEN_REVOKED.value
        )
        connector.paused_at = datetime.now(UTC)
        await services.connectors.save(connector)

    if not task.request.is_eager:
        await asyncio.to_thread(
            revoke_connector_tasks, connector_id, exclude_task_id=task.request.id
        )
    logger.warning(f"Paused connector {connector_id} after its OAuth token was revoked")


@asynccontextmanager
async def activity_scope(
    task: Task,
    connector_id: int,
    provider: ConnectorProvider,
    activity: str,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[None]:
    with structlog.contextvars.bound_contextvars(
        connector_id=connector_id,
        provider=provider.value,
        activity=activity,
        attempt=task.request.retries + 1,
    ):
        try:
            yield
        except ExternalOAuthTokenError:
            await pause_on_revoked_token(task, connector_id, session_maker)
            raise
