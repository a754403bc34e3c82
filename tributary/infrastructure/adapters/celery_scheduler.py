"""
Celery Scheduler
================

Implementation of the Scheduler port using Celery tasks keyed by connector id.
"""

import asyncio
import logging
from typing import Any

from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.ports.scheduler import Scheduler, SyncSignal
from tributary.workers.celery_app import (
    SNOWFLAKE_SYNC,
    ZENDESK_FULL_SYNC,
    ZENDESK_GARBAGE_COLLECT,
    ZENDESK_SYNC,
    celery_app,
)
from tributary.workers.task_management import revoke_connector_tasks

logger = logging.getLogger(__name__)

_SYNC_TASKS = {
    ConnectorProvider.ZENDESK: ZENDESK_SYNC,
    ConnectorProvider.SNOWFLAKE: SNOWFLAKE_SYNC,
}


class CeleryScheduler(Scheduler):
    """
    Sends connector tasks to the worker queues.

    Recurring tasks re-enqueue themselves, so launching one first revokes
    the previous chain of the same connector.
    """

    async def _dispatch(self, task_name: str, kwargs: dict[str, Any]) -> str:
        try:
            if celery_app.conf.task_always_eager and task_name in celery_app.tasks:
                # The task opens its own event loop; keep it off the caller's.
                task = celery_app.tasks[task_name]
                result = await asyncio.to_thread(task.apply, kwargs=kwargs)
                return str(result.id)

            result = await asyncio.to_thread(celery_app.send_task, task_name, kwargs=kwargs)
            return str(result.id)
        except Exception as e:
            logger.error(f"Failed to dispatch task {task_name}: {e}")
            raise RuntimeError(f"Task dispatch failed: {e}") from e

    async def _revoke(self, connector_id: int, task_names: list[str]) -> int:
        if celery_app.conf.task_always_eager:
            return 0
        return await asyncio.to_thread(revoke_connector_tasks, connector_id, task_names)

    async def launch_sync_workflow(
        self, connector: Connector, signal: SyncSignal | None = None
    ) -> str:
        task_name = _SYNC_TASKS[connector.type]
        if signal is not None and not signal.is_empty():
            # One-shot pass over the signaled nodes next to the recurring chain
            return await self._dispatch(
                task_name,
                {"connector_id": connector.id, "signal": signal.to_payload(), "recurring": False},
            )

        await self._revoke(connector.id, [task_name])
        return await self._dispatch(task_name, {"connector_id": connector.id, "recurring": True})

    async def launch_full_sync_workflow(
        self, connector: Connector, *, force_resync: bool = False
    ) -> str:
        if connector.type == ConnectorProvider.ZENDESK:
            return await self._dispatch(
                ZENDESK_FULL_SYNC, {"connector_id": connector.id, "force_resync": force_resync}
            )
        return await self._dispatch(
            _SYNC_TASKS[connector.type], {"connector_id": connector.id, "recurring": False}
        )

    async def launch_garbage_collection_workflow(self, connector: Connector) -> str:
        if connector.type != ConnectorProvider.ZENDESK:
            raise ValueError(f"No garbage collection workflow for {connector.type.value}")
        await self._revoke(connector.id, [ZENDESK_GARBAGE_COLLECT])
        return await self._dispatch(
            ZENDESK_GARBAGE_COLLECT, {"connector_id": connector.id, "recurring": True}
        )

    async def stop_workflows(self, connector: Connector) -> int:
        if celery_app.conf.task_always_eager:
            return 0
        stopped = await asyncio.to_thread(revoke_connector_tasks, connector.id)
        logger.info(f"Stopped {stopped} workflows of connector {connector.id}")
        return stopped
