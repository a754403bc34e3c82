"""
Background Tasks
================

Celery tasks running the connector workflows. Every task receives the
connector id as the ``connector_id`` keyword so it can be found and revoked.
Recurring tasks schedule their next run themselves once the current one
finished, as long as the connector exists and is not paused.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded, TimeLimitExceeded

from tributary.core.connectors.application.sync_status import SyncStatusService
from tributary.core.connectors.domain.connector import ConnectorProvider
from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorNotFoundError,
    ExternalOAuthTokenError,
    InvalidInternalIdError,
)
from tributary.core.connectors.domain.ports.scheduler import SyncSignal
from tributary.core.database.session import task_session_maker
from tributary.core.state.machine import SyncErrorType
from tributary.platform.composition_root import (
    Services,
    build_snowflake_activities,
    build_zendesk_workflows,
    open_services,
)
from tributary.shared.kernel.runtime import get_settings
from tributary.workers.activity import Heartbeat, activity_scope
from tributary.workers.celery_app import (
    SNOWFLAKE_SYNC,
    ZENDESK_FULL_SYNC,
    ZENDESK_GARBAGE_COLLECT,
    ZENDESK_SYNC,
    celery_app,
)

logger = logging.getLogger(__name__)

FATAL_ERRORS = (
    ConnectorManagerError,
    ConnectorNotFoundError,
    ExternalOAuthTokenError,
    InvalidInternalIdError,
)


def run_async(coro):
    """Helper to run async code in sync Celery task."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _interval_seconds(task_name: str) -> int:
    sync_settings = get_settings().sync
    if task_name == ZENDESK_GARBAGE_COLLECT:
        return sync_settings.garbage_collection_interval_seconds
    if task_name == SNOWFLAKE_SYNC:
        return sync_settings.snowflake_sync_interval_seconds
    return sync_settings.incremental_sync_interval_seconds


async def _connector_is_active(connector_id: int) -> bool:
    async with task_session_maker() as session_maker:
        async with open_services(session_maker=session_maker) as services:
            connector = await services.connectors.get(connector_id)
            return connector is not None and not connector.is_paused()


def schedule_next_run(task: Task, connector_id: int) -> str | None:
    """Enqueue the next run of a recurring task. Returns its id."""
    if task.request.is_eager:
        return None
    if not run_async(_connector_is_active(connector_id)):
        logger.info(f"Connector {connector_id} is gone or paused, not rescheduling {task.name}")
        return None

    countdown = _interval_seconds(task.name)
    result = task.apply_async(
        kwargs={"connector_id": connector_id, "recurring": True}, countdown=countdown
    )
    logger.debug(f"Scheduled {task.name} for connector {connector_id} in {countdown}s")
    return str(result.id)


async def _record_failure(connector_id: int, error_type: SyncErrorType) -> None:
    async with task_session_maker() as session_maker:
        async with open_services(session_maker=session_maker) as services:
            if await services.connectors.get(connector_id) is None:
                return
            await SyncStatusService(services.connectors).sync_failed(connector_id, error_type.value)


class BaseTask(Task):
    """Base task with retry policy and sync status bookkeeping."""

    autoretry_for = (Exception,)
    dont_autoretry_for = FATAL_ERRORS
    retry_backoff = True
    retry_backoff_max = 300  # 5 minutes max
    retry_jitter = True
    max_retries = 5

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        connector_id = kwargs.get("connector_id")
        if connector_id is None:
            return
        logger.error(f"[Task {task_id}] {self.name} failed for connector {connector_id}: {exc}")

        # A revoked token already recorded its failure and paused the connector
        if not isinstance(exc, ExternalOAuthTokenError | ConnectorNotFoundError):
            error_type = (
                SyncErrorType.WORKFLOW_TIMEOUT_FAILURE
                if isinstance(exc, SoftTimeLimitExceeded | TimeLimitExceeded)
                else SyncErrorType.UNHANDLED_INTERNAL_ACTIVITY_ERROR
            )
            run_async(_record_failure(connector_id, error_type))

        if kwargs.get("recurring") and not isinstance(exc, ConnectorNotFoundError):
            schedule_next_run(self, connector_id)


async def _run_activity(
    task: Task,
    connector_id: int,
    provider: ConnectorProvider,
    activity: str,
    body: Callable[[Services, Heartbeat], Awaitable[Any]],
) -> Any:
    async with task_session_maker() as session_maker:
        async with activity_scope(task, connector_id, provider, activity, session_maker):
            async with open_services(session_maker=session_maker) as services:
                return await body(services, Heartbeat(task))


def _finish(task: Task, connector_id: int, recurring: bool, **extra: Any) -> dict:
    next_task_id = schedule_next_run(task, connector_id) if recurring else None
    return {
        "status": "success",
        "connector_id": connector_id,
        "next_task_id": next_task_id,
        **extra,
    }


@celery_app.task(bind=True, name="tributary.workers.tasks.health_check")
def health_check(self) -> dict:
    """
    Simple health check task for worker verification.

    Returns:
        dict: Health check result
    """
    return {
        "status": "healthy",
        "worker_id": self.request.id,
        "task": "health_check",
    }


@celery_app.task(bind=True, name=ZENDESK_SYNC, base=BaseTask)
def zendesk_sync(
    self,
    connector_id: int,
    signal: dict | None = None,
    force_resync: bool = False,
    recurring: bool = True,
) -> dict:
    """
    Run the Zendesk sync workflow once.

    A signaled run syncs the signaled nodes in full and is never rescheduled;
    an unsignaled run is an incremental pass from the cursor.
    """
    sync_signal = SyncSignal.from_payload(signal) if signal else None
    logger.info(f"[Task {self.request.id}] Zendesk sync of connector {connector_id}")

    async def _body(services: Services, heartbeat: Heartbeat) -> int:
        await build_zendesk_workflows(services, heartbeat).sync(
            connector_id, sync_signal, force_resync=force_resync
        )
        return heartbeat.items

    items = run_async(
        _run_activity(self, connector_id, ConnectorProvider.ZENDESK, "sync", _body)
    )
    return _finish(self, connector_id, recurring and sync_signal is None, items=items)


@celery_app.task(bind=True, name=ZENDESK_FULL_SYNC, base=BaseTask)
def zendesk_full_sync(self, connector_id: int, force_resync: bool = False) -> dict:
    """Sync every brand and selected category of a Zendesk connector."""
    logger.info(
        f"[Task {self.request.id}] Zendesk full sync of connector {connector_id} "
        f"(force_resync={force_resync})"
    )

    async def _body(services: Services, heartbeat: Heartbeat) -> int:
        await build_zendesk_workflows(services, heartbeat).full_sync(
            connector_id, force_resync=force_resync
        )
        return heartbeat.items

    items = run_async(
        _run_activity(self, connector_id, ConnectorProvider.ZENDESK, "full_sync", _body)
    )
    return _finish(self, connector_id, False, items=items)


@celery_app.task(bind=True, name=ZENDESK_GARBAGE_COLLECT, base=BaseTask)
def zendesk_garbage_collect(self, connector_id: int, recurring: bool = True) -> dict:
    logger.info(f"[Task {self.request.id}] Zendesk garbage collection of connector {connector_id}")

    async def _body(services: Services, heartbeat: Heartbeat) -> None:
        await build_zendesk_workflows(services, heartbeat).garbage_collect(connector_id)

    run_async(
        _run_activity(self, connector_id, ConnectorProvider.ZENDESK, "garbage_collect", _body)
    )
    return _finish(self, connector_id, recurring)


@celery_app.task(bind=True, name=SNOWFLAKE_SYNC, base=BaseTask)
def snowflake_sync(
    self, connector_id: int, signal: dict | None = None, recurring: bool = True
) -> dict:
    """
    Reconcile the whole warehouse catalog of a Snowflake connector. A signal
    only marks the run as one-shot; the catalog is always listed in full.
    """
    logger.info(f"[Task {self.request.id}] Snowflake sync of connector {connector_id}")

    async def _body(services: Services, heartbeat: Heartbeat):
        return await build_snowflake_activities(services, heartbeat).sync_snowflake_connection(
            connector_id
        )

    result = run_async(
        _run_activity(self, connector_id, ConnectorProvider.SNOWFLAKE, "sync", _body)
    )
    return _finish(
        self,
        connector_id,
        recurring and not signal,
        upserted=len(result.upserted),
        deleted=len(result.deleted),
    )
