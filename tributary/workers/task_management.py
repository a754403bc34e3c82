"""
Task Management Utilities
=========================

Finds and revokes the Celery tasks of one connector. Tasks are matched on
their name and on the ``connector_id`` keyword argument every connector task
receives.
"""

import logging
from collections.abc import Iterable
from typing import Any

from tributary.workers.celery_app import CONNECTOR_TASKS, celery_app

logger = logging.getLogger(__name__)


def _request_of(task: dict[str, Any]) -> dict[str, Any]:
    # Scheduled (ETA) entries wrap the request
    return task.get("request", task)


def find_connector_tasks(
    connector_id: int,
    task_names: Iterable[str] = CONNECTOR_TASKS,
    exclude_task_id: str | None = None,
) -> list[str]:
    """Ids of the active, reserved and scheduled tasks of a connector."""
    names = set(task_names)
    inspector = celery_app.control.inspect()
    sources = [inspector.active() or {}, inspector.reserved() or {}, inspector.scheduled() or {}]

    task_ids: set[str] = set()
    for source in sources:
        for tasks in source.values():
            for task in tasks:
                request = _request_of(task)
                kwargs = request.get("kwargs") or {}
                if request.get("name") in names and kwargs.get("connector_id") == connector_id:
                    task_ids.add(request.get("id"))
    return sorted(task_id for task_id in task_ids if task_id and task_id != exclude_task_id)


def revoke_connector_tasks(
    connector_id: int,
    task_names: Iterable[str] = CONNECTOR_TASKS,
    exclude_task_id: str | None = None,
) -> int:
    """
    Revoke every matching task of a connector, terminating running ones.

    Returns:
        int: Number of tasks revoked.
    """
    task_ids = find_connector_tasks(connector_id, task_names, exclude_task_id)
    if task_ids:
        logger.info(f"Revoking {len(task_ids)} tasks of connector {connector_id}")
        celery_app.control.revoke(task_ids, terminate=True, signal="SIGTERM")
    return len(task_ids)
