"""
Task Management Unit Tests
==========================

Tests for finding and revoking the Celery tasks of one connector.
"""

from unittest.mock import MagicMock, patch

import pytest

from tributary.workers.celery_app import SNOWFLAKE_SYNC, ZENDESK_GARBAGE_COLLECT, ZENDESK_SYNC
from tributary.workers.task_management import find_connector_tasks, revoke_connector_tasks


@pytest.fixture
def mock_celery_control():
    with patch("tributary.workers.celery_app.celery_app.control") as mock:
        yield mock


@pytest.fixture
def inspect_mock(mock_celery_control):
    inspect_mock = MagicMock()
    mock_celery_control.inspect.return_value = inspect_mock
    inspect_mock.active.return_value = {
        "worker1": [
            {"id": "task-1", "name": ZENDESK_SYNC, "kwargs": {"connector_id": 1}},
            {"id": "task-2", "name": ZENDESK_SYNC, "kwargs": {"connector_id": 2}},
        ],
        "worker2": [{"id": "other-task", "name": "other.task", "kwargs": {"connector_id": 1}}],
    }
    inspect_mock.reserved.return_value = {
        "worker1": [{"id": "task-3", "name": ZENDESK_GARBAGE_COLLECT, "kwargs": {"connector_id": 1}}]
    }
    # ETA entries nest the request
    inspect_mock.scheduled.return_value = {
        "worker2": [
            {
                "eta": "2026-10-01T12:00:00+00:00",
                "request": {"id": "task-4", "name": SNOWFLAKE_SYNC, "kwargs": {"connector_id": 1}},
            }
        ]
    }
    return inspect_mock


def test_find_connector_tasks_matches_name_and_connector(inspect_mock):
    assert find_connector_tasks(1) == ["task-1", "task-3", "task-4"]
    assert find_connector_tasks(1, [ZENDESK_GARBAGE_COLLECT]) == ["task-3"]
    assert find_connector_tasks(2) == ["task-2"]


def test_find_connector_tasks_tolerates_unreachable_workers(mock_celery_control):
    inspect_mock = MagicMock()
    mock_celery_control.inspect.return_value = inspect_mock
    inspect_mock.active.return_value = None
    inspect_mock.reserved.return_value = None
    inspect_mock.scheduled.return_value = None

    assert find_connector_tasks(1) == []


def test_revoke_connector_tasks_terminates_matches(mock_celery_control, inspect_mock):
    count = revoke_connector_tasks(1)

    assert count == 3
    mock_celery_control.revoke.assert_called_once_with(
        ["task-1", "task-3", "task-4"], terminate=True, signal="SIGTERM"
    )


def test_revoke_connector_tasks_spares_the_calling_task(mock_celery_control, inspect_mock):
    count = revoke_connector_tasks(1, exclude_task_id="task-1")

    assert count == 2
    revoked_ids = mock_celery_control.revoke.call_args[0][0]
    assert "task-1" not in revoked_ids


def test_revoke_connector_tasks_without_match(mock_celery_control, inspect_mock):
    assert revoke_connector_tasks(404) == 0
    mock_celery_control.revoke.assert_not_called()
