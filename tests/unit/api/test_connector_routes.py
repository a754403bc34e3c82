"""
Connector Routes Unit Tests
===========================

HTTP surface of the connector lifecycle: envelopes, status mapping and API
key checks, with in-memory services behind the request dependency.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from tributary.api.deps import get_services
from tributary.api.main import create_app
from tributary.core.zendesk.domain.internal_ids import (
    get_brand_internal_id,
    get_tickets_internal_id,
)


@pytest.fixture
def services(connectors, zendesk_repository, snowflake_repository, credentials, scheduler, deps):
    return SimpleNamespace(
        connectors=connectors,
        zendesk=zendesk_repository,
        remote_databases=snowflake_repository,
        credentials=credentials,
        scheduler=scheduler,
        deps=deps,
    )


@pytest.fixture
def client(services, zendesk_api, snowflake_api):
    app = create_app()

    async def _services():
        yield services

    app.dependency_overrides[get_services] = _services
    with (
        patch("tributary.platform.composition_root.build_zendesk_client", zendesk_api),
        patch("tributary.platform.composition_root.build_snowflake_client", snowflake_api),
    ):
        # No context manager: the lifespan would bootstrap real infrastructure
        yield TestClient(app)


class TestConnectorLifecycle:
    def test_get_connector(self, client, zendesk_connector):
        response = client.get(f"/connectors/{zendesk_connector.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["type"] == "zendesk"
        assert data["connection_id"] == "conn-1"
        assert data["sync_status"] == "idle"

    def test_unknown_connector_returns_error_envelope(self, client):
        response = client.get("/connectors/404")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "CONNECTOR_NOT_FOUND"
        assert "timestamp" in error

    def test_pause_marks_the_connector_and_stops_workflows(
        self, client, zendesk_connector, connectors, scheduler
    ):
        response = client.post(f"/connectors/{zendesk_connector.id}/pause")

        assert response.status_code == 200
        assert response.json()["data"]["stopped"] == 0
        assert connectors.connectors[zendesk_connector.id].is_paused()
        assert scheduler.names() == ["stop"]

    def test_delete_cleans_the_connector(self, client, zendesk_connector, connectors):
        response = client.delete(f"/connectors/{zendesk_connector.id}")

        assert response.status_code == 200
        assert connectors.deleted == [zendesk_connector.id]


class TestSync:
    def test_incremental_sync_without_cursor_conflicts(self, client, zendesk_connector, scheduler):
        response = client.post(
            f"/connectors/{zendesk_connector.id}/sync", json={"from_ts": 1_700_000_000_000}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "MISSING_CURSOR"
        assert scheduler.calls == []

    def test_sync_without_from_ts_is_a_full_resync(self, client, zendesk_connector, scheduler):
        response = client.post(f"/connectors/{zendesk_connector.id}/sync")

        assert response.status_code == 200
        assert response.json()["data"]["workflow_id"] == "workflow-1"
        assert scheduler.calls == [("full_sync", zendesk_connector.id, True)]

    def test_garbage_collect_is_unsupported_for_snowflake(self, client, snowflake_connector):
        response = client.post(f"/connectors/{snowflake_connector.id}/garbage_collect")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNSUPPORTED_OPERATION"


class TestContentNodes:
    def test_parents_of_a_tickets_folder(self, client, zendesk_connector):
        internal_id = get_tickets_internal_id(zendesk_connector.id, 11)

        response = client.get(
            f"/connectors/{zendesk_connector.id}/content_nodes/{internal_id}/parents"
        )

        assert response.status_code == 200
        assert response.json()["data"] == [
            internal_id,
            get_brand_internal_id(zendesk_connector.id, 11),
        ]

    def test_malformed_internal_id_is_rejected(self, client, zendesk_connector):
        response = client.get(
            f"/connectors/{zendesk_connector.id}/content_nodes/notion-page-1/parents"
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_INTERNAL_ID"

    def test_empty_batch_fails_validation(self, client, zendesk_connector):
        response = client.post(
            f"/connectors/{zendesk_connector.id}/content_nodes", json={"internal_ids": []}
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["errors"]

    def test_invalid_permission_value_is_rejected(self, client, snowflake_connector, scheduler):
        response = client.post(
            f"/connectors/{snowflake_connector.id}/permissions",
            json={"permissions": {"DB": "write"}},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PERMISSION"
        assert scheduler.calls == []


class TestAuthentication:
    def test_missing_api_key_is_rejected_when_configured(self, client, zendesk_connector):
        with patch("tributary.api.deps.settings.api_key", "secret"):
            assert client.get(f"/connectors/{zendesk_connector.id}").status_code == 401
            assert (
                client.get(
                    f"/connectors/{zendesk_connector.id}", headers={"X-API-Key": "wrong"}
                ).status_code
                == 401
            )
            response = client.get(
                f"/connectors/{zendesk_connector.id}", headers={"X-API-Key": "secret"}
            )

        assert response.status_code == 200

    def test_health_needs_no_api_key(self, client):
        with patch("tributary.api.deps.settings.api_key", "secret"):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
