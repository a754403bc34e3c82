"""
Snowflake Unit Tests
====================

Catalog reconciliation, the read-only safety path and the connector
manager of warehouse connectors.
"""

from datetime import UTC, datetime

import pytest

from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
)
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.domain.ports.credentials import SnowflakeCredentials
from tributary.core.snowflake.application.activities import SnowflakeActivities
from tributary.core.snowflake.application.manager import SnowflakeConnectorManager
from tributary.core.snowflake.infrastructure.client import SnowflakeTable
from tributary.core.state.machine import SyncErrorType, SyncStatus

PUSHED_AT = datetime(2026, 9, 1, tzinfo=UTC)


@pytest.fixture
def activities(connectors, snowflake_repository, content_store, credentials, snowflake_api):
    return SnowflakeActivities(
        connectors=connectors,
        repository=snowflake_repository,
        content_store=content_store,
        credentials=credentials,
        client_factory=snowflake_api,
        item_concurrency=2,
    )


@pytest.fixture
def manager_for(deps, snowflake_repository, snowflake_api):
    def _build(connector_id):
        return SnowflakeConnectorManager(
            connector_id, deps, repository=snowflake_repository, client_factory=snowflake_api
        )

    return _build


async def pushed_table(repository, connector_id, internal_id, permission=Permission.INHERITED):
    database_name, schema_name, name = internal_id.split(".")
    row = await repository.create_table(
        connector_id,
        internal_id=internal_id,
        name=name,
        schema_name=schema_name,
        database_name=database_name,
        permission=permission,
    )
    row.last_upserted_at = PUSHED_AT
    return row


# --- Sync activity ---


@pytest.mark.asyncio
async def test_nearest_explicit_choice_decides_which_tables_sync(
    activities, snowflake_connector, snowflake_repository, snowflake_api, content_store, connectors
):
    connector_id = snowflake_connector.id
    await snowflake_repository.create_database(
        connector_id, internal_id="DB", name="DB", permission=Permission.READ
    )
    await snowflake_repository.create_schema(
        connector_id,
        internal_id="DB.PRIVATE",
        name="PRIVATE",
        database_name="DB",
        permission=Permission.NONE,
    )
    await snowflake_repository.create_table(
        connector_id,
        internal_id="DB.PRIVATE.OPEN",
        name="OPEN",
        schema_name="PRIVATE",
        database_name="DB",
        permission=Permission.READ,
    )
    snowflake_api.tables = [
        SnowflakeTable("DB", "PUBLIC", "ORDERS"),
        SnowflakeTable("DB", "PRIVATE", "SALARIES"),
        SnowflakeTable("DB", "PRIVATE", "OPEN"),
        SnowflakeTable("OTHER", "PUBLIC", "LOGS"),
    ]

    result = await activities.sync_snowflake_connection(connector_id)

    assert sorted(result.upserted) == ["DB.PRIVATE.OPEN", "DB.PUBLIC.ORDERS"]
    table = content_store.tables["DB.PUBLIC.ORDERS"]
    assert table["parents"] == ["DB.PUBLIC.ORDERS", "DB.PUBLIC", "DB"]
    assert table["remote_secret_id"] == "conn-sf"
    assert content_store.folders["DB.PUBLIC"]["parent_id"] == "DB"
    assert connectors.connectors[connector_id].sync_status == SyncStatus.SUCCEEDED
    assert snowflake_api.closed == 1


@pytest.mark.asyncio
async def test_vanished_table_is_retracted(
    activities, snowflake_connector, snowflake_repository, snowflake_api, events
):
    connector_id = snowflake_connector.id
    await snowflake_repository.create_database(
        connector_id, internal_id="DB", name="DB", permission=Permission.READ
    )
    await pushed_table(snowflake_repository, connector_id, "DB.PUBLIC.DROPPED")
    snowflake_api.tables = []

    result = await activities.sync_snowflake_connection(connector_id)

    assert result.deleted == ["DB.PUBLIC.DROPPED"]
    assert events.of("delete_table") == ["DB.PUBLIC.DROPPED"]
    assert await snowflake_repository.list_tables(connector_id) == []


@pytest.mark.asyncio
async def test_connection_not_read_only_retracts_every_table(
    activities, snowflake_connector, snowflake_repository, snowflake_api, events, connectors
):
    connector_id = snowflake_connector.id
    await pushed_table(snowflake_repository, connector_id, "DB.PUBLIC.A")
    await pushed_table(snowflake_repository, connector_id, "DB.PUBLIC.B")
    explicit = await pushed_table(
        snowflake_repository, connector_id, "DB.PUBLIC.C", permission=Permission.READ
    )
    snowflake_api.offending_privileges = ["INSERT ON TABLE DB.PUBLIC.A"]
    snowflake_api.tables = [SnowflakeTable("DB", "PUBLIC", "A")]

    result = await activities.sync_snowflake_connection(connector_id)

    assert sorted(events.of("delete_table")) == ["DB.PUBLIC.A", "DB.PUBLIC.B", "DB.PUBLIC.C"]
    assert result.upserted == []
    # The explicit selection survives, without its downstream copy
    assert await snowflake_repository.list_tables(connector_id) == [explicit]
    assert explicit.last_upserted_at is None
    connector = connectors.connectors[connector_id]
    assert connector.sync_status == SyncStatus.ERRORED
    assert connector.error_type == SyncErrorType.REMOTE_DATABASE_CONNECTION_NOT_READONLY.value


# --- Manager ---


@pytest.mark.asyncio
async def test_create_rejects_a_role_with_write_privileges(
    manager_for, snowflake_api, connectors, scheduler, data_source
):
    snowflake_api.offending_privileges = ["CREATE TABLE ON SCHEMA DB.PUBLIC"]

    with pytest.raises(ConnectorManagerError) as exc_info:
        await manager_for(None).create(data_source=data_source, connection_id="conn-sf")

    assert exc_info.value.code == ConnectorManagerErrorCode.REMOTE_DATABASE_NOT_READONLY
    assert connectors.connectors == {}
    assert scheduler.calls == []


@pytest.mark.asyncio
async def test_create_launches_the_sync_workflow(manager_for, connectors, scheduler, data_source):
    connector_id = await manager_for(None).create(data_source=data_source, connection_id="conn-sf")

    assert connectors.connectors[connector_id].sync_status == SyncStatus.SUCCEEDED
    assert scheduler.names() == ["sync"]


@pytest.mark.asyncio
async def test_update_rejects_another_account(manager_for, snowflake_connector, credentials):
    credentials.snowflake["conn-other"] = SnowflakeCredentials(
        account="other", username="u", password="p", role="R", warehouse="W"
    )

    with pytest.raises(ConnectorManagerError) as exc_info:
        await manager_for(snowflake_connector.id).update(connection_id="conn-other")

    assert exc_info.value.code == ConnectorManagerErrorCode.CONNECTOR_OAUTH_TARGET_MISMATCH


@pytest.mark.asyncio
async def test_set_permissions_records_explicit_choices_and_signals_changes(
    manager_for, snowflake_connector, snowflake_repository, scheduler
):
    manager = manager_for(snowflake_connector.id)

    await manager.set_permissions({"DB": "read", "DB.PRIVATE": "none"})

    database = await snowflake_repository.get_database(snowflake_connector.id, "DB")
    schema = await snowflake_repository.get_schema(snowflake_connector.id, "DB.PRIVATE")
    assert database.permission == Permission.READ
    assert schema.permission == Permission.NONE
    assert scheduler.calls[0][2].internal_ids == ["DB", "DB.PRIVATE"]

    await manager.set_permissions({"DB": "read"})
    assert len(scheduler.calls) == 1


@pytest.mark.asyncio
async def test_set_permissions_rejects_bad_input(manager_for, snowflake_connector):
    manager = manager_for(snowflake_connector.id)

    with pytest.raises(ConnectorManagerError) as exc_info:
        await manager.set_permissions({"DB": "write"})
    assert exc_info.value.code == ConnectorManagerErrorCode.INVALID_PERMISSION

    with pytest.raises(ConnectorManagerError) as exc_info:
        await manager.set_permissions({"A.B.C.D": "read"})
    assert exc_info.value.code == ConnectorManagerErrorCode.INVALID_INTERNAL_ID


@pytest.mark.asyncio
async def test_retrieve_permissions_resolves_effective_grants(
    manager_for, snowflake_connector, snowflake_repository, snowflake_api
):
    connector_id = snowflake_connector.id
    await snowflake_repository.create_database(
        connector_id, internal_id="DB", name="DB", permission=Permission.READ
    )
    await snowflake_repository.create_schema(
        connector_id,
        internal_id="DB.PRIVATE",
        name="PRIVATE",
        database_name="DB",
        permission=Permission.NONE,
    )
    snowflake_api.schemas = {"DB": ["PUBLIC", "PRIVATE"]}

    nodes = await manager_for(connector_id).retrieve_permissions(parent_internal_id="DB")

    assert {node.internal_id: node.permission for node in nodes} == {
        "DB.PRIVATE": Permission.NONE,
        "DB.PUBLIC": Permission.READ,
    }

    selected = await manager_for(connector_id).retrieve_permissions(
        filter_permission=Permission.READ
    )
    assert [node.internal_id for node in selected] == ["DB"]


@pytest.mark.asyncio
async def test_parents_and_unsupported_operations(manager_for, snowflake_connector):
    manager = manager_for(snowflake_connector.id)

    assert await manager.retrieve_content_node_parents("DB.PUBLIC.ORDERS") == [
        "DB.PUBLIC.ORDERS",
        "DB.PUBLIC",
        "DB",
    ]
    with pytest.raises(ConnectorManagerError) as exc_info:
        await manager.garbage_collect()
    assert exc_info.value.code == ConnectorManagerErrorCode.UNSUPPORTED_OPERATION


@pytest.mark.asyncio
async def test_sync_ignores_from_ts(manager_for, snowflake_connector, scheduler):
    await manager_for(snowflake_connector.id).sync(from_ts=1_700_000_000_000)

    assert scheduler.calls == [("sync", snowflake_connector.id, None)]
