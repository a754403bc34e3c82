"""
Zendesk Activities Unit Tests
=============================

Cursor bookkeeping, ticket pages, retraction and garbage collection of the
Zendesk sync activities.
"""

from datetime import UTC, datetime, timedelta

import pytest

from tributary.core.connectors.domain.permissions import Permission
from tributary.core.state.machine import SyncStatus
from tributary.core.zendesk.application.activities import ZendeskActivities
from tributary.core.zendesk.domain.internal_ids import (
    get_brand_internal_id,
    get_ticket_internal_id,
    get_tickets_internal_id,
)
from tributary.core.zendesk.infrastructure.client import ZendeskPage

NOW_MS = int(datetime(2026, 10, 1, 12, 0, tzinfo=UTC).timestamp() * 1000)


def ticket(ticket_id: int, status: str = "solved", **fields) -> dict:
    return {
        "id": ticket_id,
        "subject": f"Ticket {ticket_id}",
        "status": status,
        "brand_id": 11,
        "updated_at": "2026-09-30T10:00:00Z",
        **fields,
    }


@pytest.fixture
def activities(connectors, zendesk_repository, content_store, credentials, zendesk_api):
    return ZendeskActivities(
        connectors=connectors,
        repository=zendesk_repository,
        content_store=content_store,
        credentials=credentials,
        client_factory=zendesk_api,
        item_concurrency=2,
        sub_fetch_concurrency=2,
    )


@pytest.fixture
async def brand(zendesk_connector, zendesk_repository):
    await zendesk_repository.create_configuration(
        zendesk_connector.id, subdomain="acme", retention_period_days=30
    )
    return await zendesk_repository.create_brand(
        zendesk_connector.id,
        brand_id=11,
        name="Acme",
        url="https://acme.zendesk.com",
        subdomain="acme",
        has_help_center=True,
        help_center_permission=Permission.NONE,
        tickets_permission=Permission.READ,
    )


async def pushed_ticket(repository, connector_id, ticket_id, updated_at, permission=Permission.INHERITED):
    row = await repository.create_ticket(
        connector_id,
        brand_id=11,
        ticket_id=ticket_id,
        subject=f"Ticket {ticket_id}",
        url="",
        ticket_updated_at=updated_at,
    )
    row.permission = permission
    row.last_upserted_at = updated_at
    return row


# --- Cursor ---


@pytest.mark.asyncio
async def test_cursor_is_created_after_the_first_successful_sync(
    activities, zendesk_connector, zendesk_repository, connectors
):
    assert await activities.start_sync(zendesk_connector.id) is None

    await activities.save_success_sync(zendesk_connector.id, NOW_MS)

    cursor = await zendesk_repository.get_cursor(zendesk_connector.id)
    assert cursor.timestamp_cursor == datetime(2026, 10, 1, 12, 0, tzinfo=UTC)
    assert connectors.connectors[zendesk_connector.id].sync_status == SyncStatus.SUCCEEDED

    await activities.start_sync(zendesk_connector.id)
    await activities.save_success_sync(zendesk_connector.id, NOW_MS + 60_000)
    cursor = await zendesk_repository.get_cursor(zendesk_connector.id)
    assert cursor.timestamp_cursor == datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_set_cursor_moves_the_high_water_mark(activities, zendesk_connector, zendesk_repository):
    await activities.set_cursor(zendesk_connector.id, NOW_MS)
    await activities.set_cursor(zendesk_connector.id, NOW_MS + 1000)

    cursor = await zendesk_repository.get_cursor(zendesk_connector.id)
    assert cursor.timestamp_cursor == datetime(2026, 10, 1, 12, 0, 1, tzinfo=UTC)


# --- Tickets ---


@pytest.mark.asyncio
async def test_empty_ticket_page_ends_the_listing(activities, brand, zendesk_api, events):
    zendesk_api.ticket_pages = [ZendeskPage(items=[], has_more=True, next_link="https://next")]

    result = await activities.sync_ticket_batch(brand.connector_id, 11, NOW_MS)

    assert not result.has_more
    assert result.next_link is None
    assert events == []


@pytest.mark.asyncio
async def test_solved_tickets_are_pushed_with_their_comments(
    activities, brand, zendesk_api, zendesk_repository, content_store
):
    connector_id = brand.connector_id
    zendesk_api.ticket_pages = [
        ZendeskPage(items=[ticket(7, tags=["printer"]), ticket(8, status="open")])
    ]
    zendesk_api.comments[7] = [
        {"author_id": 3, "plain_body": "Turned it off and on", "created_at": "2026-09-30T09:00:00Z"}
    ]
    zendesk_api.users[3] = {"id": 3, "name": "Ann"}

    result = await activities.sync_ticket_batch(connector_id, 11, NOW_MS)

    document_id = get_ticket_internal_id(connector_id, 11, 7)
    assert list(content_store.documents) == [document_id]
    document = content_store.documents[document_id]
    assert document["parents"] == [
        document_id,
        get_tickets_internal_id(connector_id, 11),
        get_brand_internal_id(connector_id, 11),
    ]
    assert "Ann" in document["content"]
    assert "Turned it off and on" in document["content"]
    assert "printer" in document["tags"]
    assert result.synced_ids == [7, 8]

    rows = await zendesk_repository.list_tickets(connector_id)
    assert [row.ticket_id for row in rows] == [7]
    assert rows[0].last_upserted_at is not None


@pytest.mark.asyncio
async def test_deleted_ticket_is_retracted(activities, brand, zendesk_api, zendesk_repository, events):
    connector_id = brand.connector_id
    await pushed_ticket(zendesk_repository, connector_id, 7, datetime(2026, 9, 1, tzinfo=UTC))
    zendesk_api.ticket_pages = [ZendeskPage(items=[ticket(7, status="deleted")])]

    await activities.sync_ticket_batch(connector_id, 11, NOW_MS)

    assert events.of("delete_document") == [get_ticket_internal_id(connector_id, 11, 7)]
    assert await zendesk_repository.list_tickets(connector_id) == []


@pytest.mark.asyncio
async def test_reopened_ticket_keeps_its_synced_copy(
    activities, brand, zendesk_api, zendesk_repository, events
):
    connector_id = brand.connector_id
    row = await pushed_ticket(zendesk_repository, connector_id, 5, datetime(2026, 9, 1, tzinfo=UTC))
    zendesk_api.ticket_pages = [ZendeskPage(items=[ticket(5, status="open")])]

    result = await activities.sync_ticket_batch(connector_id, 11, NOW_MS)

    assert result.synced_ids == [5]
    assert events == []
    assert await zendesk_repository.list_tickets(connector_id) == [row]
    assert row.last_upserted_at == datetime(2026, 9, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_tickets_of_other_brands_are_ignored(activities, brand, zendesk_api, content_store):
    zendesk_api.ticket_pages = [ZendeskPage(items=[ticket(7, brand_id=99)])]

    result = await activities.sync_ticket_batch(brand.connector_id, 11, NOW_MS)

    assert result.synced_ids == []
    assert content_store.documents == {}


@pytest.mark.asyncio
async def test_unselected_tickets_are_deleted_downstream_before_their_rows(
    activities, brand, zendesk_repository, events
):
    connector_id = brand.connector_id
    for ticket_id in (7, 8):
        await pushed_ticket(zendesk_repository, connector_id, ticket_id, datetime(2026, 9, 1, tzinfo=UTC))
    brand.tickets_permission = Permission.NONE

    removed = await activities.remove_unselected_tickets(connector_id, 11)

    assert removed == 2
    for ticket_id in (7, 8):
        internal_id = get_ticket_internal_id(connector_id, 11, ticket_id)
        kinds = [kind for kind, target in events if target == internal_id]
        assert kinds == ["delete_document", "delete_row"]


@pytest.mark.asyncio
async def test_selected_tickets_are_kept(activities, brand, zendesk_repository):
    await pushed_ticket(zendesk_repository, brand.connector_id, 7, datetime(2026, 9, 1, tzinfo=UTC))

    assert await activities.remove_unselected_tickets(brand.connector_id, 11) == 0
    assert len(await zendesk_repository.list_tickets(brand.connector_id)) == 1


@pytest.mark.asyncio
async def test_tickets_past_retention_are_garbage_collected(activities, brand, zendesk_repository):
    connector_id = brand.connector_id
    now = datetime.fromtimestamp(NOW_MS / 1000, tz=UTC)
    await pushed_ticket(zendesk_repository, connector_id, 7, now - timedelta(days=45))
    await pushed_ticket(zendesk_repository, connector_id, 8, now - timedelta(days=5))

    collected = await activities.garbage_collect_outdated_tickets(connector_id, 11, NOW_MS)

    assert collected == 2  # one downstream delete plus one destroyed row
    assert [row.ticket_id for row in await zendesk_repository.list_tickets(connector_id)] == [8]


@pytest.mark.asyncio
async def test_tickets_gone_from_zendesk_are_garbage_collected(
    activities, brand, zendesk_api, zendesk_repository
):
    connector_id = brand.connector_id
    for ticket_id in (7, 8, 9):
        await pushed_ticket(zendesk_repository, connector_id, ticket_id, datetime(2026, 9, 1, tzinfo=UTC))
    zendesk_api.tickets_by_id = {7: ticket(7), 8: ticket(8, status="deleted")}

    assert await activities.garbage_collect_vanished_tickets(connector_id, 11) == 2
    assert [row.ticket_id for row in await zendesk_repository.list_tickets(connector_id)] == [7]


# --- Brands and categories ---


@pytest.mark.asyncio
async def test_vanished_brand_loses_its_permissions(activities, brand):
    result = await activities.sync_brand(brand.connector_id, 11, NOW_MS)

    assert not result.help_center_allowed
    assert not result.tickets_allowed
    assert brand.tickets_permission == Permission.NONE


@pytest.mark.asyncio
async def test_sync_brand_upserts_its_three_folders(activities, brand, zendesk_api, content_store):
    zendesk_api.brands[11] = {
        "id": 11,
        "name": "Acme Corp",
        "url": "https://acme.zendesk.com",
        "subdomain": "acme",
        "has_help_center": False,
    }

    result = await activities.sync_brand(brand.connector_id, 11, NOW_MS)

    assert result.tickets_allowed
    assert not result.help_center_allowed
    assert brand.name == "Acme Corp"
    assert brand.last_upserted_at is not None
    assert content_store.folders[brand.internal_id]["parent_id"] is None
    assert content_store.folders[brand.tickets_internal_id]["parent_id"] == brand.internal_id


@pytest.mark.asyncio
async def test_category_no_longer_granted_is_retracted(
    activities, brand, zendesk_repository, events
):
    connector_id = brand.connector_id
    category = await zendesk_repository.create_category(
        connector_id,
        brand_id=11,
        category_id=5,
        name="FAQ",
        url="",
        description=None,
        permission=Permission.INHERITED,
    )
    category.last_upserted_at = datetime(2026, 9, 1, tzinfo=UTC)
    article = await zendesk_repository.create_article(
        connector_id, brand_id=11, category_id=5, section_id=None, article_id=99, name="A", url=""
    )
    article.last_upserted_at = datetime(2026, 9, 1, tzinfo=UTC)

    synced = await activities.sync_category(connector_id, 11, 5, NOW_MS)

    assert not synced
    assert events.of("delete_document") == [article.internal_id]
    assert events.of("delete_folder") == [category.internal_id]
    assert await zendesk_repository.list_categories(connector_id) == []
    assert await zendesk_repository.list_articles(connector_id) == []


@pytest.mark.asyncio
async def test_brand_with_nothing_selected_is_garbage_collected(
    activities, brand, zendesk_api, zendesk_repository, events
):
    zendesk_api.brands[11] = {"id": 11, "name": "Acme", "subdomain": "acme", "has_help_center": True}
    brand.tickets_permission = Permission.NONE
    brand.last_upserted_at = datetime(2026, 9, 1, tzinfo=UTC)

    removed = await activities.garbage_collect_brand(brand.connector_id, 11)

    assert removed
    assert events.of("delete_folder") == [
        brand.tickets_internal_id,
        brand.help_center_internal_id,
        brand.internal_id,
    ]
    assert await zendesk_repository.list_brands(brand.connector_id) == []
