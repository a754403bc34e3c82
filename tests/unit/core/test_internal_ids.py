"""
Internal ID Unit Tests
======================

Formatting and parsing of the Zendesk and Snowflake node ids.
"""

import pytest

from tributary.core.connectors.domain.errors import InvalidInternalIdError
from tributary.core.snowflake.domain.internal_ids import SnowflakeNodeType, parse_internal_id
from tributary.core.zendesk.domain.internal_ids import (
    ZendeskNodeType,
    get_article_internal_id,
    get_brand_internal_id,
    get_category_internal_id,
    get_help_center_internal_id,
    get_ids_from_internal_id,
    get_ticket_internal_id,
    get_tickets_internal_id,
)


@pytest.mark.parametrize(
    ("internal_id", "node_type", "object_id"),
    [
        (get_brand_internal_id(7, 11), ZendeskNodeType.BRAND, None),
        (get_help_center_internal_id(7, 11), ZendeskNodeType.HELP_CENTER, None),
        (get_tickets_internal_id(7, 11), ZendeskNodeType.TICKETS, None),
        (get_category_internal_id(7, 11, 22), ZendeskNodeType.CATEGORY, 22),
        (get_article_internal_id(7, 11, 33), ZendeskNodeType.ARTICLE, 33),
        (get_ticket_internal_id(7, 11, 44), ZendeskNodeType.TICKET, 44),
    ],
)
def test_zendesk_ids_parse_back(internal_id, node_type, object_id):
    ids = get_ids_from_internal_id(7, internal_id)

    assert ids.type is node_type
    assert ids.connector_id == 7
    assert ids.brand_id == 11
    assert ids.object_id == object_id


def test_zendesk_id_formats():
    assert get_help_center_internal_id(1, 2) == "zendesk-help-center-1-2"
    assert get_ticket_internal_id(1, 2, 3) == "zendesk-ticket-1-2-3"


@pytest.mark.parametrize(
    "internal_id",
    [
        "zendesk-brand-7",
        "zendesk-brand-7-11-3",  # brand-level ids carry no object id
        "zendesk-article-7-11",
        "zendesk-section-7-11-3",
        "zendesk-brand-7-abc",
        "brand-7-11",
    ],
)
def test_zendesk_malformed_ids_are_rejected(internal_id):
    with pytest.raises(InvalidInternalIdError):
        get_ids_from_internal_id(7, internal_id)


def test_zendesk_id_of_another_connector_is_rejected():
    with pytest.raises(InvalidInternalIdError):
        get_ids_from_internal_id(8, get_brand_internal_id(7, 11))


def test_snowflake_ids_by_depth():
    assert parse_internal_id("DB").type is SnowflakeNodeType.DATABASE

    schema = parse_internal_id("DB.PUBLIC")
    assert schema.type is SnowflakeNodeType.SCHEMA
    assert schema.schema_name == "PUBLIC"

    table = parse_internal_id("DB.PUBLIC.ORDERS")
    assert table.type is SnowflakeNodeType.TABLE
    assert table.internal_id == "DB.PUBLIC.ORDERS"
    assert table.parent_internal_ids() == ["DB.PUBLIC.ORDERS", "DB.PUBLIC", "DB"]


@pytest.mark.parametrize("internal_id", ["", "DB..ORDERS", "A.B.C.D", "DB."])
def test_snowflake_malformed_ids_are_rejected(internal_id):
    with pytest.raises(InvalidInternalIdError):
        parse_internal_id(internal_id)
