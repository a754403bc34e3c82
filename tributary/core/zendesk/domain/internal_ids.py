"""
Zendesk Internal IDs
====================

Stable, parseable ids for every Zendesk node of a connector:

- ``zendesk-brand-{connector}-{brand}``
- ``zendesk-help-center-{connector}-{brand}``
- ``zendesk-tickets-{connector}-{brand}``
- ``zendesk-category-{connector}-{brand}-{category}``
- ``zendesk-article-{connector}-{brand}-{article}``
- ``zendesk-ticket-{connector}-{brand}-{ticket}``
"""

import re
from dataclasses import dataclass
from enum import Enum

from tributary.core.connectors.domain.errors import InvalidInternalIdError


class ZendeskNodeType(str, Enum):
    BRAND = "brand"
    HELP_CENTER = "help-center"
    TICKETS = "tickets"
    CATEGORY = "category"
    ARTICLE = "article"
    TICKET = "ticket"


@dataclass(frozen=True)
class ZendeskNodeIds:
    type: ZendeskNodeType
    connector_id: int
    brand_id: int
    object_id: int | None = None  # category, article or ticket id

    @property
    def category_id(self) -> int:
        assert self.type is ZendeskNodeType.CATEGORY and self.object_id is not None
        return self.object_id

    @property
    def article_id(self) -> int:
        assert self.type is ZendeskNodeType.ARTICLE and self.object_id is not None
        return self.object_id

    @property
    def ticket_id(self) -> int:
        assert self.type is ZendeskNodeType.TICKET and self.object_id is not None
        return self.object_id


_BRAND_LEVEL = (ZendeskNodeType.BRAND, ZendeskNodeType.HELP_CENTER, ZendeskNodeType.TICKETS)
_TYPES_PATTERN = "|".join(re.escape(t.value) for t in ZendeskNodeType)
_INTERNAL_ID_RE = re.compile(rf"^zendesk-({_TYPES_PATTERN})-(\d+)-(\d+)(?:-(\d+))?$")


def get_brand_internal_id(connector_id: int, brand_id: int) -> str:
    return f"zendesk-brand-{connector_id}-{brand_id}"


def get_help_center_internal_id(connector_id: int, brand_id: int) -> str:
    return f"zendesk-help-center-{connector_id}-{brand_id}"


def get_tickets_internal_id(connector_id: int, brand_id: int) -> str:
    return f"zendesk-tickets-{connector_id}-{brand_id}"


def get_category_internal_id(connector_id: int, brand_id: int, category_id: int) -> str:
    return f"zendesk-category-{connector_id}-{brand_id}-{category_id}"


def get_article_internal_id(connector_id: int, brand_id: int, article_id: int) -> str:
    return f"zendesk-article-{connector_id}-{brand_id}-{article_id}"


def get_ticket_internal_id(connector_id: int, brand_id: int, ticket_id: int) -> str:
    return f"zendesk-ticket-{connector_id}-{brand_id}-{ticket_id}"


def get_ids_from_internal_id(connector_id: int, internal_id: str) -> ZendeskNodeIds:
    """
    Parse an internal id of ``connector_id``.

    Raises:
        InvalidInternalIdError: malformed id, or an id owned by another connector.
    """
    match = _INTERNAL_ID_RE.match(internal_id)
    if match is None:
        raise InvalidInternalIdError(internal_id)

    node_type = ZendeskNodeType(match.group(1))
    parsed_connector_id = int(match.group(2))
    brand_id = int(match.group(3))
    object_id = int(match.group(4)) if match.group(4) is not None else None

    if parsed_connector_id != connector_id:
        raise InvalidInternalIdError(internal_id)
    if (node_type in _BRAND_LEVEL) != (object_id is None):
        raise InvalidInternalIdError(internal_id)

    return ZendeskNodeIds(
        type=node_type,
        connector_id=parsed_connector_id,
        brand_id=brand_id,
        object_id=object_id,
    )
