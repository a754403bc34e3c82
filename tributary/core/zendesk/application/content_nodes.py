"""
Zendesk Content Nodes
=====================

Projections of the Zendesk permission tree for the permission picker.
"""

from tributary.core.connectors.domain.content_node import ContentNode, ContentNodeType, MimeTypes
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.zendesk.domain.models import (
    ZendeskArticle,
    ZendeskBrand,
    ZendeskCategory,
    ZendeskTicket,
)


def _timestamp_ms(row) -> int | None:
    return int(row.updated_at.timestamp() * 1000) if getattr(row, "updated_at", None) else None


def brand_node(brand: ZendeskBrand) -> ContentNode:
    return ContentNode(
        internal_id=brand.internal_id,
        parent_internal_id=None,
        type=ContentNodeType.FOLDER,
        title=brand.name,
        source_url=brand.url or None,
        permission=brand.permission,
        expandable=True,
        mime_type=MimeTypes.ZENDESK_BRAND,
        last_updated_at=_timestamp_ms(brand),
    )


def help_center_node(brand: ZendeskBrand, *, rich_title: bool = False) -> ContentNode:
    return ContentNode(
        internal_id=brand.help_center_internal_id,
        parent_internal_id=brand.internal_id,
        type=ContentNodeType.FOLDER,
        title=f"Help Center ({brand.name})" if rich_title else "Help Center",
        source_url=brand.url or None,
        permission=brand.help_center_permission,
        expandable=True,
        mime_type=MimeTypes.ZENDESK_HELP_CENTER,
        last_updated_at=_timestamp_ms(brand),
    )


def tickets_node(brand: ZendeskBrand, *, rich_title: bool = False) -> ContentNode:
    return ContentNode(
        internal_id=brand.tickets_internal_id,
        parent_internal_id=brand.internal_id,
        type=ContentNodeType.FOLDER,
        title=f"Tickets ({brand.name})" if rich_title else "Tickets",
        source_url=None,
        permission=brand.tickets_permission,
        expandable=True,
        mime_type=MimeTypes.ZENDESK_TICKETS,
        last_updated_at=_timestamp_ms(brand),
    )


def category_node(category: ZendeskCategory, permission: Permission | None = None) -> ContentNode:
    return ContentNode(
        internal_id=category.internal_id,
        parent_internal_id=category.parent_internal_ids()[1],
        type=ContentNodeType.FOLDER,
        title=category.name,
        source_url=category.url or None,
        permission=permission or category.permission,
        expandable=True,
        mime_type=MimeTypes.ZENDESK_CATEGORY,
        last_updated_at=_timestamp_ms(category),
    )


def _leaf_permission(row: ZendeskArticle | ZendeskTicket) -> Permission:
    return Permission.READ if row.last_upserted_at is not None else Permission.NONE


def article_node(article: ZendeskArticle) -> ContentNode:
    return ContentNode(
        internal_id=article.internal_id,
        parent_internal_id=article.parent_internal_ids()[1],
        type=ContentNodeType.DOCUMENT,
        title=article.name,
        source_url=article.url or None,
        permission=_leaf_permission(article),
        expandable=False,
        mime_type=MimeTypes.ZENDESK_ARTICLE,
        last_updated_at=_timestamp_ms(article),
        prevent_selection=True,
    )


def ticket_node(ticket: ZendeskTicket) -> ContentNode:
    return ContentNode(
        internal_id=ticket.internal_id,
        parent_internal_id=ticket.parent_internal_ids()[1],
        type=ContentNodeType.DOCUMENT,
        title=ticket.subject,
        source_url=ticket.url or None,
        permission=_leaf_permission(ticket),
        expandable=False,
        mime_type=MimeTypes.ZENDESK_TICKET,
        last_updated_at=int(ticket.ticket_updated_at.timestamp() * 1000),
        prevent_selection=True,
    )
