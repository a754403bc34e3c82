"""
Content Nodes
=============

Read-only projection of permission tree nodes consumed by the UI.
"""

from dataclasses import dataclass, field
from enum import Enum

from tributary.core.connectors.domain.permissions import Permission


class ContentNodeType(str, Enum):
    FOLDER = "folder"
    DOCUMENT = "document"
    TABLE = "table"


class MimeTypes:
    """Mime types attached to folders, documents and tables in the content store."""

    ZENDESK_BRAND = "application/vnd.tributary.zendesk.brand"
    ZENDESK_HELP_CENTER = "application/vnd.tributary.zendesk.helpcenter"
    ZENDESK_TICKETS = "application/vnd.tributary.zendesk.tickets"
    ZENDESK_CATEGORY = "application/vnd.tributary.zendesk.category"
    ZENDESK_ARTICLE = "application/vnd.tributary.zendesk.article"
    ZENDESK_TICKET = "application/vnd.tributary.zendesk.ticket"
    SNOWFLAKE_DATABASE = "application/vnd.tributary.snowflake.database"
    SNOWFLAKE_SCHEMA = "application/vnd.tributary.snowflake.schema"
    SNOWFLAKE_TABLE = "application/vnd.tributary.snowflake.table"


@dataclass
class ContentNode:
    internal_id: str
    parent_internal_id: str | None
    type: ContentNodeType
    title: str
    source_url: str | None
    permission: Permission
    expandable: bool
    mime_type: str
    last_updated_at: int | None = None
    # Leaves are shown but cannot carry their own permission
    prevent_selection: bool = field(default=False, repr=False)
