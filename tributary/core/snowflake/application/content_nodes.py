from tributary.core.connectors.domain.content_node import ContentNode, ContentNodeType, MimeTypes
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.snowflake.domain.internal_ids import SnowflakeNodeIds, SnowflakeNodeType

_NODE_KINDS = {
    SnowflakeNodeType.DATABASE: (ContentNodeType.FOLDER, MimeTypes.SNOWFLAKE_DATABASE, True),
    SnowflakeNodeType.SCHEMA: (ContentNodeType.FOLDER, MimeTypes.SNOWFLAKE_SCHEMA, True),
    SnowflakeNodeType.TABLE: (ContentNodeType.TABLE, MimeTypes.SNOWFLAKE_TABLE, False),
}


def snowflake_node(ids: SnowflakeNodeIds, permission: Permission) -> ContentNode:
    """Every node of the tree is fully described by its dotted path."""
    node_type, mime_type, expandable = _NODE_KINDS[ids.type]
    chain = ids.parent_internal_ids()
    return ContentNode(
        internal_id=ids.internal_id,
        parent_internal_id=chain[1] if len(chain) > 1 else None,
        type=node_type,
        title=ids.table_name or ids.schema_name or ids.database_name,
        source_url=None,
        permission=permission,
        expandable=expandable,
        mime_type=mime_type,
    )
