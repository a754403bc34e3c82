"""
Snowflake internal ids are the dotted path of the object: ``db``,
``db.schema`` and ``db.schema.table``.
"""

from dataclasses import dataclass
from enum import Enum

from tributary.core.connectors.domain.errors import InvalidInternalIdError


class SnowflakeNodeType(str, Enum):
    DATABASE = "database"
    SCHEMA = "schema"
    TABLE = "table"


_TYPES_BY_DEPTH = {
    1: SnowflakeNodeType.DATABASE,
    2: SnowflakeNodeType.SCHEMA,
    3: SnowflakeNodeType.TABLE,
}


@dataclass(frozen=True)
class SnowflakeNodeIds:
    type: SnowflakeNodeType
    database_name: str
    schema_name: str | None = None
    table_name: str | None = None

    @property
    def internal_id(self) -> str:
        return ".".join(
            part for part in (self.database_name, self.schema_name, self.table_name) if part
        )

    def parent_internal_ids(self) -> list[str]:
        """The node followed by its ancestors, nearest first."""
        parts = self.internal_id.split(".")
        return [".".join(parts[:depth]) for depth in range(len(parts), 0, -1)]


def get_schema_internal_id(database_name: str, schema_name: str) -> str:
    return f"{database_name}.{schema_name}"


def get_table_internal_id(database_name: str, schema_name: str, table_name: str) -> str:
    return f"{database_name}.{schema_name}.{table_name}"


def parse_internal_id(internal_id: str) -> SnowflakeNodeIds:
    parts = internal_id.split(".")
    node_type = _TYPES_BY_DEPTH.get(len(parts))
    if node_type is None or not all(parts):
        raise InvalidInternalIdError(internal_id)
    return SnowflakeNodeIds(node_type, *parts)
