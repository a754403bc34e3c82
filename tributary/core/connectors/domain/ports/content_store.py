"""
Content Store Port
==================

Downstream document/table index the sync engine pushes into.

Every call is keyed by a stable id and replaces whatever the store held for
that id, so retries never duplicate content. ``parents`` is always the full
ancestor chain nearest-first including the node itself; ``parent_id`` is the
immediate parent or ``None`` at the root.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from tributary.core.connectors.domain.connector import Connector


@dataclass(frozen=True)
class DataSourceConfig:
    """Where a connector's content lands in the content store."""

    workspace_id: str
    data_source_id: str
    workspace_api_key: str


def data_source_from_connector(connector: Connector) -> DataSourceConfig:
    return DataSourceConfig(
        workspace_id=connector.workspace_id,
        data_source_id=connector.data_source_id,
        workspace_api_key=connector.workspace_api_key,
    )


class ContentStore(Protocol):
    async def upsert_folder(
        self,
        data_source: DataSourceConfig,
        *,
        folder_id: str,
        title: str,
        parents: list[str],
        parent_id: str | None,
        mime_type: str,
        source_url: str | None = None,
    ) -> None:
        """Create or replace a folder node."""
        ...

    async def upsert_document(
        self,
        data_source: DataSourceConfig,
        *,
        document_id: str,
        title: str,
        parents: list[str],
        parent_id: str | None,
        mime_type: str,
        content: str,
        source_url: str | None = None,
        tags: list[str] | None = None,
        timestamp_ms: int | None = None,
    ) -> None:
        """Create or replace a document."""
        ...

    async def upsert_table(
        self,
        data_source: DataSourceConfig,
        *,
        table_id: str,
        title: str,
        parents: list[str],
        parent_id: str | None,
        mime_type: str,
        remote_table_id: str,
        remote_secret_id: str,
        description: str = "",
        schema: dict[str, Any] | None = None,
    ) -> None:
        """Create or replace a remote table reference."""
        ...

    async def delete_document(self, data_source: DataSourceConfig, document_id: str) -> None:
        """Delete a document. Deleting an unknown id is not an error."""
        ...

    async def delete_table(self, data_source: DataSourceConfig, table_id: str) -> None:
        """Delete a table. Deleting an unknown id is not an error."""
        ...

    async def delete_folder(self, data_source: DataSourceConfig, folder_id: str) -> None:
        """Delete a folder. Deleting an unknown id is not an error."""
        ...
