"""
HTTP Content Store
==================

ContentStore implementation backed by the content store REST API. Every
node is addressed by ``/w/{workspace}/data_sources/{data_source}/{kind}/{id}``:
POST replaces the node, DELETE removes it.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from tributary.core.connectors.domain.ports.content_store import ContentStore, DataSourceConfig

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    """The content store rejected a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class HttpContentStore(ContentStore):
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._http = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()

    @staticmethod
    def _path(data_source: DataSourceConfig, kind: str, node_id: str) -> str:
        return (
            f"/api/v1/w/{data_source.workspace_id}/data_sources/{data_source.data_source_id}"
            f"/{kind}/{quote(node_id, safe='')}"
        )

    @staticmethod
    def _headers(data_source: DataSourceConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {data_source.workspace_api_key}"}

    async def _post(
        self, data_source: DataSourceConfig, kind: str, node_id: str, body: dict[str, Any]
    ) -> None:
        response = await self._http.post(
            self._path(data_source, kind, node_id), json=body, headers=self._headers(data_source)
        )
        if response.is_error:
            logger.error(f"Content store rejected {kind} {node_id}: {response.status_code}")
            raise ContentStoreError(
                f"Upserting {kind} {node_id} failed: {response.text[:500]}", response.status_code
            )

    async def _delete(self, data_source: DataSourceConfig, kind: str, node_id: str) -> None:
        response = await self._http.delete(
            self._path(data_source, kind, node_id), headers=self._headers(data_source)
        )
        if response.status_code == 404:
            return
        if response.is_error:
            raise ContentStoreError(
                f"Deleting {kind} {node_id} failed: {response.text[:500]}", response.status_code
            )

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
        await self._post(
            data_source,
            "folders",
            folder_id,
            {
                "title": title,
                "parents": parents,
                "parent_id": parent_id,
                "mime_type": mime_type,
                "source_url": source_url,
            },
        )

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
        await self._post(
            data_source,
            "documents",
            document_id,
            {
                "title": title,
                "parents": parents,
                "parent_id": parent_id,
                "mime_type": mime_type,
                "text": content,
                "source_url": source_url,
                "tags": tags or [],
                "timestamp": timestamp_ms,
            },
        )

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
        await self._post(
            data_source,
            "tables",
            table_id,
            {
                "name": table_id,
                "title": title,
                "parents": parents,
                "parent_id": parent_id,
                "mime_type": mime_type,
                "remote_database_table_id": remote_table_id,
                "remote_database_secret_id": remote_secret_id,
                "description": description,
                "schema": schema,
            },
        )

    async def delete_document(self, data_source: DataSourceConfig, document_id: str) -> None:
        await self._delete(data_source, "documents", document_id)

    async def delete_table(self, data_source: DataSourceConfig, table_id: str) -> None:
        await self._delete(data_source, "tables", table_id)

    async def delete_folder(self, data_source: DataSourceConfig, folder_id: str) -> None:
        await self._delete(data_source, "folders", folder_id)
