"""
HTTP Credentials Provider
=========================

Resolves connection ids through the external connections service, which
owns OAuth token issuance and refresh.
"""

import logging

import httpx

from tributary.core.connectors.domain.errors import ExternalOAuthTokenError
from tributary.core.connectors.domain.ports.credentials import (
    CredentialsProvider,
    SnowflakeCredentials,
    ZendeskAccess,
)

logger = logging.getLogger(__name__)


class HttpCredentialsProvider(CredentialsProvider):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _get(self, path: str, connection_id: str) -> dict:
        response = await self._http.get(path)
        if response.status_code in (401, 403, 404):
            # Revoked or deleted connection
            logger.warning(f"Connection {connection_id} unavailable: {response.status_code}")
            raise ExternalOAuthTokenError(f"Connection {connection_id} is no longer authorized")
        response.raise_for_status()
        return response.json()

    async def get_zendesk_access(self, connection_id: str) -> ZendeskAccess:
        data = await self._get(f"/connections/{connection_id}/access_token", connection_id)
        subdomain = (data.get("connection") or {}).get("metadata", {}).get("zendesk_subdomain")
        if not subdomain:
            raise ValueError(f"Zendesk connection {connection_id} has no subdomain")
        return ZendeskAccess(subdomain=subdomain, access_token=data["access_token"])

    async def get_snowflake_credentials(self, connection_id: str) -> SnowflakeCredentials:
        data = await self._get(f"/credentials/{connection_id}", connection_id)
        content = data.get("credential", {}).get("content", data)
        return SnowflakeCredentials(
            account=content["account"],
            username=content["username"],
            password=content["password"],
            role=content["role"],
            warehouse=content["warehouse"],
        )
