"""
Credentials Port
================

Resolves a connector's connection id into provider credentials. Token
issuance and refresh live in an external service.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ZendeskAccess:
    subdomain: str
    access_token: str


@dataclass(frozen=True)
class SnowflakeCredentials:
    account: str
    username: str
    password: str
    role: str
    warehouse: str


class CredentialsProvider(Protocol):
    async def get_zendesk_access(self, connection_id: str) -> ZendeskAccess:
        """Return the subdomain and OAuth access token behind a Zendesk connection."""
        ...

    async def get_snowflake_credentials(self, connection_id: str) -> SnowflakeCredentials:
        """Return the stored Snowflake credentials for a connection."""
        ...
