"""
Snowflake Catalog Client
========================

Reads the warehouse catalog (databases, schemas, tables) and the grants of
the connection's role through a synchronous SQLAlchemy engine on the
Snowflake dialect. Every blocking call runs in a worker thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import URL, create_engine, text
from sqlalchemy.engine import Engine

from tributary.core.connectors.domain.errors import RemoteDatabaseNotReadonlyError
from tributary.core.connectors.domain.ports.credentials import SnowflakeCredentials

logger = logging.getLogger(__name__)

# Privileges that cannot modify data or objects
READONLY_PRIVILEGES = frozenset({"USAGE", "SELECT", "REFERENCES", "MONITOR", "READ"})

EXCLUDED_DATABASES = frozenset({"SNOWFLAKE", "SNOWFLAKE_SAMPLE_DATA"})
EXCLUDED_SCHEMAS = frozenset({"INFORMATION_SCHEMA"})


@dataclass(frozen=True)
class SnowflakeTable:
    database_name: str
    schema_name: str
    name: str

    @property
    def internal_id(self) -> str:
        return f"{self.database_name}.{self.schema_name}.{self.name}"


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def snowflake_url(credentials: SnowflakeCredentials) -> URL:
    return URL.create(
        "snowflake",
        username=credentials.username,
        password=credentials.password,
        host=credentials.account,
        query={"warehouse": credentials.warehouse, "role": credentials.role},
    )


class SnowflakeClient:
    def __init__(self, credentials: SnowflakeCredentials, *, engine: Engine | None = None):
        self.credentials = credentials
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(snowflake_url(self.credentials), pool_pre_ping=True)
        return self._engine

    async def close(self) -> None:
        if self._engine is not None:
            await asyncio.to_thread(self._engine.dispose)
            self._engine = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _query(self, sql: str) -> list[dict[str, Any]]:
        def _sync_query() -> list[dict[str, Any]]:
            with self.engine.connect() as conn:
                result = conn.execute(text(sql))
                return [
                    {key.lower(): value for key, value in row._mapping.items()} for row in result
                ]

        return await asyncio.to_thread(_sync_query)

    async def fetch_grants(self) -> list[dict[str, Any]]:
        return await self._query(f"SHOW GRANTS TO ROLE {_quote(self.credentials.role)}")

    async def check_connection_readonly(self) -> None:
        """
        Raises:
            RemoteDatabaseNotReadonlyError: if the role holds any privilege
                beyond reading.
        """
        offending = sorted(
            {
                f"{grant.get('privilege')} ON {grant.get('granted_on')} {grant.get('name')}"
                for grant in await self.fetch_grants()
                if str(grant.get("privilege", "")).upper() not in READONLY_PRIVILEGES
            }
        )
        if offending:
            logger.warning(
                f"Snowflake role {self.credentials.role} is not read-only: {len(offending)} grants"
            )
            raise RemoteDatabaseNotReadonlyError(
                f"Role {self.credentials.role} has write privileges", privileges=offending
            )

    async def fetch_databases(self) -> list[str]:
        rows = await self._query("SHOW DATABASES")
        return [row["name"] for row in rows if row["name"] not in EXCLUDED_DATABASES]

    async def fetch_schemas(self, database_name: str) -> list[str]:
        rows = await self._query(f"SHOW SCHEMAS IN DATABASE {_quote(database_name)}")
        return [row["name"] for row in rows if row["name"] not in EXCLUDED_SCHEMAS]

    async def fetch_tables(
        self, database_name: str | None = None, schema_name: str | None = None
    ) -> list[SnowflakeTable]:
        """Tables of one schema, or of the whole account when no schema is given."""
        if database_name and schema_name:
            scope = f"SCHEMA {_quote(database_name)}.{_quote(schema_name)}"
        elif database_name:
            scope = f"DATABASE {_quote(database_name)}"
        else:
            scope = "ACCOUNT"
        rows = await self._query(f"SHOW TABLES IN {scope}")
        return [
            SnowflakeTable(row["database_name"], row["schema_name"], row["name"])
            for row in rows
            if row["database_name"] not in EXCLUDED_DATABASES
            and row["schema_name"] not in EXCLUDED_SCHEMAS
        ]
