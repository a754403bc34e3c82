from datetime import UTC, datetime
from itertools import count

import pytest

from tributary.api.config import Settings
from tributary.core.connectors.application.manager import ConnectorDeps
from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.errors import RemoteDatabaseNotReadonlyError
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.domain.ports.content_store import DataSourceConfig
from tributary.core.connectors.domain.ports.credentials import SnowflakeCredentials, ZendeskAccess
from tributary.core.snowflake.domain.models import RemoteDatabase, RemoteSchema, RemoteTable
from tributary.core.snowflake.infrastructure.client import SnowflakeTable
from tributary.core.state.machine import SyncStatus
from tributary.core.zendesk.domain.models import (
    ZendeskArticle,
    ZendeskBrand,
    ZendeskCategory,
    ZendeskConfiguration,
    ZendeskTicket,
    ZendeskTimestampCursor,
)
from tributary.core.zendesk.infrastructure.client import ZendeskPage
from tributary.shared.kernel.runtime import _reset_for_tests, configure_settings

# ============================================================================
# In-memory fakes
# ============================================================================


class EventLog(list):
    """Ordered record of content store calls and row deletions, shared by fakes."""

    def of(self, kind: str) -> list[str]:
        return [target for event, target in self if event == kind]


class FakeConnectorRepository:
    def __init__(self) -> None:
        self.connectors: dict[int, Connector] = {}
        self._ids = count(1)
        self.deleted: list[int] = []

    async def get(self, connector_id: int) -> Connector | None:
        return self.connectors.get(connector_id)

    async def create(
        self,
        provider: ConnectorProvider,
        *,
        connection_id: str,
        workspace_id: str,
        workspace_api_key: str,
        data_source_id: str,
    ) -> Connector:
        connector = Connector(
            id=next(self._ids),
            type=provider,
            connection_id=connection_id,
            workspace_id=workspace_id,
            workspace_api_key=workspace_api_key,
            data_source_id=data_source_id,
            paused_at=None,
            sync_status=SyncStatus.IDLE,
            error_type=None,
            last_sync_start_time=None,
            last_sync_finish_time=None,
            last_sync_success_time=None,
        )
        self.connectors[connector.id] = connector
        return connector

    async def save(self, connector: Connector) -> Connector:
        self.connectors[connector.id] = connector
        return connector

    async def delete(self, connector: Connector) -> None:
        self.connectors.pop(connector.id, None)
        self.deleted.append(connector.id)

    async def list_by_provider(self, provider: ConnectorProvider) -> list[Connector]:
        return [c for c in self.connectors.values() if c.type == provider]


class _RowStore:
    def __init__(self, events: EventLog) -> None:
        self.rows: list = []
        self.events = events

    async def save(self, row):
        if not any(existing is row for existing in self.rows):
            self.rows.append(row)
        return row

    async def delete(self, row) -> None:
        self.rows = [existing for existing in self.rows if existing is not row]
        self.events.append(("delete_row", getattr(row, "internal_id", repr(row))))

    def _of(self, model, connector_id: int) -> list:
        return [r for r in self.rows if isinstance(r, model) and r.connector_id == connector_id]


class InMemoryZendeskRepository(_RowStore):
    async def get_configuration(self, connector_id):
        return next(iter(self._of(ZendeskConfiguration, connector_id)), None)

    async def create_configuration(self, connector_id, *, subdomain, retention_period_days):
        return await self.save(
            ZendeskConfiguration(
                connector_id=connector_id,
                subdomain=subdomain,
                retention_period_days=retention_period_days,
            )
        )

    async def get_cursor(self, connector_id):
        return next(iter(self._of(ZendeskTimestampCursor, connector_id)), None)

    async def create_cursor(self, connector_id, timestamp):
        return await self.save(
            ZendeskTimestampCursor(connector_id=connector_id, timestamp_cursor=timestamp)
        )

    async def delete_cursor(self, connector_id):
        cursor = await self.get_cursor(connector_id)
        if cursor is None:
            return False
        self.rows.remove(cursor)
        return True

    async def get_brand(self, connector_id, brand_id):
        return next(
            (b for b in self._of(ZendeskBrand, connector_id) if b.brand_id == brand_id), None
        )

    async def list_brands(self, connector_id, brand_ids=None):
        brands = self._of(ZendeskBrand, connector_id)
        if brand_ids is not None:
            brands = [b for b in brands if b.brand_id in brand_ids]
        return brands

    async def create_brand(self, connector_id, **fields):
        return await self.save(
            ZendeskBrand(connector_id=connector_id, last_upserted_at=None, **fields)
        )

    async def get_category(self, connector_id, brand_id, category_id):
        return next(
            (
                c
                for c in self._of(ZendeskCategory, connector_id)
                if c.brand_id == brand_id and c.category_id == category_id
            ),
            None,
        )

    async def list_categories(self, connector_id, *, brand_id=None, category_ids=None):
        categories = self._of(ZendeskCategory, connector_id)
        if brand_id is not None:
            categories = [c for c in categories if c.brand_id == brand_id]
        if category_ids is not None:
            categories = [c for c in categories if c.category_id in category_ids]
        return categories

    async def create_category(self, connector_id, **fields):
        return await self.save(
            ZendeskCategory(connector_id=connector_id, last_upserted_at=None, **fields)
        )

    async def list_articles(self, connector_id, *, brand_id=None, category_id=None, article_ids=None):
        articles = self._of(ZendeskArticle, connector_id)
        if brand_id is not None:
            articles = [a for a in articles if a.brand_id == brand_id]
        if category_id is not None:
            articles = [a for a in articles if a.category_id == category_id]
        if article_ids is not None:
            articles = [a for a in articles if a.article_id in article_ids]
        return articles

    async def create_article(self, connector_id, **fields):
        return await self.save(
            ZendeskArticle(
                connector_id=connector_id,
                permission=fields.pop("permission", Permission.INHERITED),
                last_upserted_at=None,
                **fields,
            )
        )

    async def list_tickets(self, connector_id, *, brand_id=None, ticket_ids=None, updated_before=None):
        tickets = self._of(ZendeskTicket, connector_id)
        if brand_id is not None:
            tickets = [t for t in tickets if t.brand_id == brand_id]
        if ticket_ids is not None:
            tickets = [t for t in tickets if t.ticket_id in ticket_ids]
        if updated_before is not None:
            tickets = [t for t in tickets if t.ticket_updated_at < updated_before]
        return tickets

    async def create_ticket(self, connector_id, **fields):
        return await self.save(
            ZendeskTicket(
                connector_id=connector_id,
                permission=fields.pop("permission", Permission.INHERITED),
                last_upserted_at=None,
                **fields,
            )
        )


class InMemoryRemoteDatabaseRepository(_RowStore):
    def _by_id(self, model, connector_id, internal_id):
        return next(
            (r for r in self._of(model, connector_id) if r.internal_id == internal_id), None
        )

    async def list_databases(self, connector_id):
        return self._of(RemoteDatabase, connector_id)

    async def list_schemas(self, connector_id):
        return self._of(RemoteSchema, connector_id)

    async def list_tables(self, connector_id, internal_ids=None):
        tables = self._of(RemoteTable, connector_id)
        if internal_ids is not None:
            tables = [t for t in tables if t.internal_id in internal_ids]
        return tables

    async def get_database(self, connector_id, internal_id):
        return self._by_id(RemoteDatabase, connector_id, internal_id)

    async def get_schema(self, connector_id, internal_id):
        return self._by_id(RemoteSchema, connector_id, internal_id)

    async def get_table(self, connector_id, internal_id):
        return self._by_id(RemoteTable, connector_id, internal_id)

    async def create_database(self, connector_id, **fields):
        return await self.save(RemoteDatabase(connector_id=connector_id, **fields))

    async def create_schema(self, connector_id, **fields):
        return await self.save(RemoteSchema(connector_id=connector_id, **fields))

    async def create_table(self, connector_id, **fields):
        return await self.save(
            RemoteTable(connector_id=connector_id, last_upserted_at=None, **fields)
        )


class RecordingContentStore:
    def __init__(self, events: EventLog) -> None:
        self.events = events
        self.documents: dict[str, dict] = {}
        self.tables: dict[str, dict] = {}
        self.folders: dict[str, dict] = {}

    async def upsert_folder(self, data_source, *, folder_id, **fields):
        self.folders[folder_id] = fields
        self.events.append(("upsert_folder", folder_id))

    async def upsert_document(self, data_source, *, document_id, **fields):
        self.documents[document_id] = fields
        self.events.append(("upsert_document", document_id))

    async def upsert_table(self, data_source, *, table_id, **fields):
        self.tables[table_id] = fields
        self.events.append(("upsert_table", table_id))

    async def delete_document(self, data_source, document_id):
        self.documents.pop(document_id, None)
        self.events.append(("delete_document", document_id))

    async def delete_table(self, data_source, table_id):
        self.tables.pop(table_id, None)
        self.events.append(("delete_table", table_id))

    async def delete_folder(self, data_source, folder_id):
        self.folders.pop(folder_id, None)
        self.events.append(("delete_folder", folder_id))


class FakeScheduler:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self._ids = count(1)

    def _record(self, *call) -> str:
        self.calls.append(call)
        return f"workflow-{next(self._ids)}"

    async def launch_sync_workflow(self, connector, signal=None):
        return self._record("sync", connector.id, signal)

    async def launch_full_sync_workflow(self, connector, *, force_resync=False):
        return self._record("full_sync", connector.id, force_resync)

    async def launch_garbage_collection_workflow(self, connector):
        return self._record("garbage_collect", connector.id)

    async def stop_workflows(self, connector):
        self._record("stop", connector.id)
        return 0

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeCredentials:
    def __init__(self) -> None:
        self.zendesk = {"conn-1": ZendeskAccess(subdomain="acme", access_token="token-1")}
        self.snowflake = {
            "conn-sf": SnowflakeCredentials(
                account="acme-eu", username="reader", password="pw", role="READER", warehouse="WH"
            )
        }

    async def get_zendesk_access(self, connection_id):
        return self.zendesk[connection_id]

    async def get_snowflake_credentials(self, connection_id):
        return self.snowflake[connection_id]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def runtime_settings():
    """Inject default settings into the core runtime for every test."""
    settings = Settings()
    configure_settings(settings)
    yield settings
    _reset_for_tests()


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def connectors() -> FakeConnectorRepository:
    return FakeConnectorRepository()


@pytest.fixture
def zendesk_repository(events) -> InMemoryZendeskRepository:
    return InMemoryZendeskRepository(events)


@pytest.fixture
def snowflake_repository(events) -> InMemoryRemoteDatabaseRepository:
    return InMemoryRemoteDatabaseRepository(events)


@pytest.fixture
def content_store(events) -> RecordingContentStore:
    return RecordingContentStore(events)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture
def deps(connectors, scheduler, credentials) -> ConnectorDeps:
    return ConnectorDeps(connectors=connectors, scheduler=scheduler, credentials=credentials)


@pytest.fixture
def data_source() -> DataSourceConfig:
    return DataSourceConfig(workspace_id="ws-1", data_source_id="ds-1", workspace_api_key="key-1")


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
async def zendesk_connector(connectors) -> Connector:
    return await connectors.create(
        ConnectorProvider.ZENDESK,
        connection_id="conn-1",
        workspace_id="ws-1",
        workspace_api_key="key-1",
        data_source_id="ds-1",
    )


@pytest.fixture
async def snowflake_connector(connectors) -> Connector:
    return await connectors.create(
        ConnectorProvider.SNOWFLAKE,
        connection_id="conn-sf",
        workspace_id="ws-1",
        workspace_api_key="key-1",
        data_source_id="ds-1",
    )


class FakeZendeskClient:
    """
    Stand-in for ZendeskClient serving canned objects. Calling the instance
    acts as the client factory.
    """

    def __init__(self) -> None:
        self.user = {"id": 1, "active": True, "role": "admin"}
        self.brands: dict[int, dict] = {}
        self.categories: dict[int, dict] = {}
        self.sections: dict[int, dict] = {}
        self.articles: dict[int, list[dict]] = {}  # by category id
        self.ticket_pages: list[ZendeskPage] = []
        self.tickets_by_id: dict[int, dict] = {}
        self.comments: dict[int, list[dict]] = {}
        self.users: dict[int, dict] = {}
        self.error: Exception | None = None
        self.accesses: list[ZendeskAccess] = []
        self.calls: list[str] = []

    def __call__(self, access: ZendeskAccess) -> "FakeZendeskClient":
        self.accesses.append(access)
        return self

    def _called(self, name: str) -> None:
        self.calls.append(name)
        if self.error is not None:
            raise self.error

    async def close(self) -> None:
        return None

    async def fetch_current_user(self):
        self._called("fetch_current_user")
        return self.user

    async def fetch_brands(self):
        self._called("fetch_brands")
        return list(self.brands.values())

    async def fetch_brand(self, brand_id):
        self._called("fetch_brand")
        return self.brands.get(brand_id)

    async def fetch_categories(self, brand_subdomain, *, url=None, page_size=100):
        self._called("fetch_categories")
        return ZendeskPage(items=list(self.categories.values()))

    async def fetch_all_categories(self, brand_subdomain):
        self._called("fetch_all_categories")
        return list(self.categories.values())

    async def fetch_category(self, brand_subdomain, category_id):
        self._called("fetch_category")
        return self.categories.get(category_id)

    async def fetch_sections_in_category(self, brand_subdomain, category_id):
        self._called("fetch_sections_in_category")
        return [s for s in self.sections.values() if s["category_id"] == category_id]

    async def fetch_section(self, brand_subdomain, section_id):
        self._called("fetch_section")
        return self.sections.get(section_id)

    async def fetch_articles_in_category(self, brand_subdomain, category_id, *, url=None, page_size=100):
        self._called("fetch_articles_in_category")
        return ZendeskPage(items=self.articles.get(category_id, []))

    async def fetch_article(self, brand_subdomain, article_id):
        self._called("fetch_article")
        for articles in self.articles.values():
            for article in articles:
                if article["id"] == article_id:
                    return article
        return None

    async def fetch_recently_updated_articles(self, brand_subdomain, *, start_time, url=None):
        self._called("fetch_recently_updated_articles")
        return ZendeskPage(items=[a for articles in self.articles.values() for a in articles])

    async def fetch_tickets(self, brand_subdomain, *, start_time, url=None):
        self._called("fetch_tickets")
        return self.ticket_pages.pop(0) if self.ticket_pages else ZendeskPage()

    async def fetch_tickets_by_ids(self, brand_subdomain, ticket_ids):
        self._called("fetch_tickets_by_ids")
        return [self.tickets_by_id[i] for i in ticket_ids if i in self.tickets_by_id]

    async def fetch_ticket_comments(self, brand_subdomain, ticket_id):
        self._called("fetch_ticket_comments")
        return self.comments.get(ticket_id, [])

    async def fetch_users(self, brand_subdomain, user_ids):
        self._called("fetch_users")
        return [self.users[i] for i in user_ids if i in self.users]


class FakeSnowflakeClient:
    def __init__(self) -> None:
        self.offending_privileges: list[str] = []
        self.databases: list[str] = []
        self.schemas: dict[str, list[str]] = {}
        self.tables: list[SnowflakeTable] = []
        self.credentials: list[SnowflakeCredentials] = []
        self.closed = 0

    def __call__(self, credentials: SnowflakeCredentials) -> "FakeSnowflakeClient":
        self.credentials.append(credentials)
        return self

    async def close(self) -> None:
        self.closed += 1

    async def check_connection_readonly(self) -> None:
        if self.offending_privileges:
            raise RemoteDatabaseNotReadonlyError(
                "Role has write privileges", privileges=self.offending_privileges
            )

    async def fetch_databases(self):
        return list(self.databases)

    async def fetch_schemas(self, database_name):
        return list(self.schemas.get(database_name, []))

    async def fetch_tables(self, database_name=None, schema_name=None):
        return [
            table
            for table in self.tables
            if (database_name is None or table.database_name == database_name)
            and (schema_name is None or table.schema_name == schema_name)
        ]


@pytest.fixture
def zendesk_api() -> FakeZendeskClient:
    return FakeZendeskClient()


@pytest.fixture
def snowflake_api() -> FakeSnowflakeClient:
    return FakeSnowflakeClient()
