"""
Zendesk Connector Manager
=========================

Lifecycle operations of Zendesk connectors and the projection of their
permission tree for the permission picker.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import assert_never

from tributary.core.connectors.application.manager import BaseConnectorManager, ConnectorDeps
from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.content_node import ContentNode
from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
    ExternalOAuthTokenError,
    InvalidInternalIdError,
)
from tributary.core.connectors.domain.permissions import (
    Permission,
    is_read_granted,
    parse_settable_permission,
)
from tributary.core.connectors.domain.ports.content_store import DataSourceConfig
from tributary.core.connectors.domain.ports.credentials import ZendeskAccess
from tributary.core.connectors.domain.ports.scheduler import SyncSignal
from tributary.core.zendesk.application.activities import brand_explicit_permissions
from tributary.core.zendesk.application.content_nodes import (
    article_node,
    brand_node,
    category_node,
    help_center_node,
    ticket_node,
    tickets_node,
)
from tributary.core.zendesk.application.permissions import ZendeskPermissions
from tributary.core.zendesk.domain.internal_ids import (
    ZendeskNodeIds,
    ZendeskNodeType,
    get_brand_internal_id,
    get_help_center_internal_id,
    get_ids_from_internal_id,
)
from tributary.core.zendesk.domain.models import (
    DEFAULT_RETENTION_PERIOD_DAYS,
    ZendeskBrand,
    ZendeskCategory,
)
from tributary.core.zendesk.domain.ports.repository import ZendeskRepository
from tributary.core.zendesk.infrastructure.client import ZendeskClient, is_user_admin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def translate_oauth_errors():
    """Surface rejected Zendesk tokens as a typed manager error."""
    try:
        yield
    except ExternalOAuthTokenError as exc:
        raise ConnectorManagerError(
            ConnectorManagerErrorCode.EXTERNAL_OAUTH_TOKEN_ERROR,
            "Authorization error, please re-authorize Zendesk.",
        ) from exc


def _parse_internal_id(connector_id: int, internal_id: str) -> ZendeskNodeIds:
    try:
        return get_ids_from_internal_id(connector_id, internal_id)
    except InvalidInternalIdError as exc:
        raise ConnectorManagerError(
            ConnectorManagerErrorCode.INVALID_INTERNAL_ID, str(exc)
        ) from exc


def _transient_brand(connector_id: int, fetched: dict) -> ZendeskBrand:
    # Never added to a session: only used to render brands not selected yet
    return ZendeskBrand(
        connector_id=connector_id,
        brand_id=fetched["id"],
        name=fetched.get("name") or "Brand",
        url=fetched.get("url") or "",
        subdomain=fetched["subdomain"],
        has_help_center=bool(fetched.get("has_help_center")),
        help_center_permission=Permission.NONE,
        tickets_permission=Permission.NONE,
        last_upserted_at=None,
    )


class ZendeskConnectorManager(BaseConnectorManager):
    provider = ConnectorProvider.ZENDESK

    def __init__(
        self,
        connector_id: int | None,
        deps: ConnectorDeps,
        *,
        repository: ZendeskRepository,
        client_factory: Callable[[ZendeskAccess], ZendeskClient],
        retention_period_days: int = DEFAULT_RETENTION_PERIOD_DAYS,
    ):
        super().__init__(connector_id, deps)
        self._repository = repository
        self._client_factory = client_factory
        self._retention_period_days = retention_period_days

    async def _launch_workflows(self, connector: Connector) -> None:
        await self._scheduler.launch_sync_workflow(connector)
        await self._scheduler.launch_garbage_collection_workflow(connector)

    @asynccontextmanager
    async def _client(self, connection_id: str, access: ZendeskAccess | None = None):
        access = access or await self._credentials.get_zendesk_access(connection_id)
        client = self._client_factory(access)
        try:
            async with translate_oauth_errors():
                yield client
        finally:
            await client.close()

    async def _ensure_admin(self, client: ZendeskClient, connection_id: str) -> None:
        user = await client.fetch_current_user()
        if not is_user_admin(user):
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.CONNECTOR_OAUTH_USER_MISSING_RIGHTS,
                f"Zendesk user is not an admin: connection_id={connection_id}",
            )

    # Lifecycle

    async def create(self, *, data_source: DataSourceConfig, connection_id: str) -> int:
        access = await self._credentials.get_zendesk_access(connection_id)
        async with self._client(connection_id, access) as client:
            await self._ensure_admin(client, connection_id)

        connector = await self._connectors.create(
            ConnectorProvider.ZENDESK,
            connection_id=connection_id,
            workspace_id=data_source.workspace_id,
            workspace_api_key=data_source.workspace_api_key,
            data_source_id=data_source.data_source_id,
        )
        self.connector_id = connector.id

        try:
            await self._repository.create_configuration(
                connector.id,
                subdomain=access.subdomain,
                retention_period_days=self._retention_period_days,
            )
            await self._launch_workflows(connector)
        except Exception as exc:
            await self._rollback_creation(connector, exc)
            raise

        # Nothing is selected yet, so the connector is born synced
        await self._sync_status.sync_succeeded(connector.id)
        logger.info(f"[zendesk] Created connector {connector.id} for subdomain {access.subdomain}")
        return connector.id

    async def update(self, *, connection_id: str | None = None) -> int:
        connector = await self._load()
        configuration = await self._repository.get_configuration(connector.id)
        if configuration is None:
            raise RuntimeError(f"Zendesk configuration missing for connector {connector.id}")

        if connection_id:
            access = await self._credentials.get_zendesk_access(connection_id)
            if access.subdomain != configuration.subdomain:
                raise ConnectorManagerError(
                    ConnectorManagerErrorCode.CONNECTOR_OAUTH_TARGET_MISMATCH,
                    "Cannot change the subdomain of a Zendesk connector",
                )
            async with self._client(connection_id, access) as client:
                await self._ensure_admin(client, connection_id)

            connector.connection_id = connection_id
            await self._connectors.save(connector)

            if connector.is_paused():
                await self.unpause()
        return connector.id

    async def sync(self, *, from_ts: int | None = None) -> str:
        """
        With ``from_ts``, rewind the cursor and run an incremental sync from
        there; without, drop the cursor and force a full resync.
        """
        connector = await self._load()

        if from_ts is not None:
            cursor = await self._repository.get_cursor(connector.id)
            if cursor is None:
                raise ConnectorManagerError(
                    ConnectorManagerErrorCode.MISSING_CURSOR,
                    "Cannot use from_ts on a connector that never completed an initial sync",
                )
            cursor.timestamp_cursor = datetime.fromtimestamp(from_ts / 1000, tz=UTC)
            await self._repository.save(cursor)
            return await self._scheduler.launch_sync_workflow(connector)

        await self._repository.delete_cursor(connector.id)
        return await self._scheduler.launch_full_sync_workflow(connector, force_resync=True)

    async def garbage_collect(self) -> str:
        connector = await self._load()
        return await self._scheduler.launch_garbage_collection_workflow(connector)

    # Permissions

    async def set_permissions(self, permissions: dict[str, str]) -> None:
        """
        Apply container permissions, then signal the sync workflow with the
        nodes whose state actually changed. The whole call is rejected if a
        value is not settable or a node is a single article or ticket.
        """
        connector = await self._load()

        parsed: list[tuple[ZendeskNodeIds, Permission]] = []
        for internal_id, value in permissions.items():
            try:
                permission = parse_settable_permission(value)
            except ValueError as exc:
                raise ConnectorManagerError(
                    ConnectorManagerErrorCode.INVALID_PERMISSION,
                    f"Invalid permission {value} for connector {connector.id}",
                ) from exc
            ids = _parse_internal_id(connector.id, internal_id)
            if ids.type in (ZendeskNodeType.ARTICLE, ZendeskNodeType.TICKET):
                raise ConnectorManagerError(
                    ConnectorManagerErrorCode.INVALID_PERMISSION,
                    "Cannot set permissions for a single article or ticket",
                )
            parsed.append((ids, permission))

        signal = SyncSignal()
        async with self._client(connector.connection_id) as client:
            tree = ZendeskPermissions(self._repository, client, connector.id)
            for ids, permission in parsed:
                allow = permission == Permission.READ
                match ids.type:
                    case ZendeskNodeType.BRAND:
                        changed = await (tree.allow_brand if allow else tree.forbid_brand)(ids.brand_id)
                        if changed:
                            signal.brand_ids.append(ids.brand_id)
                    case ZendeskNodeType.HELP_CENTER:
                        changed = await (
                            tree.allow_help_center if allow else tree.forbid_help_center
                        )(ids.brand_id)
                        if changed:
                            signal.help_center_brand_ids.append(ids.brand_id)
                    case ZendeskNodeType.TICKETS:
                        changed = await (tree.allow_tickets if allow else tree.forbid_tickets)(
                            ids.brand_id
                        )
                        if changed:
                            signal.tickets_brand_ids.append(ids.brand_id)
                    case ZendeskNodeType.CATEGORY:
                        changed = await (tree.allow_category if allow else tree.forbid_category)(
                            ids.brand_id, ids.category_id
                        )
                        if changed:
                            signal.category_ids.append((ids.brand_id, ids.category_id))
                    case ZendeskNodeType.ARTICLE | ZendeskNodeType.TICKET:
                        raise AssertionError("Leaves were rejected above")
                    case _:
                        assert_never(ids.type)

        if signal.is_empty():
            logger.info(f"[zendesk] No permission change for connector {connector.id}")
            return
        await self._scheduler.launch_sync_workflow(connector, signal)

    async def retrieve_permissions(
        self,
        *,
        parent_internal_id: str | None = None,
        filter_permission: Permission | None = None,
    ) -> list[ContentNode]:
        if filter_permission == Permission.READ and parent_internal_id is None:
            return await self.retrieve_all_selected_nodes()

        connector = await self._load()
        async with self._client(connector.connection_id) as client:
            nodes = await self._children_nodes(connector, client, parent_internal_id)

        if filter_permission is not None:
            nodes = [node for node in nodes if node.permission == filter_permission]
        return sorted(nodes, key=lambda node: node.title.lower())

    async def retrieve_all_selected_nodes(self) -> list[ContentNode]:
        """Every explicitly selected node, regardless of the hierarchy."""
        connector = await self._load()
        brands = {brand.brand_id: brand for brand in await self._repository.list_brands(connector.id)}
        nodes = [
            help_center_node(brand, rich_title=True)
            for brand in brands.values()
            if brand.help_center_permission == Permission.READ
        ]
        nodes.extend(
            tickets_node(brand, rich_title=True)
            for brand in brands.values()
            if brand.tickets_permission == Permission.READ
        )
        nodes.extend(
            category_node(category)
            for category in await self._repository.list_categories(connector.id)
            if category.permission == Permission.READ
        )
        return sorted(nodes, key=lambda node: node.title.lower())

    async def _brand_or_fetch(
        self, connector: Connector, client: ZendeskClient, brand_id: int
    ) -> ZendeskBrand | None:
        brand = await self._repository.get_brand(connector.id, brand_id)
        if brand is not None:
            return brand
        fetched = await client.fetch_brand(brand_id)
        return _transient_brand(connector.id, fetched) if fetched else None

    async def _children_nodes(
        self, connector: Connector, client: ZendeskClient, parent_internal_id: str | None
    ) -> list[ContentNode]:
        if parent_internal_id is None:
            stored = {brand.brand_id: brand for brand in await self._repository.list_brands(connector.id)}
            return [
                brand_node(stored.get(fetched["id"]) or _transient_brand(connector.id, fetched))
                for fetched in await client.fetch_brands()
            ]

        ids = _parse_internal_id(connector.id, parent_internal_id)
        match ids.type:
            case ZendeskNodeType.BRAND:
                brand = await self._brand_or_fetch(connector, client, ids.brand_id)
                if brand is None:
                    return []
                nodes = [tickets_node(brand)]
                if brand.has_help_center:
                    nodes.append(help_center_node(brand))
                return nodes
            case ZendeskNodeType.HELP_CENTER:
                brand = await self._brand_or_fetch(connector, client, ids.brand_id)
                if brand is None:
                    return []
                stored = {
                    category.category_id: category
                    for category in await self._repository.list_categories(
                        connector.id, brand_id=ids.brand_id
                    )
                }
                explicit = brand_explicit_permissions(brand, list(stored.values()))
                nodes = []
                for fetched in await client.fetch_all_categories(brand.subdomain):
                    category = stored.get(fetched["id"]) or ZendeskCategory(
                        connector_id=connector.id,
                        brand_id=ids.brand_id,
                        category_id=fetched["id"],
                        name=fetched.get("name") or "Category",
                        url=fetched.get("html_url") or "",
                        description=fetched.get("description"),
                        permission=Permission.INHERITED,
                        last_upserted_at=None,
                    )
                    granted = is_read_granted(category.parent_internal_ids(), explicit)
                    nodes.append(
                        category_node(category, Permission.READ if granted else Permission.NONE)
                    )
                return nodes
            case ZendeskNodeType.TICKETS:
                tickets = await self._repository.list_tickets(connector.id, brand_id=ids.brand_id)
                return [ticket_node(ticket) for ticket in tickets]
            case ZendeskNodeType.CATEGORY:
                articles = await self._repository.list_articles(
                    connector.id, brand_id=ids.brand_id, category_id=ids.category_id
                )
                return [article_node(article) for article in articles]
            case ZendeskNodeType.ARTICLE | ZendeskNodeType.TICKET:
                return []
            case _:
                assert_never(ids.type)

    # Content nodes

    async def retrieve_batch_content_nodes(self, internal_ids: list[str]) -> list[ContentNode]:
        connector_id = self.connector_id
        if connector_id is None:
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.CONNECTOR_NOT_FOUND, "Connector not found"
            )

        by_type: dict[ZendeskNodeType, dict[int, list[int]]] = defaultdict(lambda: defaultdict(list))
        for internal_id in internal_ids:
            ids = _parse_internal_id(connector_id, internal_id)
            match ids.type:
                case ZendeskNodeType.BRAND | ZendeskNodeType.HELP_CENTER | ZendeskNodeType.TICKETS:
                    by_type[ids.type][ids.brand_id]
                case ZendeskNodeType.CATEGORY | ZendeskNodeType.ARTICLE | ZendeskNodeType.TICKET:
                    by_type[ids.type][ids.brand_id].append(ids.object_id)
                case _:
                    assert_never(ids.type)

        brand_ids = sorted(
            {
                brand_id
                for node_type in (
                    ZendeskNodeType.BRAND,
                    ZendeskNodeType.HELP_CENTER,
                    ZendeskNodeType.TICKETS,
                )
                for brand_id in by_type[node_type]
            }
        )
        brands = {
            brand.brand_id: brand
            for brand in await self._repository.list_brands(connector_id, brand_ids)
        }

        nodes: list[ContentNode] = []
        nodes.extend(brand_node(brands[b]) for b in by_type[ZendeskNodeType.BRAND] if b in brands)
        nodes.extend(
            help_center_node(brands[b], rich_title=True)
            for b in by_type[ZendeskNodeType.HELP_CENTER]
            if b in brands
        )
        nodes.extend(
            tickets_node(brands[b], rich_title=True)
            for b in by_type[ZendeskNodeType.TICKETS]
            if b in brands
        )
        for brand_id, category_ids in by_type[ZendeskNodeType.CATEGORY].items():
            categories = await self._repository.list_categories(
                connector_id, brand_id=brand_id, category_ids=category_ids
            )
            nodes.extend(category_node(category) for category in categories)
        for brand_id, article_ids in by_type[ZendeskNodeType.ARTICLE].items():
            articles = await self._repository.list_articles(
                connector_id, brand_id=brand_id, article_ids=article_ids
            )
            nodes.extend(article_node(article) for article in articles)
        for brand_id, ticket_ids in by_type[ZendeskNodeType.TICKET].items():
            tickets = await self._repository.list_tickets(
                connector_id, brand_id=brand_id, ticket_ids=ticket_ids
            )
            nodes.extend(ticket_node(ticket) for ticket in tickets)
        return nodes

    async def retrieve_content_node_parents(self, internal_id: str) -> list[str]:
        connector_id = self.connector_id
        if connector_id is None:
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.CONNECTOR_NOT_FOUND, "Connector not found"
            )
        ids = _parse_internal_id(connector_id, internal_id)

        match ids.type:
            case ZendeskNodeType.BRAND:
                return [internal_id]
            case ZendeskNodeType.HELP_CENTER | ZendeskNodeType.TICKETS:
                return [internal_id, get_brand_internal_id(connector_id, ids.brand_id)]
            case ZendeskNodeType.CATEGORY:
                # Categories always sit under their brand's help center
                return [
                    internal_id,
                    get_help_center_internal_id(connector_id, ids.brand_id),
                    get_brand_internal_id(connector_id, ids.brand_id),
                ]
            case ZendeskNodeType.ARTICLE:
                rows = await self._repository.list_articles(
                    connector_id, brand_id=ids.brand_id, article_ids=[ids.article_id]
                )
            case ZendeskNodeType.TICKET:
                rows = await self._repository.list_tickets(
                    connector_id, brand_id=ids.brand_id, ticket_ids=[ids.ticket_id]
                )
            case _:
                assert_never(ids.type)

        if not rows:
            raise ConnectorManagerError(
                ConnectorManagerErrorCode.CONTENT_NODE_NOT_FOUND, f"{internal_id} not found"
            )
        return rows[0].parent_internal_ids()
