"""
Zendesk Sync Activities
=======================

Short, idempotent units of work composed by the sync, full sync and garbage
collection workflows. Each activity reloads what it needs from the database
and from Zendesk, so the task runtime can replay any of them after a crash.

Pages are processed one at a time by the workflow, following ``next_link``;
the items of a page are synced concurrently with bounded fan-out.
"""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from tributary.core.connectors.application.reconciler import (
    Reconciler,
    ReconcileResult,
    RemoteLeaf,
)
from tributary.core.connectors.application.sync_status import SyncStatusService
from tributary.core.connectors.domain.connector import Connector
from tributary.core.connectors.domain.errors import ConnectorNotFoundError
from tributary.core.connectors.domain.permissions import (
    Permission,
    explicit_permissions,
    is_read_granted,
)
from tributary.core.connectors.domain.ports.connector_repository import ConnectorRepository
from tributary.core.connectors.domain.ports.content_store import (
    ContentStore,
    data_source_from_connector,
)
from tributary.core.connectors.domain.ports.credentials import CredentialsProvider, ZendeskAccess
from tributary.core.zendesk.application.leaves import (
    ArticleLeafAdapter,
    TicketLeafAdapter,
    article_leaf,
    brand_folder,
    category_folder,
    help_center_folder,
    ticket_leaf,
    tickets_folder,
)
from tributary.core.zendesk.domain.models import ZendeskBrand, ZendeskCategory
from tributary.core.zendesk.domain.ports.repository import ZendeskRepository
from tributary.core.zendesk.infrastructure.client import ZendeskClient
from tributary.shared.async_utils import concurrent_executor

logger = logging.getLogger(__name__)

ZendeskClientFactory = Callable[[ZendeskAccess], ZendeskClient]


@dataclass
class BrandSyncResult:
    help_center_allowed: bool
    tickets_allowed: bool


@dataclass
class BatchResult:
    has_more: bool
    next_link: str | None
    synced_ids: list[int] = field(default_factory=list)
    # Raw size of the upstream page, before brand or section filtering
    item_count: int = 0


def _from_ms(value_ms: int) -> datetime:
    return datetime.fromtimestamp(value_ms / 1000, tz=UTC)


def brand_explicit_permissions(
    brand: ZendeskBrand, categories: list[ZendeskCategory]
) -> dict[str, Permission]:
    """Explicit choices recorded under one brand, keyed by internal id."""
    return explicit_permissions(
        [
            (brand.help_center_internal_id, brand.help_center_permission),
            (brand.tickets_internal_id, brand.tickets_permission),
            *((category.internal_id, category.permission) for category in categories),
        ]
    )


class ZendeskActivities:
    def __init__(
        self,
        *,
        connectors: ConnectorRepository,
        repository: ZendeskRepository,
        content_store: ContentStore,
        credentials: CredentialsProvider,
        client_factory: ZendeskClientFactory,
        batch_size: int = 100,
        item_concurrency: int = 10,
        sub_fetch_concurrency: int = 3,
        heartbeat: Callable[[], None] | None = None,
    ):
        self._connectors = connectors
        self._repository = repository
        self._content_store = content_store
        self._credentials = credentials
        self._client_factory = client_factory
        self._batch_size = batch_size
        self._item_concurrency = item_concurrency
        self._sub_fetch_concurrency = sub_fetch_concurrency
        self._heartbeat = heartbeat
        self._sync_status = SyncStatusService(connectors)

    # Plumbing

    async def _get_connector(self, connector_id: int) -> Connector:
        connector = await self._connectors.get(connector_id)
        if connector is None:
            raise ConnectorNotFoundError(connector_id)
        return connector

    @asynccontextmanager
    async def _client(self, connector: Connector):
        access = await self._credentials.get_zendesk_access(connector.connection_id)
        client = self._client_factory(access)
        try:
            yield client
        finally:
            await client.close()

    async def _get_brand(self, connector_id: int, brand_id: int) -> ZendeskBrand:
        brand = await self._repository.get_brand(connector_id, brand_id)
        if brand is None:
            raise ValueError(f"Brand {brand_id} not found for connector {connector_id}")
        return brand

    def _reconciler(self, connector: Connector, adapter) -> Reconciler:
        return Reconciler(
            content_store=self._content_store,
            data_source=data_source_from_connector(connector),
            adapter=adapter,
            concurrency=self._item_concurrency,
            heartbeat=self._heartbeat,
        )

    def _article_adapter(self, connector, client, brand) -> ArticleLeafAdapter:
        return ArticleLeafAdapter(
            repository=self._repository,
            content_store=self._content_store,
            data_source=data_source_from_connector(connector),
            client=client,
            brand=brand,
        )

    def _ticket_adapter(self, connector, client, brand) -> TicketLeafAdapter:
        return TicketLeafAdapter(
            repository=self._repository,
            content_store=self._content_store,
            data_source=data_source_from_connector(connector),
            client=client,
            brand=brand,
            comment_concurrency=self._sub_fetch_concurrency,
            heartbeat=self._heartbeat,
        )

    # Sync status and cursor

    async def start_sync(self, connector_id: int) -> datetime | None:
        """Mark the sync as running and return the current cursor, if any."""
        await self._sync_status.sync_started(connector_id)
        cursor = await self._repository.get_cursor(connector_id)
        return cursor.timestamp_cursor if cursor else None

    async def save_success_sync(self, connector_id: int, current_sync_ms: int) -> None:
        """Mark the sync as succeeded, creating the cursor after the first full pass."""
        await self._get_connector(connector_id)
        if await self._repository.get_cursor(connector_id) is None:
            await self._repository.create_cursor(connector_id, _from_ms(current_sync_ms))
        await self._sync_status.sync_succeeded(connector_id)

    async def set_cursor(self, connector_id: int, cursor_ms: int) -> None:
        cursor = await self._repository.get_cursor(connector_id)
        if cursor is None:
            await self._repository.create_cursor(connector_id, _from_ms(cursor_ms))
            return
        cursor.timestamp_cursor = _from_ms(cursor_ms)
        await self._repository.save(cursor)

    # Brands

    async def sync_brand(
        self, connector_id: int, brand_id: int, current_sync_ms: int
    ) -> BrandSyncResult:
        """
        Refresh a brand row and its three folders. A brand gone from Zendesk
        loses both permissions; its content is retracted by the caller.
        """
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)

        async with self._client(connector) as client:
            fetched = await client.fetch_brand(brand_id)

        if fetched is None:
            logger.info(f"Brand {brand_id} vanished from Zendesk, revoking its permissions")
            brand.help_center_permission = Permission.NONE
            brand.tickets_permission = Permission.NONE
            await self._repository.save(brand)
            return BrandSyncResult(help_center_allowed=False, tickets_allowed=False)

        brand.name = fetched.get("name") or "Brand"
        brand.url = fetched.get("url") or brand.url
        brand.subdomain = fetched.get("subdomain") or brand.subdomain
        brand.has_help_center = bool(fetched.get("has_help_center"))
        if not brand.has_help_center:
            brand.help_center_permission = Permission.NONE

        data_source = data_source_from_connector(connector)
        root = brand_folder(brand)
        for folder, parents in (
            (root, [root.folder_id]),
            (help_center_folder(brand), [brand.help_center_internal_id, root.folder_id]),
            (tickets_folder(brand), [brand.tickets_internal_id, root.folder_id]),
        ):
            await self._content_store.upsert_folder(
                data_source,
                folder_id=folder.folder_id,
                title=folder.title,
                parents=parents,
                parent_id=parents[1] if len(parents) > 1 else None,
                mime_type=folder.mime_type,
                source_url=folder.source_url,
            )

        brand.last_upserted_at = _from_ms(current_sync_ms)
        await self._repository.save(brand)

        return BrandSyncResult(
            help_center_allowed=brand.help_center_permission == Permission.READ,
            tickets_allowed=brand.tickets_permission == Permission.READ,
        )

    async def get_help_center_read_allowed_brand_ids(self, connector_id: int) -> list[int]:
        """
        Brands whose help center needs incremental syncing: help center
        selected as a whole, or at least one category selected. Help centers
        that vanished upstream lose their permission first.
        """
        connector = await self._get_connector(connector_id)
        brands = await self._repository.list_brands(connector_id)
        allowed = [brand for brand in brands if brand.help_center_permission == Permission.READ]

        async with self._client(connector) as client:
            for brand in allowed:
                fetched = await client.fetch_brand(brand.brand_id)
                if fetched is None:
                    brand.help_center_permission = Permission.NONE
                    brand.tickets_permission = Permission.NONE
                    await self._repository.save(brand)
                elif not fetched.get("has_help_center"):
                    brand.has_help_center = False
                    brand.help_center_permission = Permission.NONE
                    await self._repository.save(brand)

        brand_ids = [
            brand.brand_id for brand in allowed if brand.help_center_permission == Permission.READ
        ]
        categories = await self._repository.list_categories(connector_id)
        brand_ids.extend(
            category.brand_id for category in categories if category.permission == Permission.READ
        )
        return sorted(set(brand_ids))

    async def get_tickets_allowed_brand_ids(self, connector_id: int) -> list[int]:
        brands = await self._repository.list_brands(connector_id)
        return [brand.brand_id for brand in brands if brand.tickets_permission == Permission.READ]

    async def get_brand_ids(self, connector_id: int) -> list[int]:
        return [brand.brand_id for brand in await self._repository.list_brands(connector_id)]

    async def get_read_category_ids(self, connector_id: int, brand_id: int) -> list[int]:
        categories = await self._repository.list_categories(connector_id, brand_id=brand_id)
        return [
            category.category_id
            for category in categories
            if category.permission == Permission.READ
        ]

    # Categories

    async def sync_category_batch(
        self, connector_id: int, brand_id: int, current_sync_ms: int, url: str | None = None
    ) -> BatchResult:
        """
        Record one page of a brand's categories. Categories seen for the first
        time under a selected help center are created as inherited.
        """
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)

        async with self._client(connector) as client:
            page = await client.fetch_categories(
                brand.subdomain, url=url, page_size=self._batch_size
            )

        async def _record(category: dict[str, Any]) -> int:
            row = await self._repository.get_category(connector_id, brand_id, category["id"])
            if row is None:
                await self._repository.create_category(
                    connector_id,
                    brand_id=brand_id,
                    category_id=category["id"],
                    name=category.get("name") or "Category",
                    url=category.get("html_url") or "",
                    description=category.get("description"),
                    permission=Permission.INHERITED,
                )
            return category["id"]

        category_ids = await concurrent_executor(
            page.items, _record, concurrency=self._item_concurrency, on_item_complete=self._heartbeat
        )
        return BatchResult(
            has_more=page.has_more,
            next_link=page.next_link,
            synced_ids=category_ids,
            item_count=len(page.items),
        )

    async def sync_category(
        self, connector_id: int, brand_id: int, category_id: int, current_sync_ms: int
    ) -> bool:
        """
        Refresh one category and its folder.

        Returns whether its articles should be synced. A category gone from
        Zendesk, or no longer granted, is retracted instead.
        """
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        category = await self._repository.get_category(connector_id, brand_id, category_id)
        if category is None:
            raise ValueError(f"Category {category_id} not found for connector {connector_id}")

        explicit = brand_explicit_permissions(brand, [category])
        if not is_read_granted(category.parent_internal_ids(), explicit):
            await self.retract_category(connector, brand, category)
            return False

        async with self._client(connector) as client:
            fetched = await client.fetch_category(brand.subdomain, category_id)
        if fetched is None:
            logger.info(f"Category {category_id} vanished from Zendesk, retracting it")
            await self.retract_category(connector, brand, category, vanished=True)
            return False

        category.name = fetched.get("name") or "Category"
        category.url = fetched.get("html_url") or category.url
        category.description = fetched.get("description")

        data_source = data_source_from_connector(connector)
        parents = category.parent_internal_ids()
        folder = category_folder(category)
        await self._content_store.upsert_folder(
            data_source,
            folder_id=folder.folder_id,
            title=folder.title,
            parents=parents,
            parent_id=parents[1],
            mime_type=folder.mime_type,
            source_url=folder.source_url,
        )
        category.last_upserted_at = _from_ms(current_sync_ms)
        await self._repository.save(category)
        return True

    async def retract_category(
        self,
        connector: Connector,
        brand: ZendeskBrand,
        category: ZendeskCategory,
        *,
        vanished: bool = False,
    ) -> ReconcileResult:
        """
        Delete a category's articles and folder downstream, then forget the
        rows. An explicit choice on a category that still exists is kept.
        """
        articles = await self._repository.list_articles(
            connector.id, brand_id=brand.brand_id, category_id=category.category_id
        )
        reconciler = self._reconciler(connector, self._article_adapter(connector, None, brand))
        result = ReconcileResult()
        for article in articles:
            await reconciler.remove(article, result)
            if self._heartbeat is not None:
                self._heartbeat()

        data_source = data_source_from_connector(connector)
        if category.last_upserted_at is not None:
            await self._content_store.delete_folder(data_source, category.internal_id)

        if vanished or category.permission == Permission.INHERITED:
            await self._repository.delete(category)
        elif category.last_upserted_at is not None:
            category.last_upserted_at = None
            await self._repository.save(category)
        return result

    # Articles

    async def sync_article_batch(
        self,
        connector_id: int,
        brand_id: int,
        category_id: int,
        current_sync_ms: int,
        force_resync: bool = False,
        url: str | None = None,
    ) -> BatchResult:
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        category = await self._repository.get_category(connector_id, brand_id, category_id)
        if category is None:
            raise ValueError(f"Category {category_id} not found for connector {connector_id}")

        async with self._client(connector) as client:
            page = await client.fetch_articles_in_category(
                brand.subdomain, category_id, url=url, page_size=self._batch_size
            )
            logger.info(f"Processing {len(page.items)} articles of category {category_id}")

            sections = {}
            if page.items:
                sections = {
                    section["id"]: section
                    for section in await client.fetch_sections_in_category(
                        brand.subdomain, category_id
                    )
                }
            leaves = [
                article_leaf(brand, category, article, sections.get(article.get("section_id")))
                for article in page.items
            ]
            await self._reconcile_articles(
                connector, client, brand, leaves, force_resync=force_resync
            )

        return BatchResult(
            has_more=page.has_more,
            next_link=page.next_link,
            synced_ids=[article["id"] for article in page.items],
            item_count=len(page.items),
        )

    async def _reconcile_articles(
        self,
        connector: Connector,
        client: ZendeskClient,
        brand: ZendeskBrand,
        leaves: list[RemoteLeaf],
        *,
        force_resync: bool,
    ) -> ReconcileResult:
        if not leaves:
            return ReconcileResult()
        article_ids = [leaf.payload["article"]["id"] for leaf in leaves]
        rows = await self._repository.list_articles(
            connector.id, brand_id=brand.brand_id, article_ids=article_ids
        )
        categories = await self._repository.list_categories(connector.id, brand_id=brand.brand_id)
        reconciler = self._reconciler(connector, self._article_adapter(connector, client, brand))
        return await reconciler.reconcile(
            leaves,
            rows,
            brand_explicit_permissions(brand, categories),
            complete_catalog=False,
            force_resync=force_resync,
        )

    async def sync_articles_since(
        self,
        connector_id: int,
        brand_id: int,
        start_ms: int,
        current_sync_ms: int,
        url: str | None = None,
    ) -> BatchResult:
        """
        Sync one page of the articles updated since ``start_ms``. Articles of
        categories never seen are picked up when the whole help center is
        selected.
        """
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)

        async with self._client(connector) as client:
            page = await client.fetch_recently_updated_articles(
                brand.subdomain, start_time=start_ms // 1000, url=url
            )

            sections: dict[int, dict[str, Any] | None] = {}
            categories: dict[int, ZendeskCategory | None] = {}
            leaves: list[RemoteLeaf] = []
            for article in page.items:
                section_id = article.get("section_id")
                if section_id is None:
                    continue
                if section_id not in sections:
                    sections[section_id] = await client.fetch_section(brand.subdomain, section_id)
                section = sections[section_id]
                if section is None:
                    continue

                category_id = section["category_id"]
                if category_id not in categories:
                    categories[category_id] = await self._category_for_incremental(
                        client, brand, category_id
                    )
                category = categories[category_id]
                if category is None:
                    continue
                leaves.append(article_leaf(brand, category, article, section))

            await self._reconcile_articles(connector, client, brand, leaves, force_resync=False)

        return BatchResult(
            has_more=page.has_more,
            next_link=page.next_link,
            synced_ids=[leaf.payload["article"]["id"] for leaf in leaves],
            item_count=len(page.items),
        )

    async def _category_for_incremental(
        self, client: ZendeskClient, brand: ZendeskBrand, category_id: int
    ) -> ZendeskCategory | None:
        category = await self._repository.get_category(brand.connector_id, brand.brand_id, category_id)
        if category is not None or brand.help_center_permission != Permission.READ:
            return category
        fetched = await client.fetch_category(brand.subdomain, category_id)
        if fetched is None:
            return None
        return await self._repository.create_category(
            brand.connector_id,
            brand_id=brand.brand_id,
            category_id=category_id,
            name=fetched.get("name") or "Category",
            url=fetched.get("html_url") or "",
            description=fetched.get("description"),
            permission=Permission.INHERITED,
        )

    # Tickets

    async def sync_ticket_batch(
        self,
        connector_id: int,
        brand_id: int,
        current_sync_ms: int,
        force_resync: bool = False,
        url: str | None = None,
    ) -> BatchResult:
        """Sync one page of the brand's tickets updated within the retention period."""
        configuration = await self._repository.get_configuration(connector_id)
        if configuration is None:
            raise ValueError(f"Zendesk configuration not found for connector {connector_id}")
        start_time = current_sync_ms // 1000 - configuration.retention_period_days * 24 * 60 * 60
        return await self._sync_ticket_page(
            connector_id, brand_id, start_time, force_resync=force_resync, url=url
        )

    async def sync_tickets_since(
        self,
        connector_id: int,
        brand_id: int,
        start_ms: int,
        current_sync_ms: int,
        url: str | None = None,
    ) -> BatchResult:
        return await self._sync_ticket_page(
            connector_id, brand_id, start_ms // 1000, force_resync=False, url=url
        )

    async def _sync_ticket_page(
        self,
        connector_id: int,
        brand_id: int,
        start_time: int,
        *,
        force_resync: bool,
        url: str | None,
    ) -> BatchResult:
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)

        async with self._client(connector) as client:
            page = await client.fetch_tickets(brand.subdomain, start_time=start_time, url=url)
            tickets = [
                ticket
                for ticket in page.items
                if ticket.get("brand_id") in (None, brand_id)
            ]
            if not page.items:
                logger.info(f"No tickets to process for brand {brand_id}, stopping")
                return BatchResult(has_more=False, next_link=None)

            leaves = [ticket_leaf(brand, ticket) for ticket in tickets]
            rows = await self._repository.list_tickets(
                connector_id, brand_id=brand_id, ticket_ids=[ticket["id"] for ticket in tickets]
            )
            reconciler = self._reconciler(connector, self._ticket_adapter(connector, client, brand))
            result = await reconciler.reconcile(
                leaves,
                rows,
                brand_explicit_permissions(brand, []),
                complete_catalog=False,
                force_resync=force_resync,
            )

        logger.info(
            f"Processed {len(tickets)} tickets of brand {brand_id}: {len(result.upserted)} upserted"
        )
        return BatchResult(
            has_more=page.has_more,
            next_link=page.next_link,
            synced_ids=[ticket["id"] for ticket in tickets],
            item_count=len(page.items),
        )

    # Retraction and garbage collection

    async def remove_unselected_tickets(self, connector_id: int, brand_id: int) -> int:
        """Retract every ticket of a brand whose tickets are no longer selected."""
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        if brand.tickets_permission == Permission.READ:
            return 0
        rows = await self._repository.list_tickets(connector_id, brand_id=brand_id)
        reconciler = self._reconciler(connector, self._ticket_adapter(connector, None, brand))
        result = await reconciler.garbage_collect_all(rows)
        return len(result.deleted)

    async def remove_unselected_categories(self, connector_id: int, brand_id: int) -> int:
        """Retract the categories of a brand that are no longer granted."""
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        categories = await self._repository.list_categories(connector_id, brand_id=brand_id)
        explicit = brand_explicit_permissions(brand, categories)

        removed = 0
        for category in categories:
            if is_read_granted(category.parent_internal_ids(), explicit):
                continue
            await self.retract_category(connector, brand, category)
            removed += 1
        return removed

    async def garbage_collect_brand(self, connector_id: int, brand_id: int) -> bool:
        """
        Drop a brand with nothing selected anymore: retract its content and
        folders, then destroy its row. Returns whether the brand was removed.
        """
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)

        async with self._client(connector) as client:
            fetched = await client.fetch_brand(brand_id)
        if fetched is None:
            brand.help_center_permission = Permission.NONE
            brand.tickets_permission = Permission.NONE
            await self._repository.save(brand)

        categories = await self._repository.list_categories(connector_id, brand_id=brand_id)
        if (
            brand.help_center_permission == Permission.READ
            or brand.tickets_permission == Permission.READ
            or any(category.permission == Permission.READ for category in categories)
        ):
            return False

        await self.remove_unselected_tickets(connector_id, brand_id)
        for category in categories:
            await self.retract_category(connector, brand, category, vanished=fetched is None)

        if brand.last_upserted_at is not None:
            data_source = data_source_from_connector(connector)
            for folder_id in (
                brand.tickets_internal_id,
                brand.help_center_internal_id,
                brand.internal_id,
            ):
                await self._content_store.delete_folder(data_source, folder_id)

        if not await self._repository.list_categories(connector_id, brand_id=brand_id):
            await self._repository.delete(brand)
            return True
        brand.last_upserted_at = None
        await self._repository.save(brand)
        return False

    async def garbage_collect_outdated_tickets(
        self, connector_id: int, brand_id: int, current_sync_ms: int
    ) -> int:
        """Retract tickets last updated before the retention period."""
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        configuration = await self._repository.get_configuration(connector_id)
        if configuration is None:
            raise ValueError(f"Zendesk configuration not found for connector {connector_id}")

        cutoff = _from_ms(current_sync_ms) - timedelta(days=configuration.retention_period_days)
        rows = await self._repository.list_tickets(
            connector_id, brand_id=brand_id, updated_before=cutoff
        )
        reconciler = self._reconciler(connector, self._ticket_adapter(connector, None, brand))
        result = await reconciler.garbage_collect_all(rows)
        return len(result.deleted) + len(result.destroyed)

    async def garbage_collect_vanished_tickets(self, connector_id: int, brand_id: int) -> int:
        """Retract tickets deleted on Zendesk."""
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        rows = await self._repository.list_tickets(connector_id, brand_id=brand_id)
        if not rows:
            return 0

        async with self._client(connector) as client:
            fetched = await client.fetch_tickets_by_ids(
                brand.subdomain, [row.ticket_id for row in rows]
            )
        alive = {ticket["id"] for ticket in fetched if ticket.get("status") != "deleted"}
        vanished = [row for row in rows if row.ticket_id not in alive]

        reconciler = self._reconciler(connector, self._ticket_adapter(connector, None, brand))
        await reconciler.garbage_collect_all(vanished)
        return len(vanished)

    async def garbage_collect_vanished_articles(self, connector_id: int, brand_id: int) -> int:
        """Retract articles deleted on Zendesk."""
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        rows = await self._repository.list_articles(connector_id, brand_id=brand_id)
        if not rows:
            return 0

        async with self._client(connector) as client:

            async def _is_vanished(row) -> bool:
                return await client.fetch_article(brand.subdomain, row.article_id) is None

            flags = await concurrent_executor(
                rows, _is_vanished, concurrency=self._item_concurrency, on_item_complete=self._heartbeat
            )
        vanished = [row for row, is_vanished in zip(rows, flags) if is_vanished]

        reconciler = self._reconciler(connector, self._article_adapter(connector, None, brand))
        await reconciler.garbage_collect_all(vanished)
        return len(vanished)

    async def garbage_collect_vanished_categories(self, connector_id: int, brand_id: int) -> int:
        """Retract categories deleted on Zendesk, with their articles."""
        connector = await self._get_connector(connector_id)
        brand = await self._get_brand(connector_id, brand_id)
        categories = await self._repository.list_categories(connector_id, brand_id=brand_id)
        if not categories:
            return 0

        async with self._client(connector) as client:
            remote_ids = {category["id"] for category in await client.fetch_all_categories(brand.subdomain)}

        removed = 0
        for category in categories:
            if category.category_id in remote_ids:
                continue
            await self.retract_category(connector, brand, category, vanished=True)
            removed += 1
        return removed
