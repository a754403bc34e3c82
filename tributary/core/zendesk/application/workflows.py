"""
Zendesk Workflows
=================

Compositions of Zendesk activities. Pages of a listing are processed
sequentially by following their continuation link; nothing here keeps state
between activities beyond the link itself, so a replayed workflow converges.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from tributary.core.connectors.domain.ports.scheduler import SyncSignal
from tributary.core.zendesk.application.activities import BatchResult, ZendeskActivities

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_EMPTY_PAGES = 2


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


async def follow_pages(fetch_page: Callable[[str | None], Awaitable[BatchResult]]) -> int:
    """
    Run ``fetch_page`` along the continuation chain. Returns the number of pages.

    A listing that keeps announcing more results while serving empty pages is
    treated as exhausted after ``MAX_CONSECUTIVE_EMPTY_PAGES`` of them.
    """
    url: str | None = None
    pages = 0
    empty_pages = 0
    while True:
        result = await fetch_page(url)
        pages += 1
        empty_pages = empty_pages + 1 if result.item_count == 0 else 0
        if not result.has_more or not result.next_link:
            return pages
        if empty_pages >= MAX_CONSECUTIVE_EMPTY_PAGES:
            logger.warning(f"Stopping after {empty_pages} empty pages announcing more results")
            return pages
        url = result.next_link


class ZendeskWorkflows:
    def __init__(self, activities: ZendeskActivities):
        self.activities = activities

    async def sync(
        self, connector_id: int, signal: SyncSignal | None = None, *, force_resync: bool = False
    ) -> None:
        """
        One run of the sync workflow: a full pass over the signaled nodes if
        any, otherwise an incremental pass from the cursor.
        """
        current_sync_ms = _now_ms()
        cursor = await self.activities.start_sync(connector_id)

        if signal is not None and not signal.is_empty():
            await self._sync_signaled_nodes(connector_id, signal, current_sync_ms, force_resync)
        elif cursor is not None:
            await self._incremental_sync(connector_id, cursor, current_sync_ms)
            await self.activities.set_cursor(connector_id, current_sync_ms)

        await self.activities.save_success_sync(connector_id, current_sync_ms)

    async def full_sync(self, connector_id: int, *, force_resync: bool = False) -> None:
        """Full pass over every brand and selected category of the connector."""
        current_sync_ms = _now_ms()
        await self.activities.start_sync(connector_id)

        brand_ids = await self.activities.get_brand_ids(connector_id)
        for brand_id in brand_ids:
            await self._sync_brand(connector_id, brand_id, current_sync_ms, force_resync)

        await self.activities.save_success_sync(connector_id, current_sync_ms)

    async def garbage_collect(self, connector_id: int) -> None:
        current_sync_ms = _now_ms()
        for brand_id in await self.activities.get_brand_ids(connector_id):
            await self.activities.garbage_collect_outdated_tickets(
                connector_id, brand_id, current_sync_ms
            )
            await self.activities.garbage_collect_vanished_tickets(connector_id, brand_id)
            await self.activities.garbage_collect_vanished_articles(connector_id, brand_id)
            await self.activities.garbage_collect_vanished_categories(connector_id, brand_id)
            await self.activities.remove_unselected_categories(connector_id, brand_id)
            await self.activities.remove_unselected_tickets(connector_id, brand_id)
            await self.activities.garbage_collect_brand(connector_id, brand_id)

    async def _sync_signaled_nodes(
        self, connector_id: int, signal: SyncSignal, current_sync_ms: int, force_resync: bool
    ) -> None:
        for brand_id in dict.fromkeys(signal.brand_ids):
            await self._sync_brand(connector_id, brand_id, current_sync_ms, force_resync)
        for brand_id in dict.fromkeys(signal.help_center_brand_ids):
            await self._sync_brand(
                connector_id, brand_id, current_sync_ms, force_resync, tickets=False
            )
        for brand_id in dict.fromkeys(signal.tickets_brand_ids):
            await self._sync_brand(
                connector_id, brand_id, current_sync_ms, force_resync, help_center=False
            )

        synced_brands: set[int] = set()
        for brand_id, category_id in signal.category_ids:
            if brand_id not in synced_brands:
                await self.activities.sync_brand(connector_id, brand_id, current_sync_ms)
                synced_brands.add(brand_id)
            await self._sync_category(
                connector_id, brand_id, category_id, current_sync_ms, force_resync
            )

    async def _sync_brand(
        self,
        connector_id: int,
        brand_id: int,
        current_sync_ms: int,
        force_resync: bool,
        *,
        help_center: bool = True,
        tickets: bool = True,
    ) -> None:
        allowed = await self.activities.sync_brand(connector_id, brand_id, current_sync_ms)

        if help_center:
            if allowed.help_center_allowed:
                category_ids: list[int] = []

                async def _category_page(url: str | None) -> BatchResult:
                    result = await self.activities.sync_category_batch(
                        connector_id, brand_id, current_sync_ms, url
                    )
                    category_ids.extend(result.synced_ids)
                    return result

                await follow_pages(_category_page)
                for category_id in category_ids:
                    await self._sync_category(
                        connector_id, brand_id, category_id, current_sync_ms, force_resync
                    )
            else:
                # Categories selected one by one under an unselected help center
                for category_id in await self.activities.get_read_category_ids(
                    connector_id, brand_id
                ):
                    await self._sync_category(
                        connector_id, brand_id, category_id, current_sync_ms, force_resync
                    )
            await self.activities.remove_unselected_categories(connector_id, brand_id)

        if tickets:
            if allowed.tickets_allowed:
                await follow_pages(
                    lambda url: self.activities.sync_ticket_batch(
                        connector_id, brand_id, current_sync_ms, force_resync, url
                    )
                )
            else:
                await self.activities.remove_unselected_tickets(connector_id, brand_id)

    async def _sync_category(
        self,
        connector_id: int,
        brand_id: int,
        category_id: int,
        current_sync_ms: int,
        force_resync: bool,
    ) -> None:
        should_sync_articles = await self.activities.sync_category(
            connector_id, brand_id, category_id, current_sync_ms
        )
        if not should_sync_articles:
            return
        await follow_pages(
            lambda url: self.activities.sync_article_batch(
                connector_id, brand_id, category_id, current_sync_ms, force_resync, url
            )
        )

    async def _incremental_sync(
        self, connector_id: int, cursor: datetime, current_sync_ms: int
    ) -> None:
        start_ms = int(cursor.timestamp() * 1000)

        for brand_id in await self.activities.get_help_center_read_allowed_brand_ids(connector_id):
            await follow_pages(
                lambda url, brand_id=brand_id: self.activities.sync_articles_since(
                    connector_id, brand_id, start_ms, current_sync_ms, url
                )
            )

        for brand_id in await self.activities.get_tickets_allowed_brand_ids(connector_id):
            await follow_pages(
                lambda url, brand_id=brand_id: self.activities.sync_tickets_since(
                    connector_id, brand_id, start_ms, current_sync_ms, url
                )
            )
        logger.info(f"Incremental sync of connector {connector_id} done")
