from datetime import datetime
from typing import Protocol, TypeVar

from tributary.core.connectors.domain.permissions import Permission
from tributary.core.zendesk.domain.models import (
    ZendeskArticle,
    ZendeskBrand,
    ZendeskCategory,
    ZendeskConfiguration,
    ZendeskTicket,
    ZendeskTimestampCursor,
)

RowT = TypeVar("RowT")


class ZendeskRepository(Protocol):
    """
    Port for the Zendesk permission tree and sync bookkeeping.

    Every query is scoped by connector id. Mutations are persisted
    immediately, one row at a time.
    """

    # Configuration

    async def get_configuration(self, connector_id: int) -> ZendeskConfiguration | None: ...

    async def create_configuration(
        self, connector_id: int, *, subdomain: str, retention_period_days: int
    ) -> ZendeskConfiguration: ...

    # Timestamp cursor

    async def get_cursor(self, connector_id: int) -> ZendeskTimestampCursor | None: ...

    async def create_cursor(self, connector_id: int, timestamp: datetime) -> ZendeskTimestampCursor: ...

    async def delete_cursor(self, connector_id: int) -> bool:
        """Delete the cursor. Returns whether one existed."""
        ...

    # Brands

    async def get_brand(self, connector_id: int, brand_id: int) -> ZendeskBrand | None: ...

    async def list_brands(
        self, connector_id: int, brand_ids: list[int] | None = None
    ) -> list[ZendeskBrand]: ...

    async def create_brand(
        self,
        connector_id: int,
        *,
        brand_id: int,
        name: str,
        url: str,
        subdomain: str,
        has_help_center: bool,
        help_center_permission: Permission,
        tickets_permission: Permission,
    ) -> ZendeskBrand: ...

    # Categories

    async def get_category(
        self, connector_id: int, brand_id: int, category_id: int
    ) -> ZendeskCategory | None: ...

    async def list_categories(
        self,
        connector_id: int,
        *,
        brand_id: int | None = None,
        category_ids: list[int] | None = None,
    ) -> list[ZendeskCategory]: ...

    async def create_category(
        self,
        connector_id: int,
        *,
        brand_id: int,
        category_id: int,
        name: str,
        url: str,
        description: str | None,
        permission: Permission,
    ) -> ZendeskCategory: ...

    # Articles

    async def list_articles(
        self,
        connector_id: int,
        *,
        brand_id: int | None = None,
        category_id: int | None = None,
        article_ids: list[int] | None = None,
    ) -> list[ZendeskArticle]: ...

    async def create_article(
        self,
        connector_id: int,
        *,
        brand_id: int,
        category_id: int,
        section_id: int | None,
        article_id: int,
        name: str,
        url: str,
    ) -> ZendeskArticle: ...

    # Tickets

    async def list_tickets(
        self,
        connector_id: int,
        *,
        brand_id: int | None = None,
        ticket_ids: list[int] | None = None,
        updated_before: datetime | None = None,
    ) -> list[ZendeskTicket]: ...

    async def create_ticket(
        self,
        connector_id: int,
        *,
        brand_id: int,
        ticket_id: int,
        subject: str,
        url: str,
        ticket_updated_at: datetime,
    ) -> ZendeskTicket: ...

    # Any row

    async def save(self, row: RowT) -> RowT: ...

    async def delete(self, row: object) -> None: ...
