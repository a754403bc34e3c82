from datetime import datetime

from sqlalchemy import delete, select

from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.infrastructure.repositories.base import SqlAlchemyRepository
from tributary.core.zendesk.domain.models import (
    ZendeskArticle,
    ZendeskBrand,
    ZendeskCategory,
    ZendeskConfiguration,
    ZendeskTicket,
    ZendeskTimestampCursor,
)
from tributary.core.zendesk.domain.ports.repository import ZendeskRepository


class PostgresZendeskRepository(SqlAlchemyRepository, ZendeskRepository):
    """
    PostgreSQL implementation of ZendeskRepository using SQLAlchemy.
    """

    # Configuration

    async def get_configuration(self, connector_id: int) -> ZendeskConfiguration | None:
        return await self._first(
            select(ZendeskConfiguration).where(ZendeskConfiguration.connector_id == connector_id)
        )

    async def create_configuration(
        self, connector_id: int, *, subdomain: str, retention_period_days: int
    ) -> ZendeskConfiguration:
        return await self._add(
            ZendeskConfiguration(
                connector_id=connector_id,
                subdomain=subdomain,
                retention_period_days=retention_period_days,
            )
        )

    # Timestamp cursor

    async def get_cursor(self, connector_id: int) -> ZendeskTimestampCursor | None:
        return await self._first(
            select(ZendeskTimestampCursor).where(ZendeskTimestampCursor.connector_id == connector_id)
        )

    async def create_cursor(self, connector_id: int, timestamp: datetime) -> ZendeskTimestampCursor:
        return await self._add(
            ZendeskTimestampCursor(connector_id=connector_id, timestamp_cursor=timestamp)
        )

    async def delete_cursor(self, connector_id: int) -> bool:
        async with self._serialized() as session:
            result = await session.execute(
                delete(ZendeskTimestampCursor).where(
                    ZendeskTimestampCursor.connector_id == connector_id
                )
            )
            await session.commit()
            return result.rowcount > 0

    # Brands

    async def get_brand(self, connector_id: int, brand_id: int) -> ZendeskBrand | None:
        return await self._first(
            select(ZendeskBrand).where(
                ZendeskBrand.connector_id == connector_id, ZendeskBrand.brand_id == brand_id
            )
        )

    async def list_brands(
        self, connector_id: int, brand_ids: list[int] | None = None
    ) -> list[ZendeskBrand]:
        stmt = select(ZendeskBrand).where(ZendeskBrand.connector_id == connector_id)
        if brand_ids is not None:
            stmt = stmt.where(ZendeskBrand.brand_id.in_(brand_ids))
        return await self._scalars(stmt.order_by(ZendeskBrand.brand_id))

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
    ) -> ZendeskBrand:
        return await self._add(
            ZendeskBrand(
                connector_id=connector_id,
                brand_id=brand_id,
                name=name,
                url=url,
                subdomain=subdomain,
                has_help_center=has_help_center,
                help_center_permission=help_center_permission,
                tickets_permission=tickets_permission,
                last_upserted_at=None,
            )
        )

    # Categories

    async def get_category(
        self, connector_id: int, brand_id: int, category_id: int
    ) -> ZendeskCategory | None:
        return await self._first(
            select(ZendeskCategory).where(
                ZendeskCategory.connector_id == connector_id,
                ZendeskCategory.brand_id == brand_id,
                ZendeskCategory.category_id == category_id,
            )
        )

    async def list_categories(
        self,
        connector_id: int,
        *,
        brand_id: int | None = None,
        category_ids: list[int] | None = None,
    ) -> list[ZendeskCategory]:
        stmt = select(ZendeskCategory).where(ZendeskCategory.connector_id == connector_id)
        if brand_id is not None:
            stmt = stmt.where(ZendeskCategory.brand_id == brand_id)
        if category_ids is not None:
            stmt = stmt.where(ZendeskCategory.category_id.in_(category_ids))
        return await self._scalars(stmt.order_by(ZendeskCategory.category_id))

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
    ) -> ZendeskCategory:
        return await self._add(
            ZendeskCategory(
                connector_id=connector_id,
                brand_id=brand_id,
                category_id=category_id,
                name=name,
                url=url,
                description=description,
                permission=permission,
                last_upserted_at=None,
            )
        )

    # Articles

    async def list_articles(
        self,
        connector_id: int,
        *,
        brand_id: int | None = None,
        category_id: int | None = None,
        article_ids: list[int] | None = None,
    ) -> list[ZendeskArticle]:
        stmt = select(ZendeskArticle).where(ZendeskArticle.connector_id == connector_id)
        if brand_id is not None:
            stmt = stmt.where(ZendeskArticle.brand_id == brand_id)
        if category_id is not None:
            stmt = stmt.where(ZendeskArticle.category_id == category_id)
        if article_ids is not None:
            stmt = stmt.where(ZendeskArticle.article_id.in_(article_ids))
        return await self._scalars(stmt.order_by(ZendeskArticle.article_id))

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
    ) -> ZendeskArticle:
        return await self._add(
            ZendeskArticle(
                connector_id=connector_id,
                brand_id=brand_id,
                category_id=category_id,
                section_id=section_id,
                article_id=article_id,
                name=name,
                url=url,
                permission=Permission.INHERITED,
                last_upserted_at=None,
            )
        )

    # Tickets

    async def list_tickets(
        self,
        connector_id: int,
        *,
        brand_id: int | None = None,
        ticket_ids: list[int] | None = None,
        updated_before: datetime | None = None,
    ) -> list[ZendeskTicket]:
        stmt = select(ZendeskTicket).where(ZendeskTicket.connector_id == connector_id)
        if brand_id is not None:
            stmt = stmt.where(ZendeskTicket.brand_id == brand_id)
        if ticket_ids is not None:
            stmt = stmt.where(ZendeskTicket.ticket_id.in_(ticket_ids))
        if updated_before is not None:
            stmt = stmt.where(ZendeskTicket.ticket_updated_at < updated_before)
        return await self._scalars(stmt.order_by(ZendeskTicket.ticket_id))

    async def create_ticket(
        self,
        connector_id: int,
        *,
        brand_id: int,
        ticket_id: int,
        subject: str,
        url: str,
        ticket_updated_at: datetime,
    ) -> ZendeskTicket:
        return await self._add(
            ZendeskTicket(
                connector_id=connector_id,
                brand_id=brand_id,
                ticket_id=ticket_id,
                subject=subject,
                url=url,
                ticket_updated_at=ticket_updated_at,
                permission=Permission.INHERITED,
                last_upserted_at=None,
            )
        )
