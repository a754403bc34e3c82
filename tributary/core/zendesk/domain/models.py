"""
Zendesk Models
==============

Permission tree and sync bookkeeping rows of Zendesk connectors.

Every row belongs to exactly one connector and disappears with it
(``ON DELETE CASCADE``). ``last_upserted_at`` is null until the node was
successfully pushed to the content store.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from tributary.core.connectors.domain.columns import connector_fk, permission_column
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.zendesk.domain.internal_ids import (
    get_article_internal_id,
    get_brand_internal_id,
    get_category_internal_id,
    get_help_center_internal_id,
    get_ticket_internal_id,
    get_tickets_internal_id,
)
from tributary.shared.kernel.models.base import Base, TimestampMixin

DEFAULT_RETENTION_PERIOD_DAYS = 180


class ZendeskConfiguration(Base, TimestampMixin):
    __tablename__ = "zendesk_configurations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("connectors.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    subdomain: Mapped[str] = mapped_column(String, nullable=False)
    retention_period_days: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_RETENTION_PERIOD_DAYS, nullable=False
    )


class ZendeskTimestampCursor(Base, TimestampMixin):
    """High-water mark of incremental syncs. Absent until a full pass completed."""

    __tablename__ = "zendesk_timestamp_cursors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("connectors.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    timestamp_cursor: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ZendeskBrand(Base, TimestampMixin):
    """
    Top-level node. A brand owns two sub-nodes (help center, tickets), each
    with its own explicit permission.
    """

    __tablename__ = "zendesk_brands"
    __table_args__ = (UniqueConstraint("connector_id", "brand_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    brand_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    subdomain: Mapped[str] = mapped_column(String, nullable=False)
    has_help_center: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    help_center_permission: Mapped[Permission] = permission_column(Permission.NONE)
    tickets_permission: Mapped[Permission] = permission_column(Permission.NONE)
    last_upserted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def internal_id(self) -> str:
        return get_brand_internal_id(self.connector_id, self.brand_id)

    @property
    def help_center_internal_id(self) -> str:
        return get_help_center_internal_id(self.connector_id, self.brand_id)

    @property
    def tickets_internal_id(self) -> str:
        return get_tickets_internal_id(self.connector_id, self.brand_id)

    @property
    def permission(self) -> Permission:
        # A brand is "read" as soon as one of its two sub-nodes is
        if Permission.READ in (self.help_center_permission, self.tickets_permission):
            return Permission.READ
        return Permission.NONE


class ZendeskCategory(Base, TimestampMixin):
    __tablename__ = "zendesk_categories"
    __table_args__ = (UniqueConstraint("connector_id", "brand_id", "category_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    brand_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    permission: Mapped[Permission] = permission_column(Permission.INHERITED)
    last_upserted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def internal_id(self) -> str:
        return get_category_internal_id(self.connector_id, self.brand_id, self.category_id)

    def parent_internal_ids(self) -> list[str]:
        return [
            self.internal_id,
            get_help_center_internal_id(self.connector_id, self.brand_id),
            get_brand_internal_id(self.connector_id, self.brand_id),
        ]


class ZendeskArticle(Base, TimestampMixin):
    __tablename__ = "zendesk_articles"
    __table_args__ = (UniqueConstraint("connector_id", "brand_id", "article_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    brand_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    section_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    article_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    permission: Mapped[Permission] = permission_column(Permission.INHERITED)
    last_upserted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def internal_id(self) -> str:
        return get_article_internal_id(self.connector_id, self.brand_id, self.article_id)

    def parent_internal_ids(self) -> list[str]:
        return [
            self.internal_id,
            get_category_internal_id(self.connector_id, self.brand_id, self.category_id),
            get_help_center_internal_id(self.connector_id, self.brand_id),
            get_brand_internal_id(self.connector_id, self.brand_id),
        ]


class ZendeskTicket(Base, TimestampMixin):
    __tablename__ = "zendesk_tickets"
    __table_args__ = (UniqueConstraint("connector_id", "brand_id", "ticket_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    brand_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ticket_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subject: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    ticket_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    permission: Mapped[Permission] = permission_column(Permission.INHERITED)
    last_upserted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def internal_id(self) -> str:
        return get_ticket_internal_id(self.connector_id, self.brand_id, self.ticket_id)

    def parent_internal_ids(self) -> list[str]:
        return [
            self.internal_id,
            get_tickets_internal_id(self.connector_id, self.brand_id),
            get_brand_internal_id(self.connector_id, self.brand_id),
        ]
