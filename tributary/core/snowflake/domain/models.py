"""
Remote Database Models
======================

Permission tree of warehouse connectors. Databases and schemas only exist as
rows once the user set a permission on them; tables are also created by the
sync when a container grants them.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tributary.core.connectors.domain.columns import connector_fk, permission_column
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.snowflake.domain.internal_ids import parse_internal_id
from tributary.shared.kernel.models.base import Base, TimestampMixin


class _RemoteNode:
    def parent_internal_ids(self) -> list[str]:
        return parse_internal_id(self.internal_id).parent_internal_ids()


class RemoteDatabase(_RemoteNode, Base, TimestampMixin):
    __tablename__ = "remote_databases"
    __table_args__ = (UniqueConstraint("connector_id", "internal_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    internal_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    permission: Mapped[Permission] = permission_column(Permission.READ)


class RemoteSchema(_RemoteNode, Base, TimestampMixin):
    __tablename__ = "remote_schemas"
    __table_args__ = (UniqueConstraint("connector_id", "internal_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    internal_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    database_name: Mapped[str] = mapped_column(String, nullable=False)
    permission: Mapped[Permission] = permission_column(Permission.READ)


class RemoteTable(_RemoteNode, Base, TimestampMixin):
    __tablename__ = "remote_tables"
    __table_args__ = (UniqueConstraint("connector_id", "internal_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    connector_id: Mapped[int] = connector_fk()
    internal_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    schema_name: Mapped[str] = mapped_column(String, nullable=False)
    database_name: Mapped[str] = mapped_column(String, nullable=False)
    permission: Mapped[Permission] = permission_column(Permission.INHERITED)
    last_upserted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<RemoteTable(internal_id={self.internal_id}, permission={self.permission})>"
