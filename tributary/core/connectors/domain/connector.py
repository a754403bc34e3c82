"""
Connector Model
===============

One row per (workspace, provider) pairing. Owns every provider row through
cascading foreign keys.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from tributary.core.state.machine import SyncStatus
from tributary.shared.kernel.models.base import Base, TimestampMixin


class ConnectorProvider(str, Enum):
    ZENDESK = "zendesk"
    SNOWFLAKE = "snowflake"


class Connector(Base, TimestampMixin):
    """
    Tracks a connector, its credential reference and its sync status.
    """

    __tablename__ = "connectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[ConnectorProvider] = mapped_column(
        SQLEnum(
            ConnectorProvider,
            name="connector_provider",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    connection_id: Mapped[str] = mapped_column(String, nullable=False)

    # Content store target
    workspace_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    workspace_api_key: Mapped[str] = mapped_column(String, nullable=False)
    data_source_id: Mapped[str] = mapped_column(String, nullable=False)

    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sync_status: Mapped[SyncStatus] = mapped_column(
        SQLEnum(SyncStatus, name="sync_status", values_callable=lambda e: [m.value for m in e]),
        default=SyncStatus.IDLE,
        nullable=False,
    )
    error_type: Mapped[str | None] = mapped_column(String, nullable=True)
    last_sync_start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_sync_finish_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_sync_success_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def is_paused(self) -> bool:
        return self.paused_at is not None

    def __repr__(self):
        return f"<Connector(id={self.id}, type={self.type}, status={self.sync_status})>"
