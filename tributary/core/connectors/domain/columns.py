"""Column factories shared by the provider permission tree models."""

from sqlalchemy import ForeignKey, Integer
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from tributary.core.connectors.domain.permissions import Permission

# One database enum type shared by every provider table
PERMISSION_ENUM = SQLEnum(
    Permission, name="node_permission", values_callable=lambda e: [m.value for m in e]
)


def connector_fk() -> Mapped[int]:
    return mapped_column(
        Integer, ForeignKey("connectors.id", ondelete="CASCADE"), index=True, nullable=False
    )


def permission_column(default: Permission) -> Mapped[Permission]:
    return mapped_column(PERMISSION_ENUM, default=default, nullable=False)
