"""
Scheduler Port
==============

Capability the lifecycle manager uses to drive the external workflow runtime.
The engine never waits on or polls the runtime; it only launches, signals
and stops workflows.
"""

from dataclasses import dataclass, field
from typing import Protocol

from tributary.core.connectors.domain.connector import Connector


@dataclass
class SyncSignal:
    """
    Container ids whose permission changed, grouped by node type.

    A launched sync workflow restricts its full pass to these nodes.
    Zendesk uses brand / help center / tickets / category ids, Snowflake the
    database / schema / table internal ids.
    """

    brand_ids: list[int] = field(default_factory=list)
    help_center_brand_ids: list[int] = field(default_factory=list)
    tickets_brand_ids: list[int] = field(default_factory=list)
    category_ids: list[tuple[int, int]] = field(default_factory=list)  # (brand_id, category_id)
    internal_ids: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.brand_ids
            or self.help_center_brand_ids
            or self.tickets_brand_ids
            or self.category_ids
            or self.internal_ids
        )

    def to_payload(self) -> dict:
        return {
            "brand_ids": list(self.brand_ids),
            "help_center_brand_ids": list(self.help_center_brand_ids),
            "tickets_brand_ids": list(self.tickets_brand_ids),
            "category_ids": [list(pair) for pair in self.category_ids],
            "internal_ids": list(self.internal_ids),
        }

    @classmethod
    def from_payload(cls, payload: dict | None) -> "SyncSignal":
        payload = payload or {}
        return cls(
            brand_ids=list(payload.get("brand_ids", [])),
            help_center_brand_ids=list(payload.get("help_center_brand_ids", [])),
            tickets_brand_ids=list(payload.get("tickets_brand_ids", [])),
            category_ids=[tuple(pair) for pair in payload.get("category_ids", [])],
            internal_ids=list(payload.get("internal_ids", [])),
        )


class Scheduler(Protocol):
    async def launch_sync_workflow(
        self, connector: Connector, signal: SyncSignal | None = None
    ) -> str:
        """Launch (or signal) the incremental sync workflow. Returns the workflow id."""
        ...

    async def launch_full_sync_workflow(
        self, connector: Connector, *, force_resync: bool = False
    ) -> str:
        """Launch a full sync of every selected node."""
        ...

    async def launch_garbage_collection_workflow(self, connector: Connector) -> str:
        """Launch the recurring garbage collection workflow."""
        ...

    async def stop_workflows(self, connector: Connector) -> int:
        """Stop every workflow of the connector. Returns how many were stopped."""
        ...
