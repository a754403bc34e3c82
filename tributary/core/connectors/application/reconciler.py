"""
Reconciliation Engine
=====================

Diffs a snapshot of upstream leaves against the permission tree and the rows
previously synced, then drives the content store and the metadata store to
match.

For one pass:

1. Every upstream leaf that is read-granted and either unknown locally, never
   pushed downstream, stale, or force-resynced gets its row created (as
   ``inherited``) if missing, its ancestor folders upserted top-down, then
   itself upserted and stamped.
2. Every local leaf in scope that is no longer granted or no longer upstream
   is deleted from the content store first (if it was ever pushed), then its
   row is destroyed when inherited or cleared when explicitly selected.

The pass only reads current rows and the upstream snapshot, so replaying it
after a crash converges to the same state.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from tributary.core.connectors.domain.permissions import Permission, is_read_granted
from tributary.core.connectors.domain.ports.content_store import ContentStore, DataSourceConfig
from tributary.shared.async_utils import concurrent_executor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderSpec:
    """A container node to materialize in the content store."""

    folder_id: str
    title: str
    mime_type: str
    source_url: str | None = None


@dataclass
class RemoteLeaf:
    """
    One upstream leaf (article, ticket, table) seen during a pass.

    ``ancestors`` is nearest-first and stops at the root container.
    ``present`` is False for upstream tombstones (deleted ticket, draft article).
    A leaf that is present but not ``syncable`` (an unsolved ticket) is never
    upserted and never retracted because of its state.
    """

    internal_id: str
    title: str
    ancestors: list[FolderSpec]
    payload: Any = None
    present: bool = True
    syncable: bool = True
    updated_at: datetime | None = None

    @property
    def chain(self) -> list[str]:
        return [self.internal_id, *(folder.folder_id for folder in self.ancestors)]

    @property
    def parents(self) -> list[str]:
        return self.chain

    @property
    def parent_id(self) -> str | None:
        return self.ancestors[0].folder_id if self.ancestors else None


class LeafRow(Protocol):
    internal_id: str
    permission: Permission
    last_upserted_at: datetime | None


class LeafAdapter(Protocol):
    """Provider-specific persistence and content store calls for one kind of leaf."""

    async def prepare(self, leaves: list[RemoteLeaf]) -> None:
        """Fetch whatever the upserts of ``leaves`` need (comments, authors)."""
        ...

    async def create_row(self, leaf: RemoteLeaf) -> LeafRow:
        """Create the row of a newly seen leaf with ``inherited`` permission."""
        ...

    async def upsert(self, leaf: RemoteLeaf, row: LeafRow) -> None:
        """Push the leaf to the content store under ``leaf.parents``."""
        ...

    async def mark_upserted(self, leaf: RemoteLeaf, row: LeafRow, upserted_at: datetime) -> None:
        """Stamp the row (and refresh its metadata from the leaf)."""
        ...

    async def delete(self, row: LeafRow) -> None:
        """Delete the leaf from the content store."""
        ...

    async def destroy_row(self, row: LeafRow) -> None:
        ...

    async def clear_row(self, row: LeafRow) -> None:
        """Forget the downstream copy but keep the user's explicit choice."""
        ...


@dataclass
class ReconcileResult:
    upserted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    destroyed: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)


def folder_upsert_order(leaves: Iterable[RemoteLeaf]) -> list[tuple[FolderSpec, list[str]]]:
    """
    Deduplicated folders for ``leaves`` with their parent chains, each folder
    listed after all of its ancestors.
    """
    seen: set[str] = set()
    ordered: list[tuple[FolderSpec, list[str]]] = []
    for leaf in leaves:
        ids = [folder.folder_id for folder in leaf.ancestors]
        for index in reversed(range(len(leaf.ancestors))):
            folder = leaf.ancestors[index]
            if folder.folder_id in seen:
                continue
            seen.add(folder.folder_id)
            ordered.append((folder, ids[index:]))
    return ordered


class Reconciler:
    def __init__(
        self,
        *,
        content_store: ContentStore,
        data_source: DataSourceConfig,
        adapter: LeafAdapter,
        concurrency: int = 10,
        heartbeat: Callable[[], None] | None = None,
    ):
        self._content_store = content_store
        self._data_source = data_source
        self._adapter = adapter
        self._concurrency = concurrency
        self._heartbeat = heartbeat

    def needs_upsert(self, leaf: RemoteLeaf, row: LeafRow | None, force_resync: bool) -> bool:
        if row is None or row.last_upserted_at is None or force_resync:
            return True
        return leaf.updated_at is not None and leaf.updated_at > row.last_upserted_at

    async def upsert_folders(self, leaves: Iterable[RemoteLeaf]) -> None:
        for folder, parents in folder_upsert_order(leaves):
            await self._content_store.upsert_folder(
                self._data_source,
                folder_id=folder.folder_id,
                title=folder.title,
                parents=parents,
                parent_id=parents[1] if len(parents) > 1 else None,
                mime_type=folder.mime_type,
                source_url=folder.source_url,
            )

    async def reconcile(
        self,
        remote: list[RemoteLeaf],
        local: Iterable[LeafRow],
        explicit: Mapping[str, Permission],
        *,
        complete_catalog: bool,
        force_resync: bool = False,
    ) -> ReconcileResult:
        """
        Run one pass.

        With ``complete_catalog`` the snapshot is the whole upstream catalog
        and every local row is in scope for deletion; otherwise (one page of
        a paginated listing) only rows whose leaf appears in ``remote`` are.
        """
        result = ReconcileResult()
        rows_by_id = {row.internal_id: row for row in local}
        present = {leaf.internal_id: leaf for leaf in remote if leaf.present}

        to_upsert = [
            leaf
            for leaf in present.values()
            if leaf.syncable
            and is_read_granted(leaf.chain, explicit)
            and self.needs_upsert(leaf, rows_by_id.get(leaf.internal_id), force_resync)
        ]

        await self._adapter.prepare(to_upsert)

        # Parents first, outside the fan-out, so no leaf references a missing folder
        await self.upsert_folders(to_upsert)

        async def _upsert_one(leaf: RemoteLeaf) -> str:
            row = rows_by_id.get(leaf.internal_id)
            if row is None:
                row = await self._adapter.create_row(leaf)
            await self._adapter.upsert(leaf, row)
            await self._adapter.mark_upserted(leaf, row, datetime.now(UTC))
            return leaf.internal_id

        result.upserted = await concurrent_executor(
            to_upsert,
            _upsert_one,
            concurrency=self._concurrency,
            on_item_complete=self._heartbeat,
        )

        if complete_catalog:
            scope = list(rows_by_id.values())
        else:
            seen_ids = {leaf.internal_id for leaf in remote}
            scope = [row for row in rows_by_id.values() if row.internal_id in seen_ids]

        to_remove = [
            row
            for row in scope
            if row.internal_id not in present
            or not is_read_granted(present[row.internal_id].chain, explicit)
        ]

        async def _remove_one(row: LeafRow) -> None:
            await self.remove(row, result)

        await concurrent_executor(
            to_remove,
            _remove_one,
            concurrency=self._concurrency,
            on_item_complete=self._heartbeat,
        )

        logger.info(
            f"Reconciled {len(remote)} upstream leaves: {len(result.upserted)} upserted, "
            f"{len(result.deleted)} deleted, {len(result.destroyed)} rows destroyed"
        )
        return result

    async def remove(self, row: LeafRow, result: ReconcileResult | None = None) -> None:
        """Delete downstream first, then destroy (inherited) or clear (explicit) the row."""
        result = result if result is not None else ReconcileResult()
        if row.last_upserted_at is not None:
            await self._adapter.delete(row)
            result.deleted.append(row.internal_id)

        if row.permission == Permission.INHERITED:
            await self._adapter.destroy_row(row)
            result.destroyed.append(row.internal_id)
        elif row.last_upserted_at is not None:
            await self._adapter.clear_row(row)
            result.retained.append(row.internal_id)

    async def garbage_collect_all(self, rows: Iterable[LeafRow]) -> ReconcileResult:
        """
        Unconditionally retract every leaf of the connector.

        Used when the upstream connection itself can no longer be trusted.
        """
        result = ReconcileResult()
        for row in list(rows):
            await self.remove(row, result)
            if self._heartbeat is not None:
                self._heartbeat()
        logger.warning(
            f"Garbage collected every leaf: {len(result.deleted)} deleted, "
            f"{len(result.destroyed)} rows destroyed, {len(result.retained)} rows cleared"
        )
        return result
