"""
Zendesk Leaves
==============

Articles and tickets as reconciler leaves: how to build them from API
objects, render them for the content store, and persist their rows.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from tributary.core.connectors.application.reconciler import FolderSpec, RemoteLeaf
from tributary.core.connectors.domain.content_node import MimeTypes
from tributary.core.connectors.domain.ports.content_store import ContentStore, DataSourceConfig
from tributary.core.zendesk.domain.internal_ids import (
    get_article_internal_id,
    get_ticket_internal_id,
)
from tributary.core.zendesk.domain.models import (
    ZendeskArticle,
    ZendeskBrand,
    ZendeskCategory,
    ZendeskTicket,
)
from tributary.core.zendesk.domain.ports.repository import ZendeskRepository
from tributary.core.zendesk.infrastructure.client import ZendeskClient
from tributary.shared.async_utils import concurrent_executor

SYNCED_TICKET_STATUSES = ("solved", "closed")


def parse_zendesk_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def brand_folder(brand: ZendeskBrand) -> FolderSpec:
    return FolderSpec(brand.internal_id, brand.name, MimeTypes.ZENDESK_BRAND, brand.url or None)


def help_center_folder(brand: ZendeskBrand) -> FolderSpec:
    return FolderSpec(brand.help_center_internal_id, "Help Center", MimeTypes.ZENDESK_HELP_CENTER)


def tickets_folder(brand: ZendeskBrand) -> FolderSpec:
    return FolderSpec(brand.tickets_internal_id, "Tickets", MimeTypes.ZENDESK_TICKETS)


def category_folder(category: ZendeskCategory) -> FolderSpec:
    return FolderSpec(
        category.internal_id, category.name, MimeTypes.ZENDESK_CATEGORY, category.url or None
    )


def article_leaf(
    brand: ZendeskBrand,
    category: ZendeskCategory,
    article: dict[str, Any],
    section: dict[str, Any] | None = None,
) -> RemoteLeaf:
    return RemoteLeaf(
        internal_id=get_article_internal_id(brand.connector_id, brand.brand_id, article["id"]),
        title=article.get("title") or article.get("name") or "Article",
        ancestors=[category_folder(category), help_center_folder(brand), brand_folder(brand)],
        payload={"article": article, "section": section, "category_id": category.category_id},
        present=not article.get("draft", False),
        updated_at=parse_zendesk_datetime(article.get("updated_at")),
    )


def ticket_leaf(brand: ZendeskBrand, ticket: dict[str, Any]) -> RemoteLeaf:
    return RemoteLeaf(
        internal_id=get_ticket_internal_id(brand.connector_id, brand.brand_id, ticket["id"]),
        title=ticket.get("subject") or f"Ticket #{ticket['id']}",
        ancestors=[tickets_folder(brand), brand_folder(brand)],
        payload={"ticket": ticket},
        present=ticket.get("status") != "deleted",
        syncable=ticket.get("status") in SYNCED_TICKET_STATUSES,
        updated_at=parse_zendesk_datetime(ticket.get("updated_at")),
    )


def _user_name(users: dict[int, dict[str, Any]], user_id: int | None) -> str:
    user = users.get(user_id) if user_id is not None else None
    return user.get("name", "Unknown") if user else "Unknown"


def render_article(article: dict[str, Any], section: dict[str, Any] | None, author: str) -> str:
    lines = [f"ARTICLE: {article.get('title') or article.get('name') or ''}"]
    if section:
        lines.append(f"SECTION: {section.get('name', '')}")
    lines.append(f"AUTHOR: {author}")
    if article.get("label_names"):
        lines.append(f"LABELS: {', '.join(article['label_names'])}")
    lines.append("")
    lines.append(article.get("body") or "")
    return "\n".join(lines)


def render_ticket(
    ticket: dict[str, Any], comments: list[dict[str, Any]], users: dict[int, dict[str, Any]]
) -> str:
    lines = [
        f"TICKET #{ticket['id']}: {ticket.get('subject') or ''}",
        f"STATUS: {ticket.get('status')}",
        f"PRIORITY: {ticket.get('priority') or 'none'}",
        f"CREATED: {ticket.get('created_at')}",
        f"UPDATED: {ticket.get('updated_at')}",
        "",
    ]
    for comment in comments:
        visibility = "" if comment.get("public", True) else " (internal)"
        author = _user_name(users, comment.get("author_id"))
        lines.append(f"[{comment.get('created_at')}] {author}{visibility}:")
        lines.append(comment.get("plain_body") or comment.get("body") or "")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def _timestamp_ms(value: datetime | None) -> int | None:
    return int(value.timestamp() * 1000) if value else None


class _ZendeskLeafAdapter:
    def __init__(
        self,
        *,
        repository: ZendeskRepository,
        content_store: ContentStore,
        data_source: DataSourceConfig,
        client: ZendeskClient,
        brand: ZendeskBrand,
    ):
        self._repository = repository
        self._content_store = content_store
        self._data_source = data_source
        self._client = client
        self._brand = brand

    async def delete(self, row) -> None:
        await self._content_store.delete_document(self._data_source, row.internal_id)

    async def destroy_row(self, row) -> None:
        await self._repository.delete(row)

    async def clear_row(self, row) -> None:
        row.last_upserted_at = None
        await self._repository.save(row)


class ArticleLeafAdapter(_ZendeskLeafAdapter):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._users: dict[int, dict[str, Any]] = {}

    async def prepare(self, leaves: list[RemoteLeaf]) -> None:
        author_ids = [leaf.payload["article"].get("author_id") for leaf in leaves]
        author_ids = [author_id for author_id in author_ids if author_id is not None]
        if not author_ids:
            return
        users = await self._client.fetch_users(self._brand.subdomain, author_ids)
        self._users = {user["id"]: user for user in users}

    async def create_row(self, leaf: RemoteLeaf) -> ZendeskArticle:
        article = leaf.payload["article"]
        return await self._repository.create_article(
            self._brand.connector_id,
            brand_id=self._brand.brand_id,
            category_id=leaf.payload["category_id"],
            section_id=article.get("section_id"),
            article_id=article["id"],
            name=leaf.title,
            url=article.get("html_url") or "",
        )

    async def upsert(self, leaf: RemoteLeaf, row: ZendeskArticle) -> None:
        article = leaf.payload["article"]
        author = _user_name(self._users, article.get("author_id"))
        await self._content_store.upsert_document(
            self._data_source,
            document_id=leaf.internal_id,
            title=leaf.title,
            parents=leaf.parents,
            parent_id=leaf.parent_id,
            mime_type=MimeTypes.ZENDESK_ARTICLE,
            content=render_article(article, leaf.payload.get("section"), author),
            source_url=article.get("html_url"),
            tags=[f"title:{leaf.title}", f"author:{author}", *article.get("label_names", [])],
            timestamp_ms=_timestamp_ms(leaf.updated_at),
        )

    async def mark_upserted(
        self, leaf: RemoteLeaf, row: ZendeskArticle, upserted_at: datetime
    ) -> None:
        article = leaf.payload["article"]
        row.name = leaf.title
        row.url = article.get("html_url") or row.url
        row.section_id = article.get("section_id")
        row.category_id = leaf.payload["category_id"]
        row.last_upserted_at = upserted_at
        await self._repository.save(row)


class TicketLeafAdapter(_ZendeskLeafAdapter):
    def __init__(
        self,
        *,
        comment_concurrency: int = 3,
        heartbeat: Callable[[], None] | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._comment_concurrency = comment_concurrency
        self._heartbeat = heartbeat
        self._comments: dict[int, list[dict[str, Any]]] = {}
        self._users: dict[int, dict[str, Any]] = {}

    async def prepare(self, leaves: list[RemoteLeaf]) -> None:
        tickets = [leaf.payload["ticket"] for leaf in leaves]

        async def _fetch_comments(ticket: dict[str, Any]) -> list[dict[str, Any]]:
            return await self._client.fetch_ticket_comments(self._brand.subdomain, ticket["id"])

        comments = await concurrent_executor(
            tickets,
            _fetch_comments,
            concurrency=self._comment_concurrency,
            on_item_complete=self._heartbeat,
        )
        if len(comments) != len(tickets):
            raise RuntimeError("Unreachable: ticket and comment lists have different lengths")
        self._comments = {
            ticket["id"]: ticket_comments for ticket, ticket_comments in zip(tickets, comments)
        }

        author_ids = {
            comment["author_id"]
            for ticket_comments in comments
            for comment in ticket_comments
            if comment.get("author_id") is not None
        }
        if author_ids:
            users = await self._client.fetch_users(self._brand.subdomain, sorted(author_ids))
            self._users = {user["id"]: user for user in users}

    async def create_row(self, leaf: RemoteLeaf) -> ZendeskTicket:
        ticket = leaf.payload["ticket"]
        return await self._repository.create_ticket(
            self._brand.connector_id,
            brand_id=self._brand.brand_id,
            ticket_id=ticket["id"],
            subject=leaf.title,
            url=_ticket_url(self._brand, ticket),
            ticket_updated_at=leaf.updated_at or datetime.now().astimezone(),
        )

    async def upsert(self, leaf: RemoteLeaf, row: ZendeskTicket) -> None:
        ticket = leaf.payload["ticket"]
        comments = self._comments.get(ticket["id"], [])
        await self._content_store.upsert_document(
            self._data_source,
            document_id=leaf.internal_id,
            title=leaf.title,
            parents=leaf.parents,
            parent_id=leaf.parent_id,
            mime_type=MimeTypes.ZENDESK_TICKET,
            content=render_ticket(ticket, comments, self._users),
            source_url=_ticket_url(self._brand, ticket),
            tags=[f"title:{leaf.title}", *ticket.get("tags", [])],
            timestamp_ms=_timestamp_ms(leaf.updated_at),
        )

    async def mark_upserted(
        self, leaf: RemoteLeaf, row: ZendeskTicket, upserted_at: datetime
    ) -> None:
        row.subject = leaf.title
        if leaf.updated_at is not None:
            row.ticket_updated_at = leaf.updated_at
        row.last_upserted_at = upserted_at
        await self._repository.save(row)


def _ticket_url(brand: ZendeskBrand, ticket: dict[str, Any]) -> str:
    return f"https://{brand.subdomain}.zendesk.com/agent/tickets/{ticket['id']}"
