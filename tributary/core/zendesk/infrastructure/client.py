"""
Zendesk API Client
==================

Thin async client over the Zendesk REST API (Support and Help Center).

Brand content lives on the brand's own subdomain, so every brand-scoped call
takes the subdomain to route to. Listing calls return one ``ZendeskPage``;
callers follow ``next_link`` until ``has_more`` is False.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from tributary.core.connectors.domain.errors import ExternalOAuthTokenError

logger = logging.getLogger(__name__)

USERS_SHOW_MANY_LIMIT = 100
TICKETS_SHOW_MANY_LIMIT = 100
RATE_LIMIT_MAX_ATTEMPTS = 5


class ZendeskRateLimitError(Exception):
    """Zendesk answered 429. ``wait`` is the capped Retry-After delay in seconds."""

    def __init__(self, url: str, wait: float):
        self.url = url
        self.wait = wait
        super().__init__(f"Zendesk rate limit hit on {url}")


def _retry_after(response: httpx.Response) -> float:
    try:
        return max(float(response.headers.get("Retry-After", "1")), 0.0)
    except ValueError:
        return 1.0


def _wait_for_rate_limit(retry_state) -> float:
    exc = retry_state.outcome.exception()
    return exc.wait if isinstance(exc, ZendeskRateLimitError) else 1.0


@dataclass
class ZendeskPage:
    items: list[dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_link: str | None = None


def is_user_admin(user: dict[str, Any]) -> bool:
    return bool(user.get("active")) and user.get("role") == "admin"


def parse_page(data: dict[str, Any], key: str) -> ZendeskPage:
    """
    Normalize the three pagination styles Zendesk uses.

    - cursor pagination: ``meta.has_more`` + ``links.next``
    - incremental exports: ``end_of_stream`` + ``after_url`` / ``next_page``
    - offset pagination: ``next_page``

    A page announcing more results but carrying no item is the end of the
    listing.
    """
    items = data.get(key) or []

    if "meta" in data:
        has_more = bool(data["meta"].get("has_more"))
        next_link = (data.get("links") or {}).get("next")
    elif "end_of_stream" in data:
        has_more = not data["end_of_stream"]
        next_link = data.get("after_url") or data.get("next_page")
    else:
        next_link = data.get("next_page")
        has_more = next_link is not None

    if not items or not next_link:
        has_more = False
    return ZendeskPage(items=items, has_more=has_more, next_link=next_link if has_more else None)


class ZendeskClient:
    """
    Zendesk client authenticated with an OAuth bearer token.

    Raises:
        ExternalOAuthTokenError: on 401/403 responses.
        ZendeskRateLimitError: when every rate-limited attempt was exhausted.
        httpx.HTTPStatusError: on other non-success statuses (transient
            errors are retried by the task runtime).
    """

    def __init__(
        self,
        subdomain: str,
        access_token: str,
        *,
        timeout: float = 30.0,
        max_rate_limit_wait: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.subdomain = subdomain
        self._access_token = access_token
        self._max_rate_limit_wait = max_rate_limit_wait
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ZendeskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def base_url(subdomain: str) -> str:
        return f"https://{subdomain}.zendesk.com"

    @retry(
        stop=stop_after_attempt(RATE_LIMIT_MAX_ATTEMPTS),
        wait=_wait_for_rate_limit,
        retry=retry_if_exception_type(ZendeskRateLimitError),
        before_sleep=lambda retry_state: logger.warning(
            f"{retry_state.outcome.exception()}, retrying in {retry_state.next_action.sleep}s"
        ),
        reraise=True,
    )
    async def _request_with_retry(
        self, url: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """GET with automatic retries on rate limiting."""
        headers = {"Authorization": f"Bearer {self._access_token}"}
        response = await self._client.get(url, params=params, headers=headers)
        if response.status_code == 429:
            raise ZendeskRateLimitError(
                url, min(_retry_after(response), self._max_rate_limit_wait)
            )
        return response

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """GET a JSON document. Returns None on 404."""
        response = await self._request_with_retry(url, params)

        if response.status_code in (401, 403):
            raise ExternalOAuthTokenError(
                f"Zendesk rejected the access token ({response.status_code})",
                inner=httpx.HTTPStatusError(
                    response.text, request=response.request, response=response
                ),
            )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _get_page(
        self, url: str, key: str, params: dict[str, Any] | None = None
    ) -> ZendeskPage:
        data = await self._get(url, params)
        if data is None:
            return ZendeskPage()
        return parse_page(data, key)

    async def _get_all(
        self, url: str, key: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = await self._get_page(url, key, params)
        items.extend(page.items)
        while page.has_more and page.next_link:
            page = await self._get_page(page.next_link, key)
            items.extend(page.items)
        return items

    # Account

    async def fetch_current_user(self) -> dict[str, Any]:
        data = await self._get(f"{self.base_url(self.subdomain)}/api/v2/users/me.json")
        if data is None:
            raise ExternalOAuthTokenError("Zendesk current user not found")
        return data["user"]

    async def fetch_brands(self) -> list[dict[str, Any]]:
        return await self._get_all(
            f"{self.base_url(self.subdomain)}/api/v2/brands.json", "brands", {"page[size]": 100}
        )

    async def fetch_brand(self, brand_id: int) -> dict[str, Any] | None:
        data = await self._get(f"{self.base_url(self.subdomain)}/api/v2/brands/{brand_id}.json")
        return data["brand"] if data else None

    # Help Center

    async def fetch_categories(
        self, brand_subdomain: str, *, url: str | None = None, page_size: int = 100
    ) -> ZendeskPage:
        if url:
            return await self._get_page(url, "categories")
        return await self._get_page(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/categories.json",
            "categories",
            {"page[size]": page_size},
        )

    async def fetch_all_categories(self, brand_subdomain: str) -> list[dict[str, Any]]:
        return await self._get_all(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/categories.json",
            "categories",
            {"page[size]": 100},
        )

    async def fetch_category(self, brand_subdomain: str, category_id: int) -> dict[str, Any] | None:
        data = await self._get(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/categories/{category_id}.json"
        )
        return data["category"] if data else None

    async def fetch_sections_in_category(
        self, brand_subdomain: str, category_id: int
    ) -> list[dict[str, Any]]:
        return await self._get_all(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/categories/{category_id}/sections.json",
            "sections",
            {"page[size]": 100},
        )

    async def fetch_section(self, brand_subdomain: str, section_id: int) -> dict[str, Any] | None:
        data = await self._get(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/sections/{section_id}.json"
        )
        return data["section"] if data else None

    async def fetch_articles_in_category(
        self,
        brand_subdomain: str,
        category_id: int,
        *,
        url: str | None = None,
        page_size: int = 100,
    ) -> ZendeskPage:
        if url:
            return await self._get_page(url, "articles")
        return await self._get_page(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/categories/{category_id}/articles.json",
            "articles",
            {"page[size]": page_size},
        )

    async def fetch_article(self, brand_subdomain: str, article_id: int) -> dict[str, Any] | None:
        data = await self._get(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/articles/{article_id}.json"
        )
        return data["article"] if data else None

    async def fetch_recently_updated_articles(
        self, brand_subdomain: str, *, start_time: int, url: str | None = None
    ) -> ZendeskPage:
        """Incremental export of articles updated since ``start_time`` (epoch seconds)."""
        if url:
            return await self._get_page(url, "articles")
        return await self._get_page(
            f"{self.base_url(brand_subdomain)}/api/v2/help_center/incremental/articles.json",
            "articles",
            {"start_time": start_time},
        )

    # Support

    async def fetch_tickets(
        self, brand_subdomain: str, *, start_time: int, url: str | None = None
    ) -> ZendeskPage:
        """Incremental cursor export of tickets updated since ``start_time`` (epoch seconds)."""
        if url:
            return await self._get_page(url, "tickets")
        return await self._get_page(
            f"{self.base_url(brand_subdomain)}/api/v2/incremental/tickets/cursor.json",
            "tickets",
            {"start_time": start_time},
        )

    async def fetch_tickets_by_ids(
        self, brand_subdomain: str, ticket_ids: list[int]
    ) -> list[dict[str, Any]]:
        tickets: list[dict[str, Any]] = []
        for start in range(0, len(ticket_ids), TICKETS_SHOW_MANY_LIMIT):
            chunk = ticket_ids[start : start + TICKETS_SHOW_MANY_LIMIT]
            data = await self._get(
                f"{self.base_url(brand_subdomain)}/api/v2/tickets/show_many.json",
                {"ids": ",".join(str(ticket_id) for ticket_id in chunk)},
            )
            tickets.extend((data or {}).get("tickets", []))
        return tickets

    async def fetch_ticket_comments(
        self, brand_subdomain: str, ticket_id: int
    ) -> list[dict[str, Any]]:
        return await self._get_all(
            f"{self.base_url(brand_subdomain)}/api/v2/tickets/{ticket_id}/comments.json",
            "comments",
            {"page[size]": 100},
        )

    async def fetch_users(self, brand_subdomain: str, user_ids: list[int]) -> list[dict[str, Any]]:
        unique_ids = list(dict.fromkeys(user_ids))
        users: list[dict[str, Any]] = []
        for start in range(0, len(unique_ids), USERS_SHOW_MANY_LIMIT):
            chunk = unique_ids[start : start + USERS_SHOW_MANY_LIMIT]
            data = await self._get(
                f"{self.base_url(brand_subdomain)}/api/v2/users/show_many.json",
                {"ids": ",".join(str(user_id) for user_id in chunk)},
            )
            users.extend((data or {}).get("users", []))
        return users
