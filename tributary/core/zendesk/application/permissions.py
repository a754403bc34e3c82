"""
Zendesk Permission Tree
=======================

Allow / forbid operations on brands, help centers, ticket buckets and
categories. Each operation returns whether the stored state changed so the
caller only signals a sync for real changes.

Selecting a node that was never seen creates its row from the live Zendesk
object. Forbidding only flips the explicit permission; retracting the
content already synced is the job of the next sync or garbage collection
pass, which deletes downstream before touching rows.
"""

import logging

from tributary.core.connectors.domain.permissions import Permission
from tributary.core.zendesk.domain.models import ZendeskBrand, ZendeskCategory
from tributary.core.zendesk.domain.ports.repository import ZendeskRepository
from tributary.core.zendesk.infrastructure.client import ZendeskClient

logger = logging.getLogger(__name__)


class ZendeskPermissions:
    def __init__(self, repository: ZendeskRepository, client: ZendeskClient, connector_id: int):
        self._repository = repository
        self._client = client
        self._connector_id = connector_id

    async def _get_or_create_brand(self, brand_id: int) -> ZendeskBrand | None:
        brand = await self._repository.get_brand(self._connector_id, brand_id)
        if brand is not None:
            return brand

        fetched = await self._client.fetch_brand(brand_id)
        if fetched is None:
            logger.warning(f"Brand {brand_id} not found on Zendesk for connector {self._connector_id}")
            return None

        return await self._repository.create_brand(
            self._connector_id,
            brand_id=brand_id,
            name=fetched.get("name") or "Brand",
            url=fetched.get("url") or "",
            subdomain=fetched["subdomain"],
            has_help_center=bool(fetched.get("has_help_center")),
            help_center_permission=Permission.NONE,
            tickets_permission=Permission.NONE,
        )

    async def _set_brand_permissions(
        self,
        brand: ZendeskBrand,
        *,
        help_center: Permission | None = None,
        tickets: Permission | None = None,
    ) -> bool:
        changed = False
        if help_center is not None and brand.help_center_permission != help_center:
            brand.help_center_permission = help_center
            changed = True
        if tickets is not None and brand.tickets_permission != tickets:
            brand.tickets_permission = tickets
            changed = True
        if changed:
            await self._repository.save(brand)
        return changed

    # Brand: both sub-nodes at once

    async def allow_brand(self, brand_id: int) -> bool:
        brand = await self._get_or_create_brand(brand_id)
        if brand is None:
            return False
        return await self._set_brand_permissions(
            brand,
            help_center=Permission.READ if brand.has_help_center else None,
            tickets=Permission.READ,
        )

    async def forbid_brand(self, brand_id: int) -> bool:
        brand = await self._repository.get_brand(self._connector_id, brand_id)
        if brand is None:
            return False
        return await self._set_brand_permissions(
            brand, help_center=Permission.NONE, tickets=Permission.NONE
        )

    # Help center

    async def allow_help_center(self, brand_id: int) -> bool:
        brand = await self._get_or_create_brand(brand_id)
        if brand is None:
            return False
        if not brand.has_help_center:
            logger.info(f"Brand {brand_id} has no help center, nothing to allow")
            return False
        return await self._set_brand_permissions(brand, help_center=Permission.READ)

    async def forbid_help_center(self, brand_id: int) -> bool:
        brand = await self._repository.get_brand(self._connector_id, brand_id)
        if brand is None:
            return False
        return await self._set_brand_permissions(brand, help_center=Permission.NONE)

    # Tickets

    async def allow_tickets(self, brand_id: int) -> bool:
        brand = await self._get_or_create_brand(brand_id)
        if brand is None:
            return False
        return await self._set_brand_permissions(brand, tickets=Permission.READ)

    async def forbid_tickets(self, brand_id: int) -> bool:
        brand = await self._repository.get_brand(self._connector_id, brand_id)
        if brand is None:
            return False
        return await self._set_brand_permissions(brand, tickets=Permission.NONE)

    # Category

    async def allow_category(self, brand_id: int, category_id: int) -> bool:
        category = await self._repository.get_category(self._connector_id, brand_id, category_id)
        if category is not None:
            if category.permission == Permission.READ:
                return False
            category.permission = Permission.READ
            await self._repository.save(category)
            return True

        brand = await self._get_or_create_brand(brand_id)
        if brand is None:
            return False
        fetched = await self._client.fetch_category(brand.subdomain, category_id)
        if fetched is None:
            logger.warning(f"Category {category_id} not found on Zendesk brand {brand_id}")
            return False

        await self._create_category(brand_id, fetched, Permission.READ)
        return True

    async def forbid_category(self, brand_id: int, category_id: int) -> bool:
        category = await self._repository.get_category(self._connector_id, brand_id, category_id)
        if category is None or category.permission == Permission.NONE:
            return False
        category.permission = Permission.NONE
        await self._repository.save(category)
        return True

    async def _create_category(
        self, brand_id: int, fetched: dict, permission: Permission
    ) -> ZendeskCategory:
        return await self._repository.create_category(
            self._connector_id,
            brand_id=brand_id,
            category_id=fetched["id"],
            name=fetched.get("name") or "Category",
            url=fetched.get("html_url") or "",
            description=fetched.get("description"),
            permission=permission,
        )
