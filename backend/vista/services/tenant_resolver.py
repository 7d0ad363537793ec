"""
Tenant resolution for inbound webhook events.

All profiles share one webhook endpoint, and there is no table mapping
Notion databases to profiles; ``Profile.notion_database_id`` is the only
source of truth. Resolution order:

1. Explicit tenant on the delivery URL (``?user_id=``): a numeric value is a
   profile id, anything else is a ``url_param`` slug. Subscription
   verification requests use this path.
2. The event's parent database id, compared against every profile's
   configured database id ignoring hyphens and case (linear scan).
3. The page id, when exactly one profile already owns a content item for
   it. Covers events whose parent no longer names the profile's database,
   e.g. a page moved out of it.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vista.core.exceptions import TenantNotFoundError
from vista.models.content import ContentItem, ContentStatus
from vista.models.profile import Profile
from vista.services.processors.properties import canonical_id

logger = logging.getLogger(__name__)


class TenantResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_explicit(self, tenant_ref: str) -> Profile:
        """
        Resolve a tenant given on the delivery URL.

        Raises:
            TenantNotFoundError: If no profile has that id or slug
        """
        tenant_ref = tenant_ref.strip()
        profile = None
        if tenant_ref.isdigit():
            profile = await self.db.get(Profile, int(tenant_ref))
        if profile is None:
            result = await self.db.execute(select(Profile).where(Profile.url_param == tenant_ref))
            profile = result.scalar_one_or_none()

        if profile is None:
            raise TenantNotFoundError(f"No profile for tenant reference {tenant_ref!r}")
        return profile

    async def resolve_by_database_id(self, database_id: str) -> Profile:
        """
        Find the profile whose configured database matches ``database_id``.

        Raises:
            TenantNotFoundError: If no profile is configured for it
        """
        wanted = canonical_id(database_id)
        if wanted:
            result = await self.db.execute(
                select(Profile).where(Profile.notion_database_id.is_not(None)).order_by(Profile.id)
            )
            for profile in result.scalars():
                if canonical_id(profile.notion_database_id) == wanted:
                    return profile

        raise TenantNotFoundError(
            f"No profile configured for database {database_id!r}",
            database_id=database_id,
        )

    async def profile_ids_holding_page(self, page_id: str, active_only: bool = False) -> list[int]:
        """Ids of every profile with a content item for ``page_id``."""
        query = select(ContentItem.profile_id).where(ContentItem.notion_page_id == canonical_id(page_id))
        if active_only:
            query = query.where(ContentItem.status == ContentStatus.ACTIVE)
        result = await self.db.execute(query.distinct().order_by(ContentItem.profile_id))
        return list(result.scalars())

    async def resolve_by_page_id(self, page_id: str) -> Profile:
        """
        Find the single profile that already holds ``page_id``.

        Raises:
            TenantNotFoundError: If no profile, or more than one, holds the page
        """
        profile_ids = await self.profile_ids_holding_page(page_id)
        if len(profile_ids) != 1:
            raise TenantNotFoundError(
                f"Page {page_id!r} is held by {len(profile_ids)} profiles"
            )
        profile = await self.db.get(Profile, profile_ids[0])
        if profile is None:
            raise TenantNotFoundError(f"Profile {profile_ids[0]} no longer exists")
        return profile

    async def resolve(
        self,
        *,
        tenant_ref: Optional[str] = None,
        database_id: Optional[str] = None,
        page_id: Optional[str] = None,
    ) -> Profile:
        """
        Resolve the owning profile for an event.

        An explicit tenant reference is authoritative: if it does not match,
        resolution fails rather than falling back to the payload.

        Raises:
            TenantNotFoundError: If nothing matches
        """
        if tenant_ref:
            return await self.resolve_explicit(tenant_ref)

        if database_id:
            try:
                return await self.resolve_by_database_id(database_id)
            except TenantNotFoundError:
                if not page_id:
                    raise
                logger.info(f"Database {database_id} not configured, trying page {page_id}")

        if page_id:
            return await self.resolve_by_page_id(page_id)

        raise TenantNotFoundError("Event carries no tenant, database or page identifier")
