"""
Full resync of a profile's Notion database.

Flow:
-----
1. Enumerate every page of the database (newest first).
2. Fetch and normalize pages concurrently, at most SYNC_PAGE_CONCURRENCY at
   a time. Each page gets its own media index scope.
3. Upsert results one by one, in enumeration order, each inside a SAVEPOINT
   so a failed write cannot undo pages saved before it.
4. Mark active items whose page was not enumerated as removed.
5. Commit.

A page that fails to fetch, normalize or save is reported as ``failed`` and
the run carries on. If enumeration itself fails nothing is written.

Two syncs of the same profile must not overlap; the Celery task holds a
Redis lock around ``sync_profile`` (vista.db.redis.profile_sync_lock).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vista.core.config import settings
from vista.core.exceptions import PersistenceError, RequestValidationFailed
from vista.models.content import ContentItem, ContentStatus
from vista.models.profile import Profile
from vista.services.content_pipeline import (
    ContentPipeline,
    NormalizedPage,
    set_content_status,
    upsert_content_item,
)
from vista.services.notion_client import NotionClient
from vista.services.processors.properties import canonical_id

logger = logging.getLogger(__name__)


@dataclass
class PageSyncResult:
    page_id: str
    operation: str
    title: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SyncReport:
    profile_id: int
    pages: list[PageSyncResult] = field(default_factory=list)
    removed_page_ids: list[str] = field(default_factory=list)

    def count(self, operation: str) -> int:
        return sum(1 for page in self.pages if page.operation == operation)

    @property
    def failed(self) -> int:
        return self.count("failed")

    def summary(self) -> dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "total_pages": len(self.pages),
            "inserted": self.count("inserted"),
            "updated": self.count("updated"),
            "unchanged": self.count("unchanged"),
            "failed": self.failed,
            "removed": len(self.removed_page_ids),
        }


class SyncOrchestrator:
    """
    Drives a full resync for one profile.

    Example:
        >>> orchestrator = SyncOrchestrator(db, ContentPipeline(backup_manager))
        >>> report = await orchestrator.sync_profile(profile)
    """

    def __init__(
        self,
        db: AsyncSession,
        pipeline: ContentPipeline,
        notion_factory: Callable[[str], NotionClient] = NotionClient,
        concurrency: Optional[int] = None,
    ):
        self.db = db
        self.pipeline = pipeline
        self.notion_factory = notion_factory
        self.concurrency = max(1, concurrency or settings.SYNC_PAGE_CONCURRENCY)

    async def sync_profile(self, profile: Profile) -> SyncReport:
        """
        Resynchronize every page of the profile's database.

        Raises:
            RequestValidationFailed: If the profile has no database or API key
            SourceApiError: If the database cannot be enumerated
        """
        if not profile.is_sync_configured:
            raise RequestValidationFailed(f"Profile {profile.id} has no Notion database configured")

        report = SyncReport(profile_id=profile.id)
        logger.info(f"Starting full sync for profile {profile.id} (database {profile.notion_database_id})")

        async with self.notion_factory(profile.notion_api_key) as notion:
            pages = [page async for page in notion.iter_database_pages(profile.notion_database_id)]
            logger.info(f"Profile {profile.id}: {len(pages)} pages to sync")

            semaphore = asyncio.Semaphore(self.concurrency)

            async def build(page: dict[str, Any]) -> NormalizedPage | Exception:
                async with semaphore:
                    try:
                        return await self.pipeline.build_page(notion, profile.id, page)
                    except Exception as e:
                        logger.error(f"Failed to process page {page.get('id')}: {e}", exc_info=True)
                        return e

            built = await asyncio.gather(*(build(page) for page in pages))

        seen_page_ids: set[str] = set()
        for page, outcome in zip(pages, built):
            page_id = canonical_id(page.get("id")) or ""
            seen_page_ids.add(page_id)

            if isinstance(outcome, Exception):
                report.pages.append(PageSyncResult(page_id=page_id, operation="failed", error=str(outcome)))
                continue

            try:
                async with self.db.begin_nested():
                    _, operation = await upsert_content_item(self.db, profile.id, outcome)
            except PersistenceError as e:
                logger.error(f"Failed to save page {page_id}: {e}")
                report.pages.append(
                    PageSyncResult(page_id=page_id, operation="failed", title=outcome.properties.title, error=str(e))
                )
                continue

            report.pages.append(
                PageSyncResult(page_id=page_id, operation=str(operation), title=outcome.properties.title)
            )

        report.removed_page_ids = await self._remove_missing(profile.id, seen_page_ids)

        await self.db.commit()
        logger.info(f"Full sync finished: {report.summary()}")
        return report

    async def _remove_missing(self, profile_id: int, seen_page_ids: set[str]) -> list[str]:
        """Mark active items whose page no longer exists in the database."""
        result = await self.db.execute(
            select(ContentItem).where(
                ContentItem.profile_id == profile_id,
                ContentItem.status == ContentStatus.ACTIVE,
                ContentItem.notion_page_id.is_not(None),
            )
        )
        removed = []
        for item in result.scalars():
            if item.notion_page_id not in seen_page_ids:
                await set_content_status(self.db, item, ContentStatus.REMOVED)
                removed.append(item.notion_page_id)

        if removed:
            logger.info(f"Profile {profile_id}: marked {len(removed)} pages as removed")
        return removed
