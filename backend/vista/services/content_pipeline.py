"""
Content pipeline shared by full sync and webhooks.

    Notion page ──► fetch block tree ──► BlockNormalizer ──► NormalizedPage ──► upsert

Both SyncOrchestrator and WebhookEventProcessor go through
``ContentPipeline.build_page`` and ``upsert_content_item``, so a given
page snapshot produces byte-identical content on either path.

Idempotency:
------------
The upsert assigns only attributes whose value actually changed. Re-syncing
an unchanged page emits no UPDATE, which leaves ``updated_at`` untouched and
keeps the page out of the next embedding job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vista.core.exceptions import PersistenceError
from vista.db.base import as_utc
from vista.models.content import ContentItem, ContentStatus
from vista.services.notion_client import NotionClient
from vista.services.processors.image_backup import ImageAssetBackupManager
from vista.services.processors.normalizer import BlockNormalizer
from vista.services.processors.properties import (
    PageProperties,
    canonical_id,
    extract_page_properties,
    parse_notion_timestamp,
)

logger = logging.getLogger(__name__)


class UpsertOperation(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"

    def __str__(self) -> str:
        return self.value


@dataclass
class NormalizedPage:
    """Everything the content store keeps about one page snapshot."""

    page_id: str
    notion_url: Optional[str]
    properties: PageProperties
    content: list[dict[str, Any]] = field(default_factory=list)
    cover_image_url: Optional[str] = None
    preview_image_url: Optional[str] = None
    notion_created_time: Optional[datetime] = None
    notion_last_edited_time: Optional[datetime] = None

    def column_values(self) -> dict[str, Any]:
        """ContentItem column values for this snapshot (status excluded)."""
        return {
            "notion_page_id": self.page_id,
            "notion_url": self.notion_url,
            "title": self.properties.title,
            "description": self.properties.description,
            "category": self.properties.category,
            "tags": list(self.properties.tags),
            "start_date": self.properties.start_date,
            "end_date": self.properties.end_date,
            "content": self.content,
            "cover_image_url": self.cover_image_url,
            "preview_image_url": self.preview_image_url,
            "notion_created_time": self.notion_created_time,
            "notion_last_edited_time": self.notion_last_edited_time,
        }


class ContentPipeline:
    """
    Normalizes Notion pages for one profile.

    Args:
        backup_manager: Asset backup used for media blocks and covers
    """

    def __init__(self, backup_manager: ImageAssetBackupManager):
        self.backup_manager = backup_manager
        self.normalizer = BlockNormalizer(backup_manager)

    async def build_page(self, notion: NotionClient, profile_id: int, page: dict[str, Any]) -> NormalizedPage:
        """
        Fetch a page's blocks and normalize the page.

        Raises:
            SourceApiError: If the page's top-level blocks cannot be fetched
        """
        raw_blocks = await notion.fetch_block_tree(page["id"])
        return await self.normalize_page(profile_id, page, raw_blocks)

    async def normalize_page(
        self,
        profile_id: int,
        page: dict[str, Any],
        raw_blocks: list[dict[str, Any]],
    ) -> NormalizedPage:
        """Normalize an already fetched page and block tree."""
        page_id = canonical_id(page["id"])
        # Fresh index scope for every page, never shared
        scope = self.backup_manager.new_scope(profile_id, page_id)

        blocks = await self.normalizer.normalize_blocks(raw_blocks, scope)
        cover_url = await self.backup_manager.backup_cover(page.get("cover"), scope)

        preview_url = next(
            (
                node.media_url
                for block in blocks
                for node in block.iter_tree()
                if node.type == "image" and node.media_url
            ),
            None,
        )

        logger.debug(f"Normalized page {page_id}: {len(blocks)} blocks, {scope.issued} media")

        return NormalizedPage(
            page_id=page_id,
            notion_url=page.get("url"),
            properties=extract_page_properties(page),
            content=[block.to_dict() for block in blocks],
            cover_image_url=cover_url,
            preview_image_url=preview_url,
            notion_created_time=parse_notion_timestamp(page.get("created_time")),
            notion_last_edited_time=parse_notion_timestamp(page.get("last_edited_time")),
        )


# ========================================
# Persistence
# ========================================


def _same_value(current: Any, new: Any) -> bool:
    if isinstance(current, datetime) or isinstance(new, datetime):
        return as_utc(current) == as_utc(new)
    return current == new


async def find_content_item(
    db: AsyncSession,
    profile_id: int,
    page_id: str,
    notion_url: Optional[str] = None,
) -> Optional[ContentItem]:
    """Look up by (profile, page id), then by (profile, URL)."""
    result = await db.execute(
        select(ContentItem).where(
            ContentItem.profile_id == profile_id,
            ContentItem.notion_page_id == canonical_id(page_id),
        )
    )
    item = result.scalar_one_or_none()
    if item is not None or not notion_url:
        return item

    result = await db.execute(
        select(ContentItem)
        .where(
            ContentItem.profile_id == profile_id,
            ContentItem.notion_url == notion_url,
            ContentItem.notion_page_id.is_(None),
        )
        .order_by(ContentItem.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_content_item(
    db: AsyncSession,
    profile_id: int,
    page: NormalizedPage,
) -> tuple[ContentItem, UpsertOperation]:
    """
    Insert or update the ContentItem for ``page`` and mark it active.

    Flushes but does not commit; the caller owns the transaction.

    Raises:
        PersistenceError: If the write fails
    """
    values = page.column_values()
    try:
        item = await find_content_item(db, profile_id, page.page_id, page.notion_url)

        if item is None:
            item = ContentItem(profile_id=profile_id, status=ContentStatus.ACTIVE, **values)
            db.add(item)
            await db.flush()
            return item, UpsertOperation.INSERTED

        changed = False
        for column, value in values.items():
            if not _same_value(getattr(item, column), value):
                setattr(item, column, value)
                changed = True
        if item.status != ContentStatus.ACTIVE:
            item.status = ContentStatus.ACTIVE
            changed = True

        if changed:
            await db.flush()
            return item, UpsertOperation.UPDATED
        return item, UpsertOperation.UNCHANGED

    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not save page {page.page_id}: {e}") from e


async def set_content_status(db: AsyncSession, item: ContentItem, status: ContentStatus) -> bool:
    """
    Change only the lifecycle status (updated_at follows via onupdate).

    Returns:
        True if the status changed

    Raises:
        PersistenceError: If the write fails
    """
    if item.status == status:
        return False
    item.status = status
    try:
        await db.flush()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Could not update status of content item {item.id}: {e}") from e
    return True
