"""
Content Models for the normalized content store.

This module defines:
1. ContentStatus (Enum) - Lifecycle of a synced page
2. ContentItem - One Notion page, normalized

Identity:
---------
A ContentItem is keyed by (profile_id, notion_page_id). ``notion_page_id`` is
stored in canonical form (lowercase, no hyphens) so that ids formatted
differently by the API, by webhooks and by users all hit the same row.
Rows synced before the page id was recorded are matched by ``notion_url``
and get their page id backfilled.
"""

import enum
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vista.core.config import settings
from vista.db.base import BaseModel, JSONType, String50, String255, String500, String2000


# ================================
# Enums
# ================================

class ContentStatus(str, enum.Enum):
    """
    Lifecycle of a content item.

    Status Flow:
    ------------
    ACTIVE ⇄ REMOVED

    - page.deleted, or moved out of the profile's database → REMOVED
    - page.undeleted, moved back in, or seen again by a sync → ACTIVE

    Removal never deletes the row; title, content and visitor counts are kept
    so an undelete restores the page as it was.
    """

    ACTIVE = "active"
    REMOVED = "removed"

    def __str__(self) -> str:
        return self.value


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values (``"active"``) rather than member names."""
    return [member.value for member in enum_cls]


# ================================
# ContentItem Model
# ================================

class ContentItem(BaseModel):
    """
    The normalized representation of one synced Notion page.

    ``content`` holds the ContentBlock tree produced by
    vista.services.processors.normalizer, serialized as JSON.
    """

    __tablename__ = "content_items"

    profile_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning profile"
    )

    # ================================
    # Source Identification
    # ================================

    notion_page_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Canonical Notion page id (lowercase, no hyphens)"
    )

    notion_url: Mapped[str | None] = mapped_column(
        String2000,
        nullable=True,
        comment="Notion page URL; fallback upsert key"
    )

    # ================================
    # Page Properties
    # ================================

    title: Mapped[str] = mapped_column(
        String500,
        nullable=False,
        default="Untitled",
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[str | None] = mapped_column(String255, nullable=True)

    tags: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )

    start_date: Mapped[str | None] = mapped_column(
        String50,
        nullable=True,
        comment="Date property as given by Notion (ISO date or datetime)"
    )

    end_date: Mapped[str | None] = mapped_column(String50, nullable=True)

    # ================================
    # Normalized Content
    # ================================

    content: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Ordered ContentBlock tree"
    )

    cover_image_url: Mapped[str | None] = mapped_column(String2000, nullable=True)

    preview_image_url: Mapped[str | None] = mapped_column(
        String2000,
        nullable=True,
        comment="First image of the page, in document order"
    )

    notion_created_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    notion_last_edited_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ================================
    # Lifecycle & Counters
    # ================================

    status: Mapped[ContentStatus] = mapped_column(
        Enum(
            ContentStatus,
            name="content_status",
            values_callable=enum_values,
            native_enum=False,
            length=20,
        ),
        nullable=False,
        default=ContentStatus.ACTIVE,
        index=True,
    )

    visitor_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # ================================
    # Semantic Search
    # ================================

    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.EMBEDDING_DIMENSION),
        nullable=True,
    )
    # Written by the embedding worker without bumping updated_at,
    # otherwise every embedded item would be re-selected by the next job.

    embedded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            'profile_id',
            'notion_page_id',
            name='uq_profile_notion_page'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"ContentItem(id={self.id}, profile_id={self.profile_id}, "
            f"page={self.notion_page_id}, status={self.status})"
        )

    @property
    def is_active(self) -> bool:
        return self.status == ContentStatus.ACTIVE

    def embedding_text(self) -> str:
        """Text fed to the embedding model: title, description, category, tags."""
        parts = [self.title or "", self.description or "", self.category or ""]
        parts.extend(str(tag) for tag in (self.tags or []))
        return " ".join(part.strip() for part in parts if part and part.strip())
