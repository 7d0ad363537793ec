"""
Profile (tenant) model.

A profile owns exactly one Notion database and one content namespace. The
webhook endpoint is shared by all profiles, so inbound events are routed by
comparing the event's parent database id against ``notion_database_id``
(see vista.services.tenant_resolver).
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vista.db.base import BaseModel, String100, String255, String500


class Profile(BaseModel):
    """
    A tenant of the content store.

    Fields:
    -------
    - url_param: public slug, also accepted as ``?user_id=`` on webhook URLs
    - notion_database_id: the one source database synced for this profile
    - notion_api_key: integration secret used for every Notion call
    - notion_webhook_verification_token: latest token from a subscription
      verification request
    """

    __tablename__ = "profiles"

    url_param: Mapped[str | None] = mapped_column(
        String100,
        unique=True,
        nullable=True,
        comment="Public URL slug for the profile"
    )

    display_name: Mapped[str | None] = mapped_column(
        String255,
        nullable=True,
        comment="Human readable name"
    )

    notion_database_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Notion database id as entered by the user (hyphens optional)"
    )

    notion_api_key: Mapped[str | None] = mapped_column(
        String255,
        nullable=True,
        comment="Notion integration secret"
    )

    notion_webhook_verification_token: Mapped[str | None] = mapped_column(
        String500,
        nullable=True,
        comment="Latest webhook verification token received for this profile"
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"Profile(id={self.id}, url_param={self.url_param!r})"

    @property
    def is_sync_configured(self) -> bool:
        """True when both the database id and API key are set."""
        return bool(self.notion_database_id and self.notion_api_key)
