"""
Webhook verification audit log.

Notion proves ownership of a webhook subscription by posting a token to the
endpoint. Each such request is recorded here, even when no profile could be
resolved for it, so the token can be recovered from the admin side.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from vista.db.base import BaseModel, JSONType, String50, String500, utc_now


class WebhookVerification(BaseModel):
    __tablename__ = "webhook_verifications"

    profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Resolved profile, NULL when the request could not be attributed"
    )

    verification_token: Mapped[str] = mapped_column(
        String500,
        nullable=False,
        comment="Challenge string or subscription verification token"
    )

    challenge_type: Mapped[str] = mapped_column(
        String50,
        nullable=False,
        comment="url_verification or verification_token"
    )

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
