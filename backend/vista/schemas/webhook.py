"""
Pydantic schemas for inbound Notion webhook payloads and our responses.

Payload shapes recognized:
--------------------------
- {"type": "url_verification", "challenge": "..."}
- {"verification_token": "..."}  (Notion subscription verification)
- {"type": "page.<action>", "entity": {"id", "type": "page"},
   "data": {"parent": {"id", "type"}, "updated_properties"?, "updated_blocks"?}}

Anything else parses to UnknownEvent and is acknowledged without effect.
"""

import enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class PageAction(str, enum.Enum):
    CREATED = "created"
    PROPERTIES_UPDATED = "properties_updated"
    CONTENT_UPDATED = "content_updated"
    DELETED = "deleted"
    MOVED = "moved"
    UNDELETED = "undeleted"


# Events that mean "fetch the page again and re-normalize it"
REFRESH_ACTIONS = frozenset({
    PageAction.CREATED,
    PageAction.PROPERTIES_UPDATED,
    PageAction.CONTENT_UPDATED,
})


class UrlVerificationEvent(BaseModel):
    kind: Literal["url_verification"] = "url_verification"
    challenge: str


class VerificationTokenEvent(BaseModel):
    kind: Literal["verification_token"] = "verification_token"
    verification_token: str


class EventParent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: Optional[str] = None


class EventEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str = "page"


class EventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parent: EventParent = Field(default_factory=EventParent)
    updated_properties: list[Any] = Field(default_factory=list)
    updated_blocks: list[Any] = Field(default_factory=list)


class PageEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: Literal["page"] = "page"
    type: str
    action: PageAction
    entity: EventEntity
    data: EventData = Field(default_factory=EventData)
    id: Optional[str] = None
    timestamp: Optional[str] = None

    @property
    def page_id(self) -> str:
        return self.entity.id

    @property
    def parent_database_id(self) -> Optional[str]:
        """Parent id when the parent is a database (or the type is unknown)."""
        parent = self.data.parent
        if parent.type in (None, "database", "database_id", "data_source"):
            return parent.id
        return None


class UnknownEvent(BaseModel):
    kind: Literal["unknown"] = "unknown"
    type: Optional[str] = None
    reason: str = "unrecognized payload"


WebhookEvent = Union[UrlVerificationEvent, VerificationTokenEvent, PageEvent, UnknownEvent]


def parse_webhook_event(payload: Any) -> WebhookEvent:
    """
    Turn a raw webhook body into one of the known event variants.

    Never raises; malformed payloads become UnknownEvent.
    """
    if not isinstance(payload, dict):
        return UnknownEvent(reason="payload is not a JSON object")

    event_type = payload.get("type")

    if event_type == "url_verification" and isinstance(payload.get("challenge"), str):
        return UrlVerificationEvent(challenge=payload["challenge"])

    if event_type is None and isinstance(payload.get("verification_token"), str):
        return VerificationTokenEvent(verification_token=payload["verification_token"])

    if isinstance(event_type, str) and event_type.startswith("page."):
        action_name = event_type.split(".", 1)[1]
        try:
            action = PageAction(action_name)
        except ValueError:
            return UnknownEvent(type=event_type, reason=f"unsupported page action {action_name!r}")
        try:
            return PageEvent.model_validate({**payload, "action": action})
        except ValidationError as e:
            return UnknownEvent(type=event_type, reason=f"malformed page event: {e.error_count()} errors")

    return UnknownEvent(type=event_type if isinstance(event_type, str) else None)


# ========================================
# Responses
# ========================================


class WebhookOperation(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    RESTORED = "restored"
    IGNORED = "ignored"


class WebhookResult(BaseModel):
    """Outcome of processing one page event."""

    status: Literal["success", "error"] = "success"
    message: str
    page_id: Optional[str] = None
    user_id: Optional[int] = None
    operation: Optional[WebhookOperation] = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
