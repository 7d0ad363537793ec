"""
Notion webhook event processing.

One event at a time: resolve the profile, then apply the page lifecycle.

    created / properties_updated / content_updated
        → re-fetch the page, run the shared ContentPipeline, upsert (active)
    deleted
        → status = removed, nothing else touched
    moved
        → re-fetch to find the current parent;
          gone (object_not_found), trashed, or outside the profile's
          database → removed; inside it → re-normalized and active
          and any other profile still holding it active is re-checked
    undeleted
        → re-normalized and active if fetchable, else status flipped only

Delivery is at-least-once. Every transition is an upsert or a status write
keyed by (profile, page id), so replays converge on the same row.

Responses:
----------
Business outcomes (including "no matching tenant" and Notion API errors)
answer ``status: success`` so Notion does not retry. Only malformed
requests and unexpected exceptions produce non-success responses, and those
are raised to the route.
"""

import logging
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from vista.core.exceptions import SourceApiError, TenantNotFoundError
from vista.models.content import ContentStatus
from vista.models.profile import Profile
from vista.models.webhook import WebhookVerification
from vista.schemas.webhook import (
    REFRESH_ACTIONS,
    PageAction,
    PageEvent,
    UnknownEvent,
    UrlVerificationEvent,
    VerificationTokenEvent,
    WebhookOperation,
    WebhookResult,
    parse_webhook_event,
)
from vista.services.content_pipeline import (
    ContentPipeline,
    UpsertOperation,
    find_content_item,
    set_content_status,
    upsert_content_item,
)
from vista.services.notion_client import NotionClient
from vista.services.processors.properties import canonical_id, parent_database_id
from vista.services.tenant_resolver import TenantResolver

logger = logging.getLogger(__name__)

_UPSERT_TO_WEBHOOK = {
    UpsertOperation.INSERTED: WebhookOperation.INSERTED,
    UpsertOperation.UPDATED: WebhookOperation.UPDATED,
    UpsertOperation.UNCHANGED: WebhookOperation.UNCHANGED,
}


def _is_trashed(page: dict[str, Any]) -> bool:
    return bool(page.get("archived") or page.get("in_trash"))


class WebhookEventProcessor:
    """
    Applies Notion webhook events to the content store.

    Example:
        >>> processor = WebhookEventProcessor(db, ContentPipeline(backup_manager))
        >>> body = await processor.process(payload, tenant_ref=request.query_params.get("user_id"))
    """

    def __init__(
        self,
        db: AsyncSession,
        pipeline: ContentPipeline,
        notion_factory: Callable[[str], NotionClient] = NotionClient,
    ):
        self.db = db
        self.pipeline = pipeline
        self.notion_factory = notion_factory
        self.resolver = TenantResolver(db)

    async def process(self, payload: Any, tenant_ref: Optional[str] = None) -> dict[str, Any]:
        """Handle one webhook delivery and return the response body."""
        event = parse_webhook_event(payload)

        if isinstance(event, UrlVerificationEvent):
            await self.record_verification(event.challenge, "url_verification", tenant_ref, payload)
            return {"challenge": event.challenge}

        if isinstance(event, VerificationTokenEvent):
            await self.record_verification(event.verification_token, "verification_token", tenant_ref, payload)
            return WebhookResult(
                message="Verification token received",
                operation=WebhookOperation.IGNORED,
            ).to_response()

        if isinstance(event, UnknownEvent):
            logger.info(f"Ignoring webhook event type={event.type!r}: {event.reason}")
            return WebhookResult(
                message=f"Event type {event.type or 'unknown'} ignored",
                operation=WebhookOperation.IGNORED,
            ).to_response()

        result = await self.handle_page_event(event, tenant_ref)
        return result.to_response()

    # ========================================
    # Verification
    # ========================================

    async def record_verification(
        self,
        token: str,
        challenge_type: str,
        tenant_ref: Optional[str],
        payload: Any,
    ) -> WebhookVerification:
        """Store the token; attach it to the profile when one can be resolved."""
        profile: Optional[Profile] = None
        if tenant_ref:
            try:
                profile = await self.resolver.resolve_explicit(tenant_ref)
            except TenantNotFoundError:
                logger.warning(f"Verification request for unknown tenant {tenant_ref!r}")

        verification = WebhookVerification(
            profile_id=profile.id if profile else None,
            verification_token=token,
            challenge_type=challenge_type,
            payload=payload if isinstance(payload, dict) else None,
        )
        self.db.add(verification)
        if profile is not None:
            profile.notion_webhook_verification_token = token

        await self.db.commit()
        logger.info(
            f"Recorded {challenge_type} for profile {profile.id if profile else 'unresolved'}"
        )
        return verification

    # ========================================
    # Page events
    # ========================================

    async def handle_page_event(self, event: PageEvent, tenant_ref: Optional[str] = None) -> WebhookResult:
        page_id = canonical_id(event.page_id)

        try:
            profile = await self.resolver.resolve(
                tenant_ref=tenant_ref,
                database_id=event.parent_database_id,
                page_id=event.page_id,
            )
        except TenantNotFoundError as e:
            logger.info(f"No tenant for {event.type} on page {page_id}: {e}")
            if event.action is PageAction.MOVED:
                released = await self._release_moved_page(event.page_id)
                if released:
                    return WebhookResult(
                        message=f"Page moved away; removed for profiles {released}",
                        page_id=page_id,
                        operation=WebhookOperation.REMOVED,
                    )
            return WebhookResult(
                message="No matching tenant, event acknowledged",
                page_id=page_id,
                operation=WebhookOperation.IGNORED,
            )

        # A rollback below expires the profile; keep its id as a plain value
        profile_id = profile.id

        try:
            if event.action in REFRESH_ACTIONS:
                operation, message = await self._refresh(profile, event.page_id)
            elif event.action is PageAction.DELETED:
                operation, message = await self._remove(profile, page_id, "Page deleted")
            elif event.action is PageAction.MOVED:
                operation, message = await self._moved(profile, event.page_id)
            else:
                operation, message = await self._undeleted(profile, event.page_id)
        except SourceApiError as e:
            await self.db.rollback()
            logger.warning(f"Notion API error handling {event.type} for page {page_id}: {e}")
            return WebhookResult(
                message=f"Source API error, event acknowledged: {e}",
                page_id=page_id,
                user_id=profile_id,
                operation=WebhookOperation.IGNORED,
            )

        await self.db.commit()
        if event.action is PageAction.MOVED:
            released = await self._release_moved_page(event.page_id, keep_profile_id=profile_id)
            if released:
                message = f"{message}; removed for profiles {released}"
        logger.info(f"Webhook {event.type} page={page_id} profile={profile_id} operation={operation.value}")
        return WebhookResult(message=message, page_id=page_id, user_id=profile_id, operation=operation)

    def _belongs_to(self, profile: Profile, page: dict[str, Any]) -> bool:
        return parent_database_id(page) == canonical_id(profile.notion_database_id)

    async def _fetch_page(self, notion: NotionClient, page_id: str) -> dict[str, Any]:
        return await notion.retrieve_page(page_id)

    async def _save_page(
        self,
        profile: Profile,
        notion: NotionClient,
        page: dict[str, Any],
    ) -> UpsertOperation:
        normalized = await self.pipeline.build_page(notion, profile.id, page)
        _, operation = await upsert_content_item(self.db, profile.id, normalized)
        return operation

    async def _refresh(self, profile: Profile, page_id: str) -> tuple[WebhookOperation, str]:
        if not profile.notion_api_key:
            return WebhookOperation.IGNORED, "Profile has no Notion API key"

        async with self.notion_factory(profile.notion_api_key) as notion:
            page = await self._fetch_page(notion, page_id)

            if _is_trashed(page):
                return await self._remove(profile, canonical_id(page_id), "Page is in trash")
            if not self._belongs_to(profile, page):
                return await self._remove(profile, canonical_id(page_id), "Page is not in the profile's database")

            operation = await self._save_page(profile, notion, page)

        return _UPSERT_TO_WEBHOOK[operation], f"Page {operation.value}"

    async def _remove(self, profile: Profile, page_id: str, reason: str) -> tuple[WebhookOperation, str]:
        item = await find_content_item(self.db, profile.id, page_id)
        if item is None:
            return WebhookOperation.IGNORED, f"{reason}; no stored content"

        changed = await set_content_status(self.db, item, ContentStatus.REMOVED)
        if not changed:
            return WebhookOperation.UNCHANGED, f"{reason}; already removed"
        return WebhookOperation.REMOVED, f"{reason}; marked as removed"

    async def _restore(self, profile: Profile, notion: NotionClient, page: dict[str, Any]) -> tuple[WebhookOperation, str]:
        existing = await find_content_item(self.db, profile.id, page["id"], page.get("url"))
        was_removed = existing is not None and not existing.is_active

        operation = await self._save_page(profile, notion, page)
        if was_removed:
            return WebhookOperation.RESTORED, "Page restored"
        return _UPSERT_TO_WEBHOOK[operation], f"Page {operation.value}"

    async def _moved(self, profile: Profile, page_id: str) -> tuple[WebhookOperation, str]:
        canonical = canonical_id(page_id)
        if not profile.notion_api_key:
            return WebhookOperation.IGNORED, "Profile has no Notion API key"

        async with self.notion_factory(profile.notion_api_key) as notion:
            try:
                page = await self._fetch_page(notion, page_id)
            except SourceApiError as e:
                if e.is_object_not_found:
                    return await self._remove(profile, canonical, "Moved page is no longer accessible")
                raise

            if _is_trashed(page):
                return await self._remove(profile, canonical, "Moved page is in trash")
            if not self._belongs_to(profile, page):
                return await self._remove(profile, canonical, "Page moved out of the profile's database")

            return await self._restore(profile, notion, page)

    async def _release_moved_page(self, page_id: str, keep_profile_id: Optional[int] = None) -> list[int]:
        """
        Re-check every other profile still holding ``page_id`` as active.

        A page moved between two tenants' databases is announced once, for
        its new parent; the previous holder only learns of it here.

        Returns:
            Ids of the profiles whose row was marked removed
        """
        released: list[int] = []
        holder_ids = await self.resolver.profile_ids_holding_page(page_id, active_only=True)
        for holder_id in holder_ids:
            if holder_id == keep_profile_id:
                continue
            # Loaded per holder since a rollback expires earlier instances
            holder = await self.db.get(Profile, holder_id)
            if holder is None:
                continue
            try:
                operation, _ = await self._moved(holder, page_id)
            except SourceApiError as e:
                await self.db.rollback()
                logger.warning(f"Notion API error re-checking moved page {canonical_id(page_id)} for profile {holder_id}: {e}")
                continue
            await self.db.commit()
            if operation is WebhookOperation.REMOVED:
                released.append(holder_id)
        return released

    async def _undeleted(self, profile: Profile, page_id: str) -> tuple[WebhookOperation, str]:
        canonical = canonical_id(page_id)

        page: Optional[dict[str, Any]] = None
        if profile.notion_api_key:
            async with self.notion_factory(profile.notion_api_key) as notion:
                try:
                    page = await self._fetch_page(notion, page_id)
                except SourceApiError as e:
                    logger.info(f"Undeleted page {canonical} not fetchable, flipping status only: {e}")

                if page is not None:
                    if _is_trashed(page) or not self._belongs_to(profile, page):
                        return WebhookOperation.IGNORED, "Undeleted page is not in the profile's database"
                    try:
                        return await self._restore(profile, notion, page)
                    except SourceApiError as e:
                        logger.info(f"Undeleted page {canonical} blocks not fetchable, flipping status only: {e}")

        item = await find_content_item(self.db, profile.id, canonical)
        if item is None:
            return WebhookOperation.IGNORED, "Page undeleted; no stored content"
        if await set_content_status(self.db, item, ContentStatus.ACTIVE):
            return WebhookOperation.RESTORED, "Page restored (status only)"
        return WebhookOperation.UNCHANGED, "Page already active"
