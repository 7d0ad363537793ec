"""
Notion webhook endpoint.

One URL serves every profile. Notion can be configured with
``?user_id=<profile id or slug>`` to pin a subscription to a profile;
otherwise the profile is resolved from the event payload.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse

from vista.api.deps import NotionFactory, Pipeline
from vista.db.deps import DBSession
from vista.services.webhook_processor import WebhookEventProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/notion",
    summary="Receive a Notion webhook event",
    description=(
        "Handles url_verification challenges, subscription verification tokens "
        "and page lifecycle events. Business outcomes always answer 200."
    ),
)
async def notion_webhook(
    request: Request,
    db: DBSession,
    pipeline: Pipeline,
    notion_factory: NotionFactory,
    user_id: Optional[str] = Query(None, description="Profile id or URL slug"),
):
    """Process one webhook delivery."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"status": "error", "message": "Request body must be JSON"},
        )

    processor = WebhookEventProcessor(db, pipeline, notion_factory=notion_factory)
    try:
        body = await processor.process(payload, tenant_ref=user_id)
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        await db.rollback()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": "Internal error while processing event"},
        )

    return JSONResponse(content=body)
