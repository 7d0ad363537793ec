"""
Full resync trigger.

Stores the database id and API key on the profile, then queues the sync
task. The sync itself runs in a Celery worker under the profile's lock.
"""

import logging

from fastapi import APIRouter, status

from vista.db.deps import DBSession
from vista.schemas.api import SyncRequest, SyncResponse
from vista.services.tenant_resolver import TenantResolver
from vista.tasks.sync_tasks import sync_profile_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "",
    response_model=SyncResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a full resync",
    description="Save the Notion credentials on the profile and queue a full sync of its database.",
)
async def trigger_sync(request: SyncRequest, db: DBSession):
    """Queue a full sync for the profile named by ``tenantId``."""
    profile = await TenantResolver(db).resolve_explicit(request.tenant_id)

    profile.notion_database_id = request.source_database_id
    profile.notion_api_key = request.source_api_key
    await db.commit()

    task = sync_profile_database.delay(profile.id)
    logger.info(f"Queued full sync for profile {profile.id} (task {task.id})")

    return SyncResponse(
        success=True,
        message=f"Sync started for database {request.source_database_id}",
        task_id=task.id,
    )
