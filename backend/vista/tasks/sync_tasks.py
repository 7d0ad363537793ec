"""
Celery tasks for full Notion resyncs.
"""

import logging
from typing import Any, Callable, Optional

import httpx
from celery import Task
from sqlalchemy.ext.asyncio import async_sessionmaker

from vista.core.config import settings
from vista.core.exceptions import RequestValidationFailed, SourceApiError
from vista.db.redis import SyncAlreadyRunningError, profile_sync_lock
from vista.db.session import AsyncSessionLocal
from vista.models.profile import Profile
from vista.services.content_pipeline import ContentPipeline
from vista.services.notion_client import NotionClient
from vista.services.processors.image_backup import ImageAssetBackupManager
from vista.services.storage import AssetStorage, get_asset_storage
from vista.services.sync_orchestrator import SyncOrchestrator
from vista.tasks.base import run_async
from vista.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

# Seconds to wait before retrying when another sync holds the profile lock
LOCK_RETRY_COUNTDOWN = 30


class SyncTask(Task):
    """Base task: retry transient Notion failures with backoff."""

    autoretry_for = (SourceApiError,)
    retry_kwargs = {'max_retries': 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True


async def sync_profile(
    profile_id: int,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    storage: Optional[AssetStorage] = None,
    notion_factory: Callable[[str], NotionClient] = NotionClient,
) -> dict[str, Any]:
    """Run a full sync for one profile and return its summary."""
    async with session_factory() as db:
        profile = await db.get(Profile, profile_id)
        if profile is None:
            logger.error(f"Profile {profile_id} not found, skipping sync")
            return {'success': False, 'profile_id': profile_id, 'error': 'Profile not found'}

        async with httpx.AsyncClient(follow_redirects=True, timeout=settings.ASSET_DOWNLOAD_TIMEOUT) as http:
            backup_manager = ImageAssetBackupManager(storage or get_asset_storage(), http)
            orchestrator = SyncOrchestrator(db, ContentPipeline(backup_manager), notion_factory=notion_factory)
            try:
                report = await orchestrator.sync_profile(profile)
            except RequestValidationFailed as e:
                return {'success': False, 'profile_id': profile_id, 'error': str(e)}

    return {'success': True, **report.summary()}


@celery_app.task(
    base=SyncTask,
    name='sync.sync_profile_database',
    bind=True,
)
def sync_profile_database(self, profile_id: int) -> dict:
    """
    Full resync of a profile's Notion database.

    Holds the profile's Redis lock for the whole run; if another sync has
    it, the task is re-queued instead of running concurrently.

    Returns:
        {'success': bool, 'profile_id', 'total_pages', 'inserted', 'updated',
         'unchanged', 'failed', 'removed'}
    """
    logger.info(f"Full sync requested for profile {profile_id}")
    try:
        with profile_sync_lock(profile_id):
            return run_async(sync_profile(profile_id))
    except SyncAlreadyRunningError as e:
        logger.info(f"{e}; retrying in {LOCK_RETRY_COUNTDOWN}s")
        raise self.retry(exc=e, countdown=LOCK_RETRY_COUNTDOWN, max_retries=20)
