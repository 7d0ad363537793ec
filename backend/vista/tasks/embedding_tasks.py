"""
Celery tasks for embedding jobs.

The job row is created by the API (EmbeddingJobScheduler.create_job); this
task runs it. Jobs are resumable, so a redelivered task simply continues
from ``items_processed``.
"""

import logging
from typing import Any, Optional

from celery import Task
from sqlalchemy.ext.asyncio import async_sessionmaker

from vista.core.exceptions import JobError
from vista.db.session import AsyncSessionLocal
from vista.services.embedding_scheduler import EmbeddingJobRunner
from vista.services.processors.embedder import EmbeddingService, get_embedding_service
from vista.tasks.base import run_async
from vista.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


class EmbeddingTask(Task):
    """Base task: ack after completion so a lost worker's job is redelivered."""

    acks_late = True
    reject_on_worker_lost = True


async def run_job(
    job_id: int,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    embedder: Optional[EmbeddingService] = None,
) -> dict[str, Any]:
    """Run one embedding job to a terminal status."""
    embedder = embedder or await get_embedding_service()

    async with session_factory() as db:
        try:
            job = await EmbeddingJobRunner(db, embedder).run(job_id)
        except JobError as e:
            logger.error(f"Embedding job {job_id} failed: {e}")
            return {'success': False, 'job_id': job_id, 'error': str(e)}

    return {
        'success': True,
        'job_id': job.id,
        'status': job.status.value,
        'items_processed': job.items_processed,
        'total_items': job.total_items,
    }


@celery_app.task(
    base=EmbeddingTask,
    name='embedding.run_embedding_job',
    bind=True,
)
def run_embedding_job(self, job_id: int) -> dict:
    """
    Compute embeddings for every item selected into the job.

    Returns:
        {'success': bool, 'job_id', 'status', 'items_processed', 'total_items'}
        or {'success': False, 'job_id', 'error'}
    """
    logger.info(f"Running embedding job {job_id}")
    return run_async(run_job(job_id))
