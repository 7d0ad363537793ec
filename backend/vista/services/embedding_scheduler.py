"""
Incremental embedding jobs.

Scheduling:
-----------
For a profile, find the most recent COMPLETED job. Its ``started_at`` is the
cutoff: active items with ``updated_at > cutoff`` need (re)embedding. With
no completed job, every active item does. The new job is created PENDING
with ``started_at`` = the moment of selection, so anything edited while it
runs is picked up by the following job.

Running:
--------
EmbeddingJobRunner walks ``job.item_ids`` from ``items_processed`` onwards,
in batches of EMBEDDING_PROGRESS_BATCH_SIZE. Each batch's embeddings and the
new ``items_processed`` are committed together, so after a crash the counter
reflects only confirmed work and a re-run resumes where it stopped.
Ids that failed are checkpointed on ``job.failed_item_ids`` in the same
commit, so the final status of a resumed job still accounts for them.
Embedding an item twice is harmless.

Final status:
-------------
- no failures            → completed
- some items failed      → partial_success
- every item failed      → error
- unexpected exception   → error (job.error holds the message)
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vista.core.config import settings
from vista.core.exceptions import JobError, TenantNotFoundError
from vista.db.base import as_utc, utc_now
from vista.models.content import ContentItem, ContentStatus
from vista.models.embedding import EmbeddingJob, EmbeddingJobStatus
from vista.models.profile import Profile
from vista.services.processors.embedder import EmbeddingService

logger = logging.getLogger(__name__)


class EmbeddingJobScheduler:
    """Creates embedding jobs covering what changed since the last completed one."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def last_completed_job(self, profile_id: int) -> Optional[EmbeddingJob]:
        result = await self.db.execute(
            select(EmbeddingJob)
            .where(
                EmbeddingJob.profile_id == profile_id,
                EmbeddingJob.status == EmbeddingJobStatus.COMPLETED,
            )
            .order_by(EmbeddingJob.started_at.desc(), EmbeddingJob.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def select_item_ids(self, profile_id: int, cutoff: Optional[datetime]) -> list[int]:
        """Ids of active items updated strictly after ``cutoff`` (all when None)."""
        query = select(ContentItem.id).where(
            ContentItem.profile_id == profile_id,
            ContentItem.status == ContentStatus.ACTIVE,
        )
        if cutoff is not None:
            query = query.where(ContentItem.updated_at > cutoff)
        result = await self.db.execute(query.order_by(ContentItem.id))
        return list(result.scalars())

    async def create_job(self, profile_id: int) -> EmbeddingJob:
        """
        Snapshot the items needing embeddings into a new PENDING job.

        Raises:
            TenantNotFoundError: If the profile does not exist
        """
        if await self.db.get(Profile, profile_id) is None:
            raise TenantNotFoundError(f"Profile {profile_id} not found")

        last_job = await self.last_completed_job(profile_id)
        cutoff = as_utc(last_job.started_at) if last_job else None

        selected_at = utc_now()
        item_ids = await self.select_item_ids(profile_id, cutoff)

        job = EmbeddingJob(
            profile_id=profile_id,
            status=EmbeddingJobStatus.PENDING,
            started_at=selected_at,
            total_items=len(item_ids),
            items_processed=0,
            item_ids=item_ids,
        )
        self.db.add(job)
        await self.db.commit()

        logger.info(
            f"Created embedding job {job.id} for profile {profile_id}: {len(item_ids)} items "
            f"(cutoff={cutoff.isoformat() if cutoff else 'none'})"
        )
        return job


class EmbeddingJobRunner:
    """Processes one embedding job to a terminal status."""

    def __init__(
        self,
        db: AsyncSession,
        embedder: EmbeddingService,
        progress_batch_size: Optional[int] = None,
    ):
        self.db = db
        self.embedder = embedder
        self.progress_batch_size = max(1, progress_batch_size or settings.EMBEDDING_PROGRESS_BATCH_SIZE)

    async def run(self, job_id: int) -> EmbeddingJob:
        """
        Run (or resume) a job.

        Raises:
            JobError: If the job does not exist, is already terminal, or
                fails fatally (the job is marked ``error`` first)
        """
        job = await self.db.get(EmbeddingJob, job_id)
        if job is None:
            raise JobError(f"Embedding job {job_id} not found")
        if job.is_terminal:
            raise JobError(f"Embedding job {job_id} is already {job.status}")

        if job.status == EmbeddingJobStatus.PENDING:
            job.transition_to(EmbeddingJobStatus.PROCESSING)
            await self.db.commit()

        remaining = job.remaining_item_ids

        try:
            for start in range(0, len(remaining), self.progress_batch_size):
                batch = remaining[start:start + self.progress_batch_size]
                failures = await self._process_batch(batch)
                job.record_progress(job.items_processed + len(batch), failed_item_ids=failures)
                await self.db.commit()
                logger.info(f"Embedding job {job_id}: {job.items_processed}/{job.total_items}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            await self._fail(job_id, f"{type(e).__name__}: {e}")
            raise JobError(f"Embedding job {job_id} failed: {e}") from e

        # Failures of earlier (interrupted) runs of this job count too
        failures = list(job.failed_item_ids or [])
        if job.total_items and len(failures) >= job.total_items:
            job.transition_to(
                EmbeddingJobStatus.ERROR,
                error=f"All {len(failures)} items failed to embed",
            )
        elif failures:
            job.transition_to(
                EmbeddingJobStatus.PARTIAL_SUCCESS,
                error=f"{len(failures)} items failed to embed: {failures[:20]}",
            )
        else:
            job.transition_to(EmbeddingJobStatus.COMPLETED)

        await self.db.commit()
        logger.info(f"Embedding job {job_id} finished with status {job.status}")
        return job

    async def _fail(self, job_id: int, message: str) -> None:
        job = await self.db.get(EmbeddingJob, job_id)
        if job is not None and not job.is_terminal:
            job.transition_to(EmbeddingJobStatus.ERROR, error=message)
            await self.db.commit()

    async def _process_batch(self, item_ids: list[int]) -> list[int]:
        """Embed one batch; returns the ids that failed."""
        result = await self.db.execute(select(ContentItem).where(ContentItem.id.in_(item_ids)))
        items = {item.id: item for item in result.scalars()}

        failures = [item_id for item_id in item_ids if item_id not in items]
        to_embed: list[tuple[int, str]] = []
        for item_id in item_ids:
            item = items.get(item_id)
            if item is None:
                continue
            text = item.embedding_text()
            if text:
                to_embed.append((item_id, text))
            else:
                logger.info(f"Content item {item_id} has no text to embed, skipping")

        if not to_embed:
            return failures

        try:
            vectors = await self.embedder.embed_texts_batch([text for _, text in to_embed])
            embedded = list(zip([item_id for item_id, _ in to_embed], vectors))
        except Exception as e:
            logger.warning(f"Batch embedding failed, retrying items one by one: {e}")
            embedded = []
            for item_id, text in to_embed:
                try:
                    embedded.append((item_id, await self.embedder.embed_text(text)))
                except Exception as item_error:
                    logger.warning(f"Embedding failed for content item {item_id}: {item_error}")
                    failures.append(item_id)

        embedded_at = utc_now()
        for item_id, vector in embedded:
            # updated_at is set to itself so onupdate does not fire
            await self.db.execute(
                update(ContentItem)
                .where(ContentItem.id == item_id)
                .values(
                    embedding=vector,
                    embedded_at=embedded_at,
                    updated_at=ContentItem.updated_at,
                )
                .execution_options(synchronize_session=False)
            )

        return failures
