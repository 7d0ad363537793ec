"""
Embedding job endpoints.

- POST /embeddings/jobs      create a job for what changed since the last completed one
- POST /embeddings/generate  queue a job for the worker
- GET  /embeddings/jobs/{id} job status, polled by the admin UI
"""

import logging

from fastapi import APIRouter, status

from vista.core.exceptions import JobError, ResourceNotFoundError
from vista.db.deps import DBSession
from vista.models.embedding import EmbeddingJob
from vista.schemas.api import (
    EmbeddingGenerateRequest,
    EmbeddingGenerateResponse,
    EmbeddingJobCreateRequest,
    EmbeddingJobResponse,
)
from vista.services.embedding_scheduler import EmbeddingJobScheduler
from vista.services.tenant_resolver import TenantResolver
from vista.tasks.embedding_tasks import run_embedding_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/embeddings", tags=["Embeddings"])


async def _get_job(db, job_id: int) -> EmbeddingJob:
    job = await db.get(EmbeddingJob, job_id)
    if job is None:
        raise ResourceNotFoundError(f"Embedding job {job_id} not found")
    return job


@router.post(
    "/jobs",
    response_model=EmbeddingJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an embedding job",
)
async def create_embedding_job(request: EmbeddingJobCreateRequest, db: DBSession):
    """Select the items needing embeddings into a new pending job."""
    profile = await TenantResolver(db).resolve_explicit(request.tenant_id)
    job = await EmbeddingJobScheduler(db).create_job(profile.id)
    return EmbeddingJobResponse.model_validate(job)


@router.post(
    "/generate",
    response_model=EmbeddingGenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Run an embedding job",
)
async def generate_embeddings(request: EmbeddingGenerateRequest, db: DBSession):
    """Queue the job for the embedding worker."""
    job = await _get_job(db, request.job_id)
    if job.is_terminal:
        raise JobError(f"Embedding job {job.id} is already {job.status}")

    run_embedding_job.delay(job.id)
    logger.info(f"Queued embedding job {job.id} ({job.total_items} items)")

    return EmbeddingGenerateResponse(
        success=True,
        message=f"Embedding job {job.id} queued for {job.total_items} items",
        items_processed=job.items_processed,
    )


@router.get(
    "/jobs/{job_id}",
    response_model=EmbeddingJobResponse,
    summary="Get embedding job status",
)
async def get_embedding_job(job_id: int, db: DBSession):
    job = await _get_job(db, job_id)
    return EmbeddingJobResponse.model_validate(job)
