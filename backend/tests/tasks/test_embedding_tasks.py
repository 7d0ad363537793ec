"""
Tests for the embedding job Celery task.
"""

from unittest.mock import AsyncMock, patch

from vista.models.content import ContentItem
from vista.models.embedding import EmbeddingJob, EmbeddingJobStatus
from vista.services.embedding_scheduler import EmbeddingJobScheduler
from vista.tasks.embedding_tasks import run_embedding_job, run_job

from tests.embedding_fakes import FakeEmbedder


async def test_run_job_completes(session_factory, profile):
    async with session_factory() as session:
        session.add_all([
            ContentItem(profile_id=profile.id, notion_page_id="a", title="Alpha"),
            ContentItem(profile_id=profile.id, notion_page_id="b", title="Beta"),
        ])
        await session.commit()
        job = await EmbeddingJobScheduler(session).create_job(profile.id)

    result = await run_job(job.id, session_factory, embedder=FakeEmbedder())

    assert result == {
        "success": True,
        "job_id": job.id,
        "status": "completed",
        "items_processed": 2,
        "total_items": 2,
    }
    async with session_factory() as session:
        stored = await session.get(EmbeddingJob, job.id)
    assert stored.status == EmbeddingJobStatus.COMPLETED


async def test_run_job_reports_job_errors(session_factory):
    result = await run_job(777, session_factory, embedder=FakeEmbedder())

    assert result["success"] is False
    assert result["job_id"] == 777
    assert "not found" in result["error"]


def test_task_runs_job_coroutine():
    with patch("vista.tasks.embedding_tasks.run_job", new=AsyncMock(return_value={"success": True, "job_id": 4})) as mock_run:
        result = run_embedding_job(4)

    assert result == {"success": True, "job_id": 4}
    mock_run.assert_awaited_once_with(4)
