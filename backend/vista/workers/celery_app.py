"""
Celery application instance and configuration.

Queues:
- sync: full Notion resyncs (one at a time per profile, see profile_sync_lock)
- embedding: embedding job runs
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from celery.signals import worker_process_shutdown

from vista.core.config import settings
from vista.core.logging import setup_logging
from vista.tasks.base import run_async

celery_app = Celery(
    "vista",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "vista.tasks.sync_tasks",
        "vista.tasks.embedding_tasks",
    ],
)

celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    result_expires=3600,  # 1 hour
)

celery_app.conf.task_routes = {
    'sync.*': {'queue': 'sync'},
    'embedding.*': {'queue': 'embedding'},
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Use our structlog setup instead of Celery's default handlers."""
    setup_logging()


@worker_process_shutdown.connect
def release_worker_resources(**kwargs) -> None:
    """Drop the Redis client and the embedding model when a worker process exits."""
    from vista.db.redis import close_redis
    from vista.services.processors.embedder import shutdown_embedding_service

    close_redis()
    run_async(shutdown_embedding_service())
