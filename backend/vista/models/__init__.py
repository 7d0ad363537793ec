"""
Database models.

Importing this package registers every table on ``Base.metadata``
(Alembic autogenerate and the test suite's create_all rely on that).
"""

from vista.models.profile import Profile
from vista.models.content import ContentItem, ContentStatus
from vista.models.embedding import EmbeddingJob, EmbeddingJobStatus, TERMINAL_JOB_STATUSES
from vista.models.webhook import WebhookVerification

__all__ = [
    "Profile",
    "ContentItem",
    "ContentStatus",
    "EmbeddingJob",
    "EmbeddingJobStatus",
    "TERMINAL_JOB_STATUSES",
    "WebhookVerification",
]
