"""
Embedding job ledger.

Each row is one batch run of the embedding worker for one profile.

Status Flow:
------------
PENDING → PROCESSING → COMPLETED | PARTIAL_SUCCESS | ERROR
PENDING → ERROR (job failed before any item was touched)

Terminal statuses are immutable: once a job is COMPLETED, PARTIAL_SUCCESS or
ERROR, any further transition or progress write raises JobError.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from vista.core.exceptions import JobError
from vista.db.base import BaseModel, JSONType, utc_now
from vista.models.content import enum_values


class EmbeddingJobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    PARTIAL_SUCCESS = "partial_success"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset({
    EmbeddingJobStatus.COMPLETED,
    EmbeddingJobStatus.ERROR,
    EmbeddingJobStatus.PARTIAL_SUCCESS,
})

_ALLOWED_TRANSITIONS = {
    EmbeddingJobStatus.PENDING: {
        EmbeddingJobStatus.PROCESSING,
        EmbeddingJobStatus.ERROR,
    },
    EmbeddingJobStatus.PROCESSING: {
        EmbeddingJobStatus.PROCESSING,
        EmbeddingJobStatus.COMPLETED,
        EmbeddingJobStatus.ERROR,
        EmbeddingJobStatus.PARTIAL_SUCCESS,
    },
}


class EmbeddingJob(BaseModel):
    """
    One embedding run.

    ``started_at`` is the moment the item selection was taken. The next job
    selects items with ``updated_at > started_at`` of the last completed job,
    so edits made while this job was running are picked up next time.

    ``item_ids`` is the selection snapshot; the worker processes it in order
    and ``items_processed`` counts confirmed work, so a restarted worker
    resumes at ``item_ids[items_processed:]``.
    """

    __tablename__ = "embedding_jobs"

    profile_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[EmbeddingJobStatus] = mapped_column(
        Enum(
            EmbeddingJobStatus,
            name="embedding_job_status",
            values_callable=enum_values,
            native_enum=False,
            length=20,
        ),
        nullable=False,
        default=EmbeddingJobStatus.PENDING,
        index=True,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="When the item selection was taken"
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    items_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item_ids: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="ContentItem ids selected for this job, in processing order"
    )

    failed_item_ids: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="ContentItem ids that could not be embedded, checkpointed with items_processed"
    )

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"EmbeddingJob(id={self.id}, profile_id={self.profile_id}, "
            f"status={self.status}, {self.items_processed}/{self.total_items})"
        )

    @property
    def is_terminal(self) -> bool:
        return EmbeddingJobStatus(self.status).is_terminal

    @property
    def remaining_item_ids(self) -> list[int]:
        return list(self.item_ids or [])[self.items_processed:]

    def transition_to(self, status: EmbeddingJobStatus, *, error: str | None = None) -> None:
        """
        Move the job to ``status``.

        Raises:
            JobError: If the job is already terminal or the move is not allowed
        """
        current = EmbeddingJobStatus(self.status)
        if current.is_terminal:
            raise JobError(f"Embedding job {self.id} is already {current}")
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise JobError(f"Embedding job {self.id} cannot move from {current} to {status}")

        self.status = status
        if error is not None:
            self.error = error
        if status.is_terminal:
            self.completed_at = utc_now()

    def record_progress(self, items_processed: int, failed_item_ids: list[int] | tuple[int, ...] = ()) -> None:
        """
        Checkpoint confirmed work.

        ``failed_item_ids`` are the ids of this checkpoint that failed; they
        are kept on the job so a resumed run still reports them.

        Raises:
            JobError: If the job is terminal or the count would go backwards
        """
        if self.is_terminal:
            raise JobError(f"Embedding job {self.id} is already {self.status}")
        if items_processed < self.items_processed:
            raise JobError(
                f"items_processed cannot decrease ({self.items_processed} -> {items_processed})"
            )
        self.items_processed = min(items_processed, self.total_items)
        if failed_item_ids:
            # Reassign so the JSON column is flagged as changed
            known = list(self.failed_item_ids or [])
            self.failed_item_ids = known + [item_id for item_id in failed_item_ids if item_id not in known]
