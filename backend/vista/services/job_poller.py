"""
Client-side embedding job status polling.

The admin UI polls GET /embeddings/jobs/{id} until the job finishes and
shows one notification for the outcome. JobStatusPoller keeps that logic
independent of how the status is fetched:

    NOT_STARTED ──start()──► POLLING ──terminal status──► TERMINAL_OBSERVED

Once a terminal status has been observed, polling stops and later
observations (late responses, a re-render calling ``observe`` again) never
emit a second notification.
"""

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

from vista.models.embedding import EmbeddingJobStatus

logger = logging.getLogger(__name__)


class PollerState(str, enum.Enum):
    NOT_STARTED = "not_started"
    POLLING = "polling"
    TERMINAL_OBSERVED = "terminal_observed"


class JobStatusPoller:
    """
    Polls one job and notifies exactly once on its terminal status.

    Args:
        job_id: Job being watched
        fetch_status: Async callable returning the job's current status
        on_terminal: Called once with the terminal status
        interval: Seconds between polls
    """

    def __init__(
        self,
        job_id: int,
        fetch_status: Callable[[int], Awaitable[str]],
        on_terminal: Callable[[int, EmbeddingJobStatus], None],
        interval: float = 2.0,
    ):
        self.job_id = job_id
        self.fetch_status = fetch_status
        self.on_terminal = on_terminal
        self.interval = interval
        self.state = PollerState.NOT_STARTED
        self.terminal_status: Optional[EmbeddingJobStatus] = None

    @property
    def is_polling(self) -> bool:
        return self.state is PollerState.POLLING

    def start(self) -> None:
        if self.state is PollerState.NOT_STARTED:
            self.state = PollerState.POLLING

    def observe(self, status: str | EmbeddingJobStatus) -> bool:
        """
        Feed one observed status.

        Returns:
            True if this observation produced the terminal notification
        """
        if self.state is PollerState.TERMINAL_OBSERVED:
            return False
        if self.state is PollerState.NOT_STARTED:
            self.start()

        status = EmbeddingJobStatus(status)
        if not status.is_terminal:
            return False

        self.state = PollerState.TERMINAL_OBSERVED
        self.terminal_status = status
        self.on_terminal(self.job_id, status)
        return True

    async def poll_once(self) -> Optional[EmbeddingJobStatus]:
        """Fetch and observe once; does nothing after the terminal status."""
        if self.state is PollerState.TERMINAL_OBSERVED:
            return self.terminal_status
        status = EmbeddingJobStatus(await self.fetch_status(self.job_id))
        self.observe(status)
        return status

    async def run(self, max_polls: Optional[int] = None) -> Optional[EmbeddingJobStatus]:
        """Poll until a terminal status is seen (or ``max_polls`` is reached)."""
        self.start()
        polls = 0
        while self.is_polling:
            await self.poll_once()
            polls += 1
            if not self.is_polling:
                break
            if max_polls is not None and polls >= max_polls:
                logger.info(f"Stopped polling job {self.job_id} after {polls} polls")
                break
            await asyncio.sleep(self.interval)
        return self.terminal_status
