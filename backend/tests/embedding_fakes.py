"""
Deterministic stand-in for EmbeddingService.
"""

from vista.core.config import settings


def vector_for(text: str) -> list[float]:
    vector = [0.0] * settings.EMBEDDING_DIMENSION
    vector[len(text) % settings.EMBEDDING_DIMENSION] = 1.0
    return vector


class WorkerLost(BaseException):
    """Stands in for the worker process dying mid-batch."""


class FakeEmbedder:
    """
    Args:
        fail_on: texts containing any of these substrings fail to embed
        fail_batches: every batch call fails, forcing the per-item path
        crash_on: texts containing any of these substrings raise WorkerLost
    """

    def __init__(
        self,
        fail_on: tuple[str, ...] = (),
        fail_batches: bool = False,
        crash_on: tuple[str, ...] = (),
    ):
        self.fail_on = fail_on
        self.fail_batches = fail_batches
        self.crash_on = crash_on
        self.batch_calls: list[list[str]] = []
        self.single_calls: list[str] = []

    def _fails(self, text: str) -> bool:
        return any(marker in text for marker in self.fail_on)

    async def embed_texts_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if any(marker in text for text in texts for marker in self.crash_on):
            raise WorkerLost(texts)
        if self.fail_batches or any(self._fails(text) for text in texts):
            raise RuntimeError("batch failed")
        return [vector_for(text) for text in texts]

    async def embed_text(self, text: str) -> list[float]:
        self.single_calls.append(text)
        if self._fails(text):
            raise RuntimeError(f"cannot embed {text!r}")
        return vector_for(text)

    @property
    def embedded_texts(self) -> list[str]:
        texts = [text for batch in self.batch_calls for text in batch]
        return texts + self.single_calls
