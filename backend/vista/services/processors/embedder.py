"""
Embedding Service

Generates the vectors stored on ContentItem.embedding, using
sentence-transformers for local inference.

Model: google/embeddinggemma-300m (768 dimensions, configurable)

The input for a content item is its title, description, category and tags
(see ContentItem.embedding_text). Model calls are CPU bound and run in a
worker thread so the async job loop is not blocked.
"""

import asyncio
import logging
from typing import Optional

import numpy as np
import torch
from sentence_transformers import SentenceTransformer

from vista.core.config import settings

logger = logging.getLogger(__name__)


class EmbeddingService:
    """
    Service for generating embeddings using sentence-transformers.

    Usage:
    ------
    embedder = EmbeddingService()
    await embedder.initialize()

    vectors = await embedder.embed_texts_batch(["Spring retreat 2024 events", "..."])
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        device: Optional[str] = None,
        normalize: bool = True
    ):
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.device = device or settings.EMBEDDING_DEVICE
        self.normalize = normalize

        self.model: Optional[SentenceTransformer] = None
        self._initialized = False

        self._validate_device()

    def _validate_device(self) -> None:
        """Fall back to CPU when the configured accelerator is missing."""
        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA not available, falling back to CPU")
            self.device = "cpu"
        elif self.device == "mps" and not torch.backends.mps.is_available():
            logger.warning("MPS not available, falling back to CPU")
            self.device = "cpu"

    async def initialize(self) -> None:
        """
        Load the model (downloads it on first use).

        Raises:
            Exception: If model loading fails
        """
        if self._initialized:
            return

        try:
            logger.info(f"Loading embedding model: {self.model_name} on {self.device}")
            self.model = await asyncio.to_thread(
                SentenceTransformer,
                self.model_name,
                device=self.device
            )
            dimension = self.model.get_sentence_embedding_dimension()
            # content_items.embedding is a fixed-width pgvector column
            if dimension and dimension != settings.EMBEDDING_DIMENSION:
                raise ValueError(
                    f"Model {self.model_name} produces {dimension}-dimensional vectors, "
                    f"expected {settings.EMBEDDING_DIMENSION}"
                )
            self._initialized = True
            logger.info(f"Embedding model loaded. Dimension: {dimension}, Device: {self.device}")
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise

    def get_embedding_dimension(self) -> int:
        if not self._initialized or self.model is None:
            return settings.EMBEDDING_DIMENSION
        return self.model.get_sentence_embedding_dimension()

    async def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            RuntimeError: If service not initialized
            ValueError: If the text is empty
        """
        if not self._initialized:
            raise RuntimeError("Embedding service not initialized. Call initialize() first.")
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        embedding = await asyncio.to_thread(self._encode, [text])
        return embedding[0].tolist()

    async def embed_texts_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed several texts in one model call.

        Empty texts are rejected up front; callers filter them out (an item
        with nothing to embed is skipped, not given a zero vector).

        Raises:
            RuntimeError: If service not initialized
            ValueError: If any text is empty
        """
        if not self._initialized:
            raise RuntimeError("Embedding service not initialized. Call initialize() first.")
        if not texts:
            return []
        if any(not text or not text.strip() for text in texts):
            raise ValueError("Cannot embed empty text")

        embeddings = await asyncio.to_thread(self._encode, texts)
        return [row.tolist() for row in embeddings]

    def _encode(self, texts: list[str]) -> np.ndarray:
        """Run the model (sync, called in a worker thread)."""
        return self.model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=self.normalize,
            show_progress_bar=False,
            convert_to_numpy=True
        )

    async def shutdown(self) -> None:
        """Free the model (and GPU cache when on CUDA)."""
        if self.model is not None:
            if self.device == "cuda":
                torch.cuda.empty_cache()
            del self.model
            self.model = None

        self._initialized = False
        logger.info("Embedding service shut down")


# ========================================
# Global Instance Management
# ========================================

_embedding_service: Optional[EmbeddingService] = None


async def get_embedding_service() -> EmbeddingService:
    """Get or create the process-wide embedding service (loads the model once)."""
    global _embedding_service

    if _embedding_service is None:
        service = EmbeddingService()
        await service.initialize()
        _embedding_service = service

    return _embedding_service


async def shutdown_embedding_service() -> None:
    global _embedding_service

    if _embedding_service is not None:
        await _embedding_service.shutdown()
        _embedding_service = None
