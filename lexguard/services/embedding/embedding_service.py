"""Query embeddings for semantic corpus retrieval.

Uses a multilingual sentence-transformers model (384 dimensions) so that
Spanish topic titles and free-text queries land in the same space as the
article embeddings produced by the ingestion pipeline.
"""

from __future__ import annotations

import asyncio

import numpy as np
import structlog
from sentence_transformers import SentenceTransformer

from ...core.config import settings

logger = structlog.get_logger()

# Longer inputs are truncated by the model anyway
MAX_QUERY_CHARS = 2000


class EmbeddingError(Exception):
    """Exception raised for embedding-related errors."""

    pass


class EmbeddingService:
    """Service for generating query embeddings.

    Attributes:
        model_name: Name of the sentence-transformers model
        dimension: Expected dimensionality of embeddings
        device: Device for computation ('cpu' or 'cuda')

    Example:
        >>> service = EmbeddingService()
        >>> vector = await service.embed_text("El silencio administrativo")
        >>> len(vector)
        384
    """

    def __init__(
        self,
        model_name: str | None = None,
        dimension: int | None = None,
        device: str = "cpu",
    ) -> None:
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.device = device
        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> SentenceTransformer:
        """Get or load the sentence transformer model.

        Raises:
            EmbeddingError: If model loading fails
        """
        if self._model is None:
            try:
                self._model = SentenceTransformer(self.model_name, device=self.device)
            except Exception as e:
                raise EmbeddingError(f"Failed to load model '{self.model_name}': {e}") from e
            logger.info("embedding_model_loaded", model=self.model_name, device=self.device)

        return self._model

    async def embed_text(self, text: str) -> list[float]:
        """Generate a normalized embedding for one query.

        Args:
            text: Input text to embed

        Returns:
            Embedding vector of ``dimension`` floats

        Raises:
            EmbeddingError: If text is empty, encoding fails or the
                dimension does not match the corpus
        """
        if not text or not text.strip():
            raise EmbeddingError("Text cannot be empty")

        # Model loading and encoding both run in the worker thread
        embedding = await asyncio.to_thread(self._encode, text.strip()[:MAX_QUERY_CHARS])

        if embedding.shape[-1] != self.dimension:
            raise EmbeddingError(
                f"Model '{self.model_name}' produced {embedding.shape[-1]} dimensions, "
                f"corpus expects {self.dimension}"
            )

        result: list[float] = embedding.astype(np.float32).tolist()
        return result

    async def warm_up(self) -> None:
        """Load the model off the event loop before the first request needs it."""
        await asyncio.to_thread(lambda: self.model)

    def _encode(self, text: str) -> np.ndarray:
        model = self.model
        try:
            embedding: np.ndarray = model.encode(
                text,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to encode text: {e}") from e
        return embedding
