"""
Embedding Model — generates vector embeddings for task text.
Uses Sentence Transformers (all-MiniLM-L6-v2 by default, 384 dimensions).
"""

from __future__ import annotations

import logging
from typing import Optional

from capability_map.config import get_settings

logger = logging.getLogger(__name__)


class EmbeddingModel:
    """Generate normalized embeddings for text.  The model loads lazily."""

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name or get_settings().embedding_model
        self._model = None
        self._dimension: int | None = None

    def _load_model(self):
        """Lazy-load the embedding model on first use."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self.model_name)
            self._dimension = self._model.get_sentence_embedding_dimension()
            logger.info(
                f"Loaded embedding model: {self.model_name} "
                f"(dim={self._dimension})"
            )

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate unit-length embeddings for a list of texts."""
        self._load_model()
        embeddings = self._model.encode(
            texts, show_progress_bar=False, normalize_embeddings=True,
        )
        return embeddings.tolist()
