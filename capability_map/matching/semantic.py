"""
Semantic Matcher — the pluggable NLP similarity collaborator.

Contract: ``await matcher.similarity(task_a, task_b) -> float in [0, 1]``.
Implementations may be network- or model-backed and are free to raise or
time out; callers treat that as "no signal" for the pair.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import numpy as np

from capability_map.matching.embedding_model import EmbeddingModel
from capability_map.models.schemas import Task

logger = logging.getLogger(__name__)


class SemanticMatcher(ABC):
    """Abstract base for semantic similarity scorers."""

    name: str = "semantic"

    async def prepare(self, tasks: Iterable[Task]) -> None:
        """Optional warm-up before a pair scan (e.g. batch embedding)."""
        return None

    @abstractmethod
    async def similarity(self, a: Task, b: Task) -> float:
        ...


class EmbeddingSemanticMatcher(SemanticMatcher):
    """Cosine similarity of sentence-transformer embeddings, clamped to [0, 1]."""

    name = "sentence-transformers"

    def __init__(self, model: Optional[EmbeddingModel] = None):
        self.model = model or EmbeddingModel()
        self._vectors: dict[str, np.ndarray] = {}

    async def prepare(self, tasks: Iterable[Task]) -> None:
        """
        Start a run: keep only this run's texts in the cache, then embed
        the rest in one batch.  Encoding runs off the event loop.
        """
        texts = {t.text for t in tasks if t.text}
        self._vectors = {text: v for text, v in self._vectors.items() if text in texts}
        await self._embed_missing(texts)

    async def _embed_missing(self, texts: Iterable[str]) -> None:
        missing = sorted(t for t in set(texts) if t not in self._vectors)
        if not missing:
            return
        logger.info(f"[SEMANTIC] Embedding {len(missing)} task texts")
        vectors = await asyncio.to_thread(self.model.embed, missing)
        for text, vector in zip(missing, vectors):
            self._vectors[text] = np.asarray(vector, dtype=np.float32)

    async def similarity(self, a: Task, b: Task) -> float:
        if not a.text or not b.text:
            return 0.0
        if a.text not in self._vectors or b.text not in self._vectors:
            await self._embed_missing([a.text, b.text])
        va = self._vectors[a.text]
        vb = self._vectors[b.text]
        denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
        if denom == 0.0:
            return 0.0
        cosine = float(np.dot(va, vb)) / denom
        return max(0.0, min(1.0, cosine))


ScoreFunction = Callable[[Task, Task], Union[float, Awaitable[float]]]


class FunctionSemanticMatcher(SemanticMatcher):
    """Adapts a plain (sync or async) scoring function to the matcher contract."""

    def __init__(self, func: ScoreFunction, name: str = "function"):
        self._func = func
        self.name = name

    async def similarity(self, a: Task, b: Task) -> float:
        result: Any = self._func(a, b)
        if inspect.isawaitable(result):
            result = await result
        return float(result)
