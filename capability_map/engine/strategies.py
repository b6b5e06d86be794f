"""
Edge detection strategies.

Each strategy looks at one task pair and answers with a Signal: a score,
"nothing to say", or "unavailable".  The inference engine iterates a list of
strategies and turns every score at or above the strategy's threshold into a
CapabilityEdge whose confidence is that score.
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from capability_map.matching.lexical import LexicalMatcher
from capability_map.matching.semantic import SemanticMatcher
from capability_map.models.enums import EdgeType
from capability_map.models.schemas import Signal, Task
from capability_map.services.relation_suggester import RelationSuggester

logger = logging.getLogger(__name__)


class EdgeStrategy(ABC):
    """One way of deciding whether two tasks are connected."""

    edge_type: EdgeType
    name: str

    def __init__(self, threshold: float):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"{type(self).__name__} threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold

    async def prepare(self, tasks: Sequence[Task]) -> None:
        """Called once per run before any pair is scored."""
        return None

    @abstractmethod
    async def score(self, a: Task, b: Task) -> Signal:
        ...

    def orient(self, a: Task, b: Task) -> tuple[str, str]:
        """Edge endpoints as (source, target)."""
        return a.id, b.id


# ── Structural ───────────────────────────────────────────


class HierarchicalStrategy(EdgeStrategy):
    """Parent/child adjacency.  Fixed confidence, independent of text."""

    edge_type = EdgeType.HIERARCHICAL
    name = "hierarchical"

    def __init__(self, confidence: float = 0.9):
        super().__init__(threshold=0.0)
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"hierarchical confidence must be within [0, 1], got {confidence}")
        self.confidence = confidence

    async def score(self, a: Task, b: Task) -> Signal:
        if b.parent_id is not None and b.parent_id == a.id:
            return Signal.of(self.confidence, f"{a.id} is the parent of {b.id}")
        if a.parent_id is not None and a.parent_id == b.id:
            return Signal.of(self.confidence, f"{b.id} is the parent of {a.id}")
        return Signal.none()

    def orient(self, a: Task, b: Task) -> tuple[str, str]:
        if a.parent_id is not None and a.parent_id == b.id:
            return b.id, a.id
        return a.id, b.id


# ── Lexical ──────────────────────────────────────────────


class LexicalOverlapStrategy(EdgeStrategy):
    """Token overlap between the two tasks' combined text."""

    edge_type = EdgeType.TASK_OVERLAP
    name = "lexical"

    def __init__(self, threshold: float = 0.4, matcher: Optional[LexicalMatcher] = None):
        super().__init__(threshold)
        self.matcher = matcher or LexicalMatcher()

    async def score(self, a: Task, b: Task) -> Signal:
        score = self.matcher.score_pair(a, b)
        if score.value <= 0.0:
            return Signal.none()
        shared = self.matcher.shared_terms(a.text, b.text)
        return Signal.of(score.value, f"shared terms: {', '.join(shared[:5])}")


# ── Semantic ─────────────────────────────────────────────


class SemanticStrategy(EdgeStrategy):
    """Delegates to the semantic matcher; failures become 'unavailable'."""

    edge_type = EdgeType.SEMANTIC
    name = "semantic"

    def __init__(
        self,
        matcher: SemanticMatcher,
        threshold: float = 0.6,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(threshold)
        self.matcher = matcher
        self.timeout_seconds = timeout_seconds
        self._error: Optional[str] = None

    async def prepare(self, tasks: Sequence[Task]) -> None:
        self._error = None
        try:
            await self.matcher.prepare(tasks)
        except Exception as exc:
            self._error = f"{type(exc).__name__}: {exc}"
            logger.warning(f"[SEMANTIC] Matcher unavailable for this run: {self._error}")

    async def score(self, a: Task, b: Task) -> Signal:
        if self._error is not None:
            return Signal.unavailable(self._error)
        try:
            call = self.matcher.similarity(a, b)
            if self.timeout_seconds is not None:
                value = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                value = await call
        except asyncio.TimeoutError:
            return Signal.unavailable(f"timed out after {self.timeout_seconds}s")
        except Exception as exc:
            return Signal.unavailable(f"{type(exc).__name__}: {exc}")

        if value is None or not math.isfinite(value):
            return Signal.unavailable(f"matcher returned {value!r}")
        value = max(0.0, min(1.0, float(value)))
        if value <= 0.0:
            return Signal.none()
        return Signal.of(value, f"semantic similarity {value:.2f}")


# ── AI suggested ─────────────────────────────────────────


class AIRelationStrategy(EdgeStrategy):
    """
    Looks pairs up in the suggester's answer.

    The suggester is asked once per run in prepare(); suggestions below the
    acceptance floor never become edges.
    """

    edge_type = EdgeType.AI_INFERRED
    name = "ai"

    def __init__(self, suggester: RelationSuggester, acceptance_floor: float = 0.6):
        super().__init__(acceptance_floor)
        self.suggester = suggester
        self._suggestions: dict[frozenset[str], tuple[str, str, float, str]] = {}
        self._error: Optional[str] = None

    async def prepare(self, tasks: Sequence[Task]) -> None:
        self._suggestions = {}
        self._error = None
        try:
            relations = await self.suggester.suggest_relations(tasks)
        except Exception as exc:
            self._error = f"{type(exc).__name__}: {exc}"
            logger.warning(f"[AI] Relation suggester unavailable for this run: {self._error}")
            return

        for rel in relations:
            if rel.source_id == rel.target_id:
                continue
            confidence = rel.confidence
            if not math.isfinite(confidence):
                continue
            confidence = max(0.0, min(1.0, confidence))
            key = frozenset((rel.source_id, rel.target_id))
            current = self._suggestions.get(key)
            if current is None or confidence > current[2]:
                self._suggestions[key] = (rel.source_id, rel.target_id, confidence, rel.rationale)
        logger.debug(f"[AI] {len(self._suggestions)} distinct suggested pairs")

    async def score(self, a: Task, b: Task) -> Signal:
        if self._error is not None:
            return Signal.unavailable(self._error)
        suggestion = self._suggestions.get(frozenset((a.id, b.id)))
        if suggestion is None:
            return Signal.none()
        _, _, confidence, rationale = suggestion
        return Signal.of(confidence, rationale or "suggested by AI")

    def orient(self, a: Task, b: Task) -> tuple[str, str]:
        suggestion = self._suggestions.get(frozenset((a.id, b.id)))
        if suggestion is None:
            return a.id, b.id
        return suggestion[0], suggestion[1]
