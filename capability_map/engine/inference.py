"""
Edge Inference Engine — evaluates every unordered task pair with every
enabled strategy and emits typed, confidence-scored edges.

Pairs are independent, so a small pool of asyncio workers drains a shared
pair iterator.  Only the semantic and AI strategies actually await I/O; the
rest is plain CPU work.  Cancelling the caller cancels the workers and no
partial result is returned.

A strategy whose collaborator fails does not fail the run: its edges are
omitted and the strategy is listed as degraded.
"""

from __future__ import annotations

import asyncio
import logging
from itertools import combinations
from typing import Iterator, Optional, Sequence

from pydantic import BaseModel

from capability_map.engine.context import EngineContext
from capability_map.engine.strategies import (
    AIRelationStrategy,
    EdgeStrategy,
    HierarchicalStrategy,
    LexicalOverlapStrategy,
    SemanticStrategy,
)
from capability_map.matching.lexical import LexicalMatcher
from capability_map.matching.semantic import SemanticMatcher
from capability_map.models.schemas import (
    CapabilityEdge,
    FuzzySearchOptions,
    InferenceOptions,
    Task,
)
from capability_map.services.relation_suggester import RelationSuggester

logger = logging.getLogger(__name__)


class InferenceResult(BaseModel):
    """Edges for the well-formed tasks, plus what was left out."""
    tasks: list[Task] = []
    edges: list[CapabilityEdge] = []
    skipped_task_count: int = 0
    evaluated_pairs: int = 0
    degraded_strategies: list[str] = []


def partition_tasks(tasks: Sequence[Task]) -> tuple[list[Task], int]:
    """
    Split a snapshot into comparable tasks and a skipped count.

    A task is skipped when its id or title is blank, or when its id repeats
    an earlier task's id.
    """
    valid: list[Task] = []
    seen: set[str] = set()
    skipped = 0
    for task in tasks:
        task_id = (task.id or "").strip()
        if not task_id or not (task.title or "").strip() or task_id in seen:
            skipped += 1
            continue
        seen.add(task_id)
        valid.append(task)
    if skipped:
        logger.warning(f"[INFER] Skipped {skipped} malformed or duplicate tasks")
    valid.sort(key=lambda t: t.id)
    return valid, skipped


class EdgeInferenceEngine:
    """Runs a fixed list of strategies over the full pair set."""

    def __init__(self, strategies: Sequence[EdgeStrategy], max_concurrency: int = 8):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.strategies = list(strategies)
        self.max_concurrency = max_concurrency

    @classmethod
    def from_options(
        cls,
        options: Optional[InferenceOptions] = None,
        lexical_options: Optional[FuzzySearchOptions] = None,
        semantic_matcher: Optional[SemanticMatcher] = None,
        relation_suggester: Optional[RelationSuggester] = None,
    ) -> "EdgeInferenceEngine":
        """Assemble the standard strategy list from options and collaborators."""
        options = options or InferenceOptions()
        strategies: list[EdgeStrategy] = []

        if options.enable_hierarchical:
            strategies.append(HierarchicalStrategy(options.hierarchical_confidence))
        if options.enable_lexical:
            strategies.append(
                LexicalOverlapStrategy(
                    threshold=options.lexical_threshold,
                    matcher=LexicalMatcher(lexical_options),
                )
            )
        if options.enable_semantic and semantic_matcher is not None:
            strategies.append(
                SemanticStrategy(
                    semantic_matcher,
                    threshold=options.semantic_threshold,
                    timeout_seconds=options.semantic_timeout_seconds,
                )
            )
        if options.enable_ai and relation_suggester is not None:
            strategies.append(
                AIRelationStrategy(relation_suggester, acceptance_floor=options.ai_acceptance_floor)
            )

        return cls(strategies, max_concurrency=options.max_concurrency)

    # ── Public entry point ───────────────────────────────

    async def infer(
        self,
        tasks: Sequence[Task],
        context: Optional[EngineContext] = None,
    ) -> InferenceResult:
        context = context or EngineContext()
        valid, skipped = partition_tasks(tasks)
        names = [s.name for s in self.strategies]
        logger.info(
            f"[INFER] {len(valid)} tasks, strategies={names}, "
            f"workers={self.max_concurrency}"
        )

        with context.track("prepare"):
            for strategy in self.strategies:
                await strategy.prepare(valid)

        with context.track("pairs"):
            pairs = combinations(valid, 2)
            workers = [
                self._worker(pairs, context)
                for _ in range(min(self.max_concurrency, max(1, len(valid))))
            ]
            batches = await asyncio.gather(*workers)

        edges = sorted(
            (edge for batch in batches for edge in batch),
            key=lambda e: (e.source, e.target, e.type.value),
        )
        pair_count = len(valid) * (len(valid) - 1) // 2
        context.count("pairs", pair_count)

        for name in context.degraded_strategies:
            logger.warning(
                f"[INFER] Strategy '{name}' degraded: "
                f"{context.counters[f'{name}.unavailable']} pairs without signal "
                f"({'; '.join(context.degraded[name])})"
            )
        logger.info(f"[INFER] {len(edges)} edges from {pair_count} pairs")

        return InferenceResult(
            tasks=valid,
            edges=edges,
            skipped_task_count=skipped,
            evaluated_pairs=pair_count,
            degraded_strategies=context.degraded_strategies,
        )

    # ── Internals ────────────────────────────────────────

    async def _worker(
        self,
        pairs: Iterator[tuple[Task, Task]],
        context: EngineContext,
    ) -> list[CapabilityEdge]:
        found: list[CapabilityEdge] = []
        for a, b in pairs:
            found.extend(await self._evaluate_pair(a, b, context))
        return found

    async def _evaluate_pair(
        self,
        a: Task,
        b: Task,
        context: EngineContext,
    ) -> list[CapabilityEdge]:
        edges: list[CapabilityEdge] = []
        for strategy in self.strategies:
            signal = await strategy.score(a, b)
            if not signal.available:
                context.mark_degraded(strategy.name, signal.detail)
                logger.debug(f"[INFER] {strategy.name} unavailable for ({a.id}, {b.id}): {signal.detail}")
                continue
            if signal.value is None or signal.value < strategy.threshold:
                continue

            source, target = strategy.orient(a, b)
            edges.append(
                CapabilityEdge(
                    source=source,
                    target=target,
                    type=strategy.edge_type,
                    confidence=signal.value,
                    rationale=signal.detail or None,
                )
            )
            context.count(f"{strategy.name}.edges")
        return edges
