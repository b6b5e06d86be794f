"""
Capability Map Generator — runs the whole engine for one task snapshot.

    snapshot → EdgeInferenceEngine → build_capability_graph → cluster_capabilities

Each call builds and returns a fresh CapabilityMap.  If the caller cancels,
the cancellation propagates and no map is returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Sequence

from capability_map.config import Settings, get_settings
from capability_map.engine.clustering import cluster_capabilities
from capability_map.engine.context import EngineContext
from capability_map.engine.graph_builder import build_capability_graph
from capability_map.engine.inference import EdgeInferenceEngine
from capability_map.matching.semantic import EmbeddingSemanticMatcher, SemanticMatcher
from capability_map.models.enums import TaskStatus
from capability_map.models.schemas import CapabilityMap, DiscoveryOptions, Task
from capability_map.services.relation_suggester import LLMRelationSuggester, RelationSuggester

logger = logging.getLogger(__name__)


class CapabilityMapGenerator:
    """Wires collaborators and options into one generate() call."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        semantic_matcher: Optional[SemanticMatcher] = None,
        relation_suggester: Optional[RelationSuggester] = None,
    ):
        self.settings = settings or get_settings()
        self.semantic_matcher = semantic_matcher
        self.relation_suggester = relation_suggester

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CapabilityMapGenerator":
        """Default collaborators: sentence-transformers and the Groq suggester, when enabled."""
        settings = settings or get_settings()
        matcher = EmbeddingSemanticMatcher() if settings.enable_semantic else None
        suggester = LLMRelationSuggester() if settings.enable_ai_relations else None
        return cls(settings, semantic_matcher=matcher, relation_suggester=suggester)

    async def generate(
        self,
        tasks: Sequence[Task],
        options: Optional[DiscoveryOptions] = None,
        context: Optional[EngineContext] = None,
    ) -> CapabilityMap:
        options = options or DiscoveryOptions.from_settings(self.settings)
        context = context or EngineContext()
        t0 = time.perf_counter()

        if not options.include_completed_tasks:
            before = len(tasks)
            tasks = [t for t in tasks if t.status != TaskStatus.DONE]
            logger.info(f"[GENERATE] Excluded {before - len(tasks)} completed tasks")

        engine = EdgeInferenceEngine.from_options(
            options.inference,
            lexical_options=options.lexical,
            semantic_matcher=self.semantic_matcher,
            relation_suggester=self.relation_suggester,
        )

        with context.track("inference"):
            inference = await engine.infer(tasks, context)

        thresholds = {
            "lexical_threshold": options.inference.lexical_threshold,
            "semantic_threshold": options.inference.semantic_threshold,
            "ai_acceptance_floor": options.inference.ai_acceptance_floor,
            "hierarchical_confidence": options.inference.hierarchical_confidence,
            "strategies": [s.name for s in engine.strategies],
        }

        with context.track("graph"):
            graph = build_capability_graph(
                inference.tasks,
                inference.edges,
                skipped_task_count=inference.skipped_task_count,
                degraded_strategies=inference.degraded_strategies,
                thresholds=thresholds,
            )

        with context.track("cluster"):
            capability_map = cluster_capabilities(graph, options.clustering)

        stats = dict(capability_map.metadata.generation_stats)
        stats.update(context.summary())
        stats["task_edge_count"] = len(graph.edges)
        stats["processing_ms"] = round((time.perf_counter() - t0) * 1000.0, 3)
        metadata = capability_map.metadata.model_copy(update={"generation_stats": stats})

        logger.info(
            f"[GENERATE] {metadata.capability_count} capabilities from "
            f"{metadata.task_count} tasks in {stats['processing_ms']:.1f}ms"
        )
        return capability_map.model_copy(update={"metadata": metadata})

    def generate_sync(
        self,
        tasks: Sequence[Task],
        options: Optional[DiscoveryOptions] = None,
    ) -> CapabilityMap:
        """Blocking wrapper for callers without an event loop."""
        return asyncio.run(self.generate(tasks, options))


async def generate_capability_map(
    tasks: Sequence[Task],
    options: Optional[DiscoveryOptions] = None,
    semantic_matcher: Optional[SemanticMatcher] = None,
    relation_suggester: Optional[RelationSuggester] = None,
) -> CapabilityMap:
    """Convenience entry point with explicit collaborators."""
    generator = CapabilityMapGenerator(
        semantic_matcher=semantic_matcher,
        relation_suggester=relation_suggester,
    )
    return await generator.generate(tasks, options)
