"""
Capability Graph Builder — canonicalizes tasks + inferred edges into a
task-level CapabilityMap.

One node per task.  Parallel edges of the same type between the same pair
collapse to the highest confidence seen; edges of different types stay
separate and only add up when connection strength is computed.
No clustering decisions are made here.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from typing import Any, Iterable, Optional, Sequence

from capability_map.models.enums import EdgeType
from capability_map.models.schemas import (
    CapabilityEdge,
    CapabilityMap,
    CapabilityNode,
    MapMetadata,
    Task,
)

logger = logging.getLogger(__name__)


# ── Graph primitives ─────────────────────────────────────


def dedupe_edges(edges: Iterable[CapabilityEdge]) -> list[CapabilityEdge]:
    """Keep the strongest edge per (pair, type); hierarchical pairs keep direction."""
    best: dict[tuple[str, str, EdgeType], CapabilityEdge] = {}
    for edge in edges:
        key = edge.dedupe_key
        current = best.get(key)
        if current is None or edge.confidence > current.confidence:
            best[key] = edge
    return sorted(best.values(), key=lambda e: (e.source, e.target, e.type.value))


def pair_confidences(edges: Iterable[CapabilityEdge]) -> dict[frozenset[str], float]:
    """Total confidence per unordered pair: per-type maxima summed, uncapped."""
    per_type: dict[tuple[frozenset[str], EdgeType], float] = {}
    for edge in edges:
        if edge.source == edge.target:
            continue
        key = (edge.endpoints, edge.type)
        per_type[key] = max(per_type.get(key, 0.0), edge.confidence)

    totals: dict[frozenset[str], float] = {}
    for (pair, _), confidence in per_type.items():
        totals[pair] = totals.get(pair, 0.0) + confidence
    return totals


def connection_strengths(edges: Iterable[CapabilityEdge]) -> dict[frozenset[str], float]:
    """
    Combined strength per unordered pair.

    Within a type only the maximum counts; across types the maxima are
    summed and capped at 1.0.
    """
    return {pair: min(1.0, total) for pair, total in pair_confidences(edges).items()}


def adjacency(
    edges: Iterable[CapabilityEdge],
    capped: bool = True,
) -> dict[str, dict[str, float]]:
    """
    Undirected weighted adjacency keyed by node id.

    Weights are connection strengths, or raw pair confidences when
    *capped* is False.
    """
    pairs = connection_strengths(edges) if capped else pair_confidences(edges)
    adj: dict[str, dict[str, float]] = {}
    for pair, strength in pairs.items():
        a, b = sorted(pair)
        adj.setdefault(a, {})[b] = strength
        adj.setdefault(b, {})[a] = strength
    return adj


def edge_type_counts(edges: Iterable[CapabilityEdge]) -> dict[str, int]:
    counts = Counter(edge.type.value for edge in edges)
    return dict(sorted(counts.items()))


# ── Builder ──────────────────────────────────────────────


def task_node(task: Task) -> CapabilityNode:
    """A single-task node.  Progress is 1.0 for done tasks, else 0.0."""
    return CapabilityNode(
        id=task.id,
        name=task.title,
        task_ids=[task.id],
        progress=1.0 if task.is_done else 0.0,
        representative_task_id=task.id,
        description=task.description or "",
        metadata={
            "status": task.status.value,
            "readiness": task.readiness.value,
            "parent_id": task.parent_id,
            "tags": list(task.tags),
            "task_metadata": dict(task.metadata),
        },
    )


def build_capability_graph(
    tasks: Sequence[Task],
    edges: Iterable[CapabilityEdge],
    skipped_task_count: int = 0,
    degraded_strategies: Optional[list[str]] = None,
    thresholds: Optional[dict[str, Any]] = None,
) -> CapabilityMap:
    """Build the task-level graph that seeds clustering."""
    nodes = [task_node(task) for task in sorted(tasks, key=lambda t: t.id)]
    known = {node.id for node in nodes}

    kept: list[CapabilityEdge] = []
    dropped = 0
    for edge in edges:
        if edge.source == edge.target or edge.source not in known or edge.target not in known:
            dropped += 1
            continue
        kept.append(edge)
    if dropped:
        logger.debug(f"[GRAPH] Dropped {dropped} edges with unknown or identical endpoints")

    canonical = dedupe_edges(kept)
    logger.info(f"[GRAPH] {len(nodes)} nodes, {len(canonical)} edges")

    return CapabilityMap(
        id=uuid.uuid4().hex,
        nodes=nodes,
        edges=canonical,
        metadata=MapMetadata(
            task_count=len(nodes),
            skipped_task_count=skipped_task_count,
            capability_count=len(nodes),
            edge_count=len(canonical),
            edge_type_counts=edge_type_counts(canonical),
            degraded_strategies=list(degraded_strategies or []),
            thresholds=dict(thresholds or {}),
        ),
    )
