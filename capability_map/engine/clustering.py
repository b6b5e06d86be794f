"""
Clustering Engine — partitions a capability graph into capability groups.

Algorithm:
  1. Combine parallel edges into one strength per pair (max within a type,
     summed across types, capped at 1.0)
  2. Keep pairs at or above the strong-connection threshold
  3. Union-find over those pairs → connected components
  4. Filter components by size / singleton policy, rank, apply the cap
     (overflow merged into an "Other" capability or dropped)
  5. Per group: representative = member with the highest total incident
     edge confidence inside the group; progress = done members / members
  6. Project task-level edges onto groups (max confidence per type)

Pure function of (graph, options): same input, same partition, same ids.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Optional, Sequence

from capability_map.engine.graph_builder import adjacency, connection_strengths, edge_type_counts
from capability_map.models.enums import EdgeType, OverflowPolicy
from capability_map.models.schemas import (
    CapabilityEdge,
    CapabilityMap,
    CapabilityNode,
    ClusteringOptions,
    MapMetadata,
)
from capability_map.utils.hashing import short_id
from capability_map.utils.tokenization import tokenize

logger = logging.getLogger(__name__)

OTHER_CAPABILITY_ID = "cap-other"
OTHER_CAPABILITY_NAME = "Other"


# ── Union-find ───────────────────────────────────────────


class DisjointSet:
    """Union-find with path compression; the smaller id always becomes root."""

    def __init__(self, items: Iterable[str]):
        self._parent: dict[str, str] = {item: item for item in items}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        if rb < ra:
            ra, rb = rb, ra
        self._parent[rb] = ra

    def groups(self) -> list[list[str]]:
        members: dict[str, list[str]] = {}
        for item in sorted(self._parent):
            members.setdefault(self.find(item), []).append(item)
        return sorted(members.values())


def connected_components(
    node_ids: Sequence[str],
    strengths: dict[frozenset[str], float],
    threshold: float,
) -> list[list[str]]:
    """Components over pairs whose strength is >= threshold."""
    dsu = DisjointSet(node_ids)
    known = set(node_ids)
    for pair, strength in strengths.items():
        if strength < threshold:
            continue
        a, b = sorted(pair)
        if a in known and b in known:
            dsu.union(a, b)
    return dsu.groups()


# ── Public API ───────────────────────────────────────────


def cluster_capabilities(
    graph: CapabilityMap,
    options: Optional[ClusteringOptions] = None,
) -> CapabilityMap:
    """Group the nodes of *graph* into capabilities."""
    options = options or ClusteringOptions()
    nodes = {node.id: node for node in graph.nodes}
    edges = [e for e in graph.edges if e.source in nodes and e.target in nodes]
    strengths = connection_strengths(edges)
    neighbors = adjacency(edges)
    incident = adjacency(edges, capped=False)

    components = connected_components(sorted(nodes), strengths, options.strong_threshold)
    logger.info(
        f"[CLUSTER] {len(components)} components over {len(nodes)} nodes "
        f"(strong_threshold={options.strong_threshold})"
    )

    # ── Size policy ──────────────────────────────────────
    kept: list[list[str]] = []
    dropped_small = 0
    for component in components:
        size = sum(nodes[n].size for n in component)
        if len(component) == 1 and size <= 1:
            if options.include_singletons:
                kept.append(component)
            else:
                dropped_small += 1
        elif size < options.min_cluster_size:
            dropped_small += 1
        else:
            kept.append(component)

    groups = [
        _make_group(component, nodes, neighbors, incident, options)
        for component in kept
    ]
    groups.sort(key=lambda g: (-g.size, -g.confidence, g.id))

    # ── Capability cap ───────────────────────────────────
    overflow: list[CapabilityNode] = []
    if options.max_capabilities is not None and len(groups) > options.max_capabilities:
        # "Other" takes one of the capped slots
        keep = options.max_capabilities
        if options.overflow_policy == OverflowPolicy.MERGE:
            keep -= 1
        overflow = groups[keep:]
        groups = groups[:keep]
        if options.overflow_policy == OverflowPolicy.MERGE:
            groups.append(_make_other_group(overflow, options))
        logger.info(
            f"[CLUSTER] {len(overflow)} capabilities over the cap "
            f"→ {options.overflow_policy.value}"
        )

    # ── Group edges ──────────────────────────────────────
    membership: dict[str, str] = {}
    for group in groups:
        for node_id in group.metadata.get("member_node_ids", []):
            membership[node_id] = group.id
    group_edges = project_edges(graph.edges, membership)
    if options.max_edges_per_capability is not None:
        group_edges = limit_edges(group_edges, options.max_edges_per_capability)

    with_members = [g for g in groups if g.id != OTHER_CAPABILITY_ID]
    map_confidence = (
        sum(g.confidence for g in with_members) / len(with_members) if with_members else 0.0
    )

    thresholds = dict(graph.metadata.thresholds)
    thresholds.update({
        "strong_threshold": options.strong_threshold,
        "min_cluster_size": options.min_cluster_size,
        "include_singletons": options.include_singletons,
        "max_capabilities": options.max_capabilities,
    })
    stats = dict(graph.metadata.generation_stats)
    stats.update({
        "components": len(components),
        "dropped_components": dropped_small,
        "overflow_components": len(overflow),
    })

    logger.info(f"[CLUSTER] {len(groups)} capabilities, {len(group_edges)} capability edges")
    return CapabilityMap(
        id=graph.id,
        nodes=groups,
        edges=group_edges,
        metadata=MapMetadata(
            generated_at=graph.metadata.generated_at,
            task_count=graph.metadata.task_count,
            skipped_task_count=graph.metadata.skipped_task_count,
            capability_count=len(groups),
            edge_count=len(group_edges),
            edge_type_counts=edge_type_counts(group_edges),
            degraded_strategies=list(graph.metadata.degraded_strategies),
            thresholds=thresholds,
            confidence=round(map_confidence, 6),
            generation_stats=stats,
        ),
    )


# ── Group construction ───────────────────────────────────


def select_representative(
    members: Sequence[str],
    incident: dict[str, dict[str, float]],
) -> str:
    """
    Member with the highest total edge confidence to other members.

    *incident* maps node id to neighbor confidences (uncapped, summed across
    edge types).  Ties go to the lowest id.
    """
    member_set = set(members)
    totals = {
        m: sum(sorted(w for n, w in incident.get(m, {}).items() if n in member_set))
        for m in members
    }
    return min(members, key=lambda m: (-totals[m], m))


def _make_group(
    component: list[str],
    nodes: dict[str, CapabilityNode],
    neighbors: dict[str, dict[str, float]],
    incident: dict[str, dict[str, float]],
    options: ClusteringOptions,
) -> CapabilityNode:
    members = [nodes[n] for n in component]
    task_ids = sorted(t for m in members for t in m.task_ids)
    representative = nodes[select_representative(component, incident)]

    member_set = set(component)
    strong = [
        s
        for m in component
        for n, s in neighbors.get(m, {}).items()
        if m < n and n in member_set and s >= options.strong_threshold
    ]
    confidence = sum(sorted(strong)) / len(strong) if strong else 0.0
    keywords = _keywords(members, options.keyword_count)

    return CapabilityNode(
        id=short_id(task_ids, prefix="cap-"),
        name=representative.name.strip(),
        task_ids=task_ids,
        progress=_progress(members),
        representative_task_id=representative.representative_task_id or representative.id,
        description=_describe(len(task_ids), keywords),
        keywords=keywords,
        confidence=min(1.0, confidence),
        metadata={
            "member_node_ids": list(component),
            "status_counts": _status_counts(members),
        },
    )


def _make_other_group(
    overflow: list[CapabilityNode],
    options: ClusteringOptions,
) -> CapabilityNode:
    task_ids = sorted(t for g in overflow for t in g.task_ids)
    done = sum(g.progress * g.size for g in overflow)
    keywords = [
        word for word, _ in Counter(k for g in overflow for k in g.keywords).most_common()
    ][: options.keyword_count]
    status_counts: Counter[str] = Counter()
    for g in overflow:
        status_counts.update(g.metadata.get("status_counts", {}))
    return CapabilityNode(
        id=OTHER_CAPABILITY_ID,
        name=OTHER_CAPABILITY_NAME,
        task_ids=task_ids,
        progress=done / len(task_ids) if task_ids else 0.0,
        representative_task_id=None,
        description=f"{len(overflow)} smaller capabilities, {len(task_ids)} tasks",
        keywords=keywords,
        confidence=0.0,
        metadata={
            "member_node_ids": [n for g in overflow for n in g.metadata.get("member_node_ids", [])],
            "merged_capability_ids": [g.id for g in overflow],
            "status_counts": dict(status_counts),
        },
    )


def _progress(members: Sequence[CapabilityNode]) -> float:
    total = sum(m.size for m in members)
    if total == 0:
        return 0.0
    return min(1.0, sum(m.progress * m.size for m in members) / total)


def _status_counts(members: Sequence[CapabilityNode]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for m in members:
        if "status_counts" in m.metadata:
            counts.update(m.metadata["status_counts"])
        elif "status" in m.metadata:
            counts[m.metadata["status"]] += 1
    return dict(sorted(counts.items()))


def _keywords(members: Sequence[CapabilityNode], limit: int) -> list[str]:
    if limit <= 0:
        return []
    counts: Counter[str] = Counter()
    for m in members:
        text = " ".join([m.name, m.description, " ".join(m.metadata.get("tags", []))])
        counts.update(set(tokenize(text, min_length=3)))
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [word for word, _ in ranked[:limit]]


def _describe(task_count: int, keywords: list[str]) -> str:
    noun = "task" if task_count == 1 else "tasks"
    if keywords:
        return f"{task_count} {noun}: {', '.join(keywords[:3])}"
    return f"{task_count} {noun}"


# ── Edge projection ──────────────────────────────────────


def project_edges(
    edges: Iterable[CapabilityEdge],
    membership: dict[str, str],
) -> list[CapabilityEdge]:
    """
    Lift task-level edges onto groups.

    One edge per (group pair, type) carrying the maximum confidence of the
    task edges behind it; edges inside a group or touching a dropped node
    disappear.  Hierarchical edges keep direction.
    """
    best: dict[tuple[str, str, EdgeType], float] = {}
    links: Counter[tuple[str, str, EdgeType]] = Counter()
    for edge in edges:
        src = membership.get(edge.source)
        tgt = membership.get(edge.target)
        if src is None or tgt is None or src == tgt:
            continue
        if edge.type != EdgeType.HIERARCHICAL:
            src, tgt = sorted((src, tgt))
        key = (src, tgt, edge.type)
        best[key] = max(best.get(key, 0.0), edge.confidence)
        links[key] += 1

    projected = [
        CapabilityEdge(
            source=src,
            target=tgt,
            type=edge_type,
            confidence=confidence,
            rationale=f"{links[(src, tgt, edge_type)]} task links",
        )
        for (src, tgt, edge_type), confidence in best.items()
    ]
    projected.sort(key=lambda e: (e.source, e.target, e.type.value))
    return projected


def limit_edges(edges: Sequence[CapabilityEdge], per_node: int) -> list[CapabilityEdge]:
    """Strongest-first; an edge is kept only while both endpoints are under the limit."""
    counts: Counter[str] = Counter()
    kept: list[CapabilityEdge] = []
    for edge in sorted(edges, key=lambda e: (-e.confidence, e.source, e.target, e.type.value)):
        if counts[edge.source] >= per_node or counts[edge.target] >= per_node:
            continue
        kept.append(edge)
        counts[edge.source] += 1
        counts[edge.target] += 1
    kept.sort(key=lambda e: (e.source, e.target, e.type.value))
    return kept
