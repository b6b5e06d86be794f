"""
Score Fusion — merge semantic and lexical result lists into one ranking.

A task found by both signals gets ``w·semantic + (1−w)·lexical``.  A task
found by only one list keeps only that list's weighted share, so single
signal matches rank below confirmed ones.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from capability_map.config import get_settings
from capability_map.models.schemas import SearchResult, Task

logger = logging.getLogger(__name__)


def combine_search_results(
    semantic_results: Sequence[SearchResult],
    lexical_results: Sequence[SearchResult],
    semantic_weight: Optional[float] = None,
) -> list[SearchResult]:
    """Fuse two ranked lists by task id; sorted by fused score, then id."""
    if semantic_weight is None:
        semantic_weight = get_settings().semantic_weight
    if not 0.0 <= semantic_weight <= 1.0:
        raise ValueError(
            f"semantic_weight must be within [0, 1], got {semantic_weight}"
        )
    lexical_weight = 1.0 - semantic_weight

    tasks: dict[str, Task] = {}
    semantic: dict[str, float] = {}
    lexical: dict[str, float] = {}

    for result in semantic_results:
        tasks.setdefault(result.task.id, result.task)
        semantic[result.task.id] = max(result.score, semantic.get(result.task.id, 0.0))
    for result in lexical_results:
        tasks.setdefault(result.task.id, result.task)
        lexical[result.task.id] = max(result.score, lexical.get(result.task.id, 0.0))

    fused: list[SearchResult] = []
    for task_id, task in tasks.items():
        score = (
            semantic_weight * semantic.get(task_id, 0.0)
            + lexical_weight * lexical.get(task_id, 0.0)
        )
        if score <= 0.0:
            continue
        fused.append(SearchResult(task=task, score=min(1.0, score)))

    fused.sort(key=lambda r: (-r.score, r.task.id))
    logger.debug(
        f"[FUSION] {len(semantic_results)} semantic + {len(lexical_results)} lexical "
        f"→ {len(fused)} fused (semantic_weight={semantic_weight})"
    )
    return fused
