"""
Hybrid task search — fuzzy search plus semantic query scoring, fused.

If the semantic matcher fails, the search degrades to the lexical ranking.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from capability_map.config import get_settings
from capability_map.matching.fusion import combine_search_results
from capability_map.matching.lexical import fuzzy_search
from capability_map.matching.semantic import SemanticMatcher
from capability_map.models.schemas import FuzzySearchOptions, SearchResult, Task

logger = logging.getLogger(__name__)

_QUERY_TASK_ID = "__query__"


async def semantic_search(
    tasks: Sequence[Task],
    query: str,
    matcher: SemanticMatcher,
    threshold: float = 0.0,
    include_archived: bool = False,
) -> list[SearchResult]:
    """Score every task against *query* with the semantic matcher."""
    if not query or not query.strip():
        return []
    candidates = [t for t in tasks if include_archived or not t.is_archived]
    probe = Task(id=_QUERY_TASK_ID, title=query)
    await matcher.prepare([probe, *candidates])

    scores = await asyncio.gather(*(matcher.similarity(probe, t) for t in candidates))
    results = [
        SearchResult(task=task, score=max(0.0, min(1.0, score)))
        for task, score in zip(candidates, scores)
        if score > 0.0 and score >= threshold
    ]
    results.sort(key=lambda r: (-r.score, r.task.id))
    return results


async def search_tasks(
    tasks: Sequence[Task],
    query: str,
    matcher: Optional[SemanticMatcher] = None,
    options: Optional[FuzzySearchOptions] = None,
    semantic_weight: Optional[float] = None,
) -> list[SearchResult]:
    """Lexical + semantic search over a task snapshot."""
    settings = get_settings()
    options = options or FuzzySearchOptions.from_settings(settings)
    if semantic_weight is None:
        semantic_weight = settings.semantic_weight

    if matcher is None:
        return fuzzy_search(tasks, query, options)

    # the result limit applies to the fused ranking, not to each input list
    lexical = fuzzy_search(tasks, query, options.model_copy(update={"max_results": None}))

    try:
        semantic = await semantic_search(
            tasks, query, matcher,
            threshold=options.threshold,
            include_archived=options.include_archived,
        )
    except Exception as exc:
        logger.warning(f"[SEARCH] Semantic matcher failed, using lexical only: {exc}")
        ranked = lexical
    else:
        ranked = combine_search_results(semantic, lexical, semantic_weight)

    if options.max_results is not None:
        ranked = ranked[: options.max_results]
    return ranked
