"""
Lexical Matcher — token-overlap ("fuzzy") similarity between task texts.

Score = |Q ∩ T| / |Q ∪ T| over the token sets of the query and the task text
(title + description + tags), plus a flat bonus when the whole normalized
query appears as a contiguous phrase inside the task text.  Capped at 1.0.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from capability_map.models.schemas import FuzzySearchOptions, SearchResult, SimilarityScore, Task
from capability_map.utils.tokenization import tokenize

logger = logging.getLogger(__name__)


class LexicalMatcher:
    """Scores text pairs; caches token profiles so O(n²) pair scans stay cheap."""

    def __init__(self, options: Optional[FuzzySearchOptions] = None):
        self.options = options or FuzzySearchOptions()
        self._profiles: dict[str, tuple[frozenset[str], str]] = {}

    def _profile(self, text: str | None) -> tuple[frozenset[str], str]:
        key = text or ""
        cached = self._profiles.get(key)
        if cached is not None:
            return cached
        tokens = tokenize(
            key,
            min_length=self.options.min_token_length,
            stop_words=self.options.use_stop_words,
        )
        profile = (frozenset(tokens), " ".join(tokens))
        self._profiles[key] = profile
        return profile

    def score_text(self, query: str | None, text: str | None) -> float:
        """Similarity of *text* to *query* in [0, 1]."""
        q_tokens, q_phrase = self._profile(query)
        t_tokens, t_phrase = self._profile(text)
        if not q_tokens or not t_tokens:
            return 0.0

        shared = q_tokens & t_tokens
        if not shared:
            return 0.0

        score = len(shared) / len(q_tokens | t_tokens)
        if f" {q_phrase} " in f" {t_phrase} ":
            score += self.options.substring_bonus
        return min(1.0, score)

    def shared_terms(self, a: str | None, b: str | None) -> list[str]:
        return sorted(self._profile(a)[0] & self._profile(b)[0])

    def similarity(self, a: Task, b: Task) -> float:
        """Symmetric pair score: each task's text is tried as the query."""
        return max(self.score_text(a.text, b.text), self.score_text(b.text, a.text))

    def score_pair(self, a: Task, b: Task) -> SimilarityScore:
        return SimilarityScore(source_id=a.id, target_id=b.id, value=self.similarity(a, b))


def fuzzy_search(
    tasks: Iterable[Task],
    query: str,
    options: Optional[FuzzySearchOptions] = None,
    matcher: Optional[LexicalMatcher] = None,
) -> list[SearchResult]:
    """
    Rank *tasks* against *query* by token overlap.

    Empty queries match nothing.  Results below ``options.threshold`` are
    dropped; ties are ordered by task id so output is reproducible.
    """
    options = options or FuzzySearchOptions()
    matcher = matcher or LexicalMatcher(options)

    if not query or not query.strip():
        logger.debug("[LEXICAL] Empty query — no results")
        return []

    results: list[SearchResult] = []
    for task in tasks:
        if task.is_archived and not options.include_archived:
            continue
        score = matcher.score_text(query, task.text)
        if score > 0.0 and score >= options.threshold:
            results.append(SearchResult(task=task, score=score))

    results.sort(key=lambda r: (-r.score, r.task.id))
    if options.max_results is not None:
        results = results[: options.max_results]

    logger.debug(
        f"[LEXICAL] Query {query[:60]!r} → {len(results)} results "
        f"(threshold={options.threshold})"
    )
    return results
