"""
Tokenization helpers shared by the lexical matcher and keyword extraction.

Text is lower-cased and split on anything that is not a letter or digit.
Generic task verbs ("add", "implement", "fix", ...) and function words are
dropped when stop-word filtering is on, so that two tasks are not considered
related just because both start with "Add".
"""

from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)

STOP_WORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "but", "or", "for", "nor", "on", "at", "to", "from",
    "by", "with", "in", "out", "of", "as", "is", "are", "was", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will", "would", "shall",
    "should", "may", "might", "must", "can", "could", "task", "tasks", "add", "create",
    "update", "implement", "support", "fix", "make", "using", "use", "get", "set",
    "this", "that", "these", "those", "it", "its", "their", "there", "here", "where",
    "when", "why", "how", "which", "who", "whom", "new", "old", "more", "less",
})


def tokenize(
    text: str | None,
    min_length: int = 2,
    stop_words: bool = True,
) -> list[str]:
    """Ordered tokens of *text* (duplicates kept)."""
    if not text:
        return []
    tokens = _TOKEN_RE.findall(text.lower())
    return [
        t for t in tokens
        if len(t) >= min_length and not (stop_words and t in STOP_WORDS)
    ]


def normalize_text(
    text: str | None,
    min_length: int = 2,
    stop_words: bool = True,
) -> str:
    """Space-joined token stream, used for whole-phrase containment checks."""
    return " ".join(tokenize(text, min_length=min_length, stop_words=stop_words))
