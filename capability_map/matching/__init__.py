"""
Matching — lexical and semantic task similarity plus score fusion.

The inference engine and the search entry point import from here:
    from capability_map.matching import LexicalMatcher, fuzzy_search
"""

from .fusion import combine_search_results
from .lexical import LexicalMatcher, fuzzy_search
from .search import search_tasks, semantic_search
from .semantic import EmbeddingSemanticMatcher, FunctionSemanticMatcher, SemanticMatcher

__all__ = [
    "combine_search_results",
    "LexicalMatcher",
    "fuzzy_search",
    "search_tasks",
    "semantic_search",
    "EmbeddingSemanticMatcher",
    "FunctionSemanticMatcher",
    "SemanticMatcher",
]
