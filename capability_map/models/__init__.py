"""Models — enums and pydantic schemas for tasks and capability maps."""

from .enums import EdgeType, OverflowPolicy, TaskReadiness, TaskStatus
from .schemas import (
    CapabilityEdge,
    CapabilityMap,
    CapabilityNode,
    ClusteringOptions,
    DiscoveryOptions,
    FuzzySearchOptions,
    InferenceOptions,
    MapMetadata,
    SearchResult,
    Signal,
    SimilarityScore,
    SuggestedRelation,
    Task,
)

__all__ = [
    "EdgeType",
    "OverflowPolicy",
    "TaskReadiness",
    "TaskStatus",
    "CapabilityEdge",
    "CapabilityMap",
    "CapabilityNode",
    "ClusteringOptions",
    "DiscoveryOptions",
    "FuzzySearchOptions",
    "InferenceOptions",
    "MapMetadata",
    "SearchResult",
    "Signal",
    "SimilarityScore",
    "SuggestedRelation",
    "Task",
]
