"""
Engine — edge inference, graph building and clustering.

Callers normally only need the generator:
    from capability_map.engine import CapabilityMapGenerator
"""

from .clustering import cluster_capabilities, connected_components
from .context import EngineContext
from .generator import CapabilityMapGenerator, generate_capability_map
from .graph_builder import adjacency, build_capability_graph, connection_strengths
from .inference import EdgeInferenceEngine, InferenceResult, partition_tasks
from .strategies import (
    AIRelationStrategy,
    EdgeStrategy,
    HierarchicalStrategy,
    LexicalOverlapStrategy,
    SemanticStrategy,
)

__all__ = [
    "cluster_capabilities",
    "connected_components",
    "EngineContext",
    "CapabilityMapGenerator",
    "generate_capability_map",
    "adjacency",
    "build_capability_graph",
    "connection_strengths",
    "EdgeInferenceEngine",
    "InferenceResult",
    "partition_tasks",
    "AIRelationStrategy",
    "EdgeStrategy",
    "HierarchicalStrategy",
    "LexicalOverlapStrategy",
    "SemanticStrategy",
]
