"""
Data schemas shared by the matchers, the inference engine and the clusterer.
Tasks come in from the snapshot provider; everything else is produced here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field, field_validator

from .enums import EdgeType, OverflowPolicy, TaskReadiness, TaskStatus

if TYPE_CHECKING:
    from capability_map.config import Settings


# ── Tasks (owned by the snapshot provider) ───────────────


class Task(BaseModel):
    """A single task as exported by the task store."""
    id: str = ""
    title: str = ""
    description: Optional[str] = None
    tags: list[str] = []
    status: TaskStatus = TaskStatus.TODO
    readiness: TaskReadiness = TaskReadiness.DRAFT
    parent_id: Optional[str] = Field(None, alias="parentId")
    metadata: dict[str, Any] = {}

    model_config = {"populate_by_name": True}

    @field_validator("tags", mode="before")
    @classmethod
    def _none_tags(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def text(self) -> str:
        """Title, description and tags joined into one searchable blob."""
        parts = [self.title or "", self.description or "", " ".join(self.tags)]
        return " ".join(p for p in parts if p)

    @property
    def is_archived(self) -> bool:
        return bool(self.metadata.get("archived"))

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


# ── Matcher output ───────────────────────────────────────


class SimilarityScore(BaseModel):
    """One matcher's verdict on a task pair."""
    source_id: str
    target_id: str
    value: float = Field(ge=0.0, le=1.0)

    model_config = {"frozen": True}


class SearchResult(BaseModel):
    """A task paired with its (lexical, semantic or fused) score."""
    task: Task
    score: float = Field(ge=0.0, le=1.0)


class Signal(BaseModel):
    """
    Outcome of one strategy on one pair.

    ``value`` is None when the strategy has nothing to say about the pair
    (e.g. the tasks are not parent and child).  ``available`` is False when
    the underlying collaborator could not produce a score at all.
    """
    value: Optional[float] = None
    available: bool = True
    detail: str = ""

    model_config = {"frozen": True}

    @classmethod
    def of(cls, value: float, detail: str = "") -> "Signal":
        return cls(value=value, detail=detail)

    @classmethod
    def none(cls) -> "Signal":
        return cls()

    @classmethod
    def unavailable(cls, reason: str) -> "Signal":
        return cls(available=False, detail=reason)


class SuggestedRelation(BaseModel):
    """A relation proposed by the AI suggester."""
    source_id: str
    target_id: str
    confidence: float = 0.0
    rationale: str = ""


class RelationSuggestions(BaseModel):
    """Structured LLM output wrapper."""
    relations: list[SuggestedRelation] = []


# ── Capability graph ─────────────────────────────────────


class CapabilityEdge(BaseModel):
    """A typed, confidence-scored connection between two nodes."""
    source: str
    target: str
    type: EdgeType
    confidence: float = Field(ge=0.0, le=1.0)
    rationale: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def endpoints(self) -> frozenset[str]:
        return frozenset((self.source, self.target))

    @property
    def dedupe_key(self) -> tuple[str, str, EdgeType]:
        """Hierarchical edges keep direction; all other types are symmetric."""
        if self.type == EdgeType.HIERARCHICAL:
            return (self.source, self.target, self.type)
        a, b = sorted((self.source, self.target))
        return (a, b, self.type)


class CapabilityNode(BaseModel):
    """A task, or after clustering, a group of tasks forming one capability."""
    id: str
    name: str
    task_ids: list[str] = []
    progress: float = Field(0.0, ge=0.0, le=1.0)  # fraction of members done
    representative_task_id: Optional[str] = None
    description: str = ""
    keywords: list[str] = []
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    metadata: dict[str, Any] = {}

    model_config = {"frozen": True}

    @property
    def size(self) -> int:
        return len(self.task_ids)


class MapMetadata(BaseModel):
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    task_count: int = 0
    skipped_task_count: int = 0
    capability_count: int = 0
    edge_count: int = 0
    edge_type_counts: dict[str, int] = {}
    degraded_strategies: list[str] = []
    thresholds: dict[str, Any] = {}
    confidence: float = 0.0
    generation_stats: dict[str, Any] = {}

    model_config = {"frozen": True}


class CapabilityMap(BaseModel):
    """Root artifact handed to renderers.  Built fresh per run."""
    id: str
    nodes: list[CapabilityNode] = []
    edges: list[CapabilityEdge] = []
    metadata: MapMetadata = Field(default_factory=MapMetadata)

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node(self, node_id: str) -> Optional[CapabilityNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_for_task(self, task_id: str) -> Optional[CapabilityNode]:
        for node in self.nodes:
            if task_id in node.task_ids:
                return node
        return None


# ── Options ──────────────────────────────────────────────


class FuzzySearchOptions(BaseModel):
    threshold: float = Field(0.3, ge=0.0, le=1.0)
    max_results: Optional[int] = Field(None, ge=1)
    include_archived: bool = False
    substring_bonus: float = Field(0.2, ge=0.0, le=1.0)
    min_token_length: int = Field(2, ge=1)
    use_stop_words: bool = True

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "FuzzySearchOptions":
        values = {
            "threshold": settings.lexical_search_threshold,
            "substring_bonus": settings.substring_bonus,
            "min_token_length": settings.min_token_length,
            "use_stop_words": settings.use_stop_words,
        }
        values.update(overrides)
        return cls(**values)


class InferenceOptions(BaseModel):
    lexical_threshold: float = Field(0.4, ge=0.0, le=1.0)
    semantic_threshold: float = Field(0.6, ge=0.0, le=1.0)
    ai_acceptance_floor: float = Field(0.6, ge=0.0, le=1.0)
    hierarchical_confidence: float = Field(0.9, ge=0.0, le=1.0)
    enable_hierarchical: bool = True
    enable_lexical: bool = True
    enable_semantic: bool = True
    enable_ai: bool = True
    max_concurrency: int = Field(8, ge=1)
    semantic_timeout_seconds: Optional[float] = Field(None, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "InferenceOptions":
        values = {
            "lexical_threshold": settings.lexical_edge_threshold,
            "semantic_threshold": settings.semantic_edge_threshold,
            "ai_acceptance_floor": settings.ai_acceptance_floor,
            "hierarchical_confidence": settings.hierarchical_confidence,
            "enable_semantic": settings.enable_semantic,
            "enable_ai": settings.enable_ai_relations,
            "max_concurrency": settings.max_concurrency,
            "semantic_timeout_seconds": settings.semantic_timeout_seconds,
        }
        values.update(overrides)
        return cls(**values)


class ClusteringOptions(BaseModel):
    strong_threshold: float = Field(0.5, ge=0.0, le=1.0)
    min_cluster_size: int = Field(2, ge=1)
    include_singletons: bool = True
    max_capabilities: Optional[int] = Field(None, ge=1)
    overflow_policy: OverflowPolicy = OverflowPolicy.MERGE
    max_edges_per_capability: Optional[int] = Field(None, ge=1)
    keyword_count: int = Field(5, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ClusteringOptions":
        values = {
            "strong_threshold": settings.strong_connection_threshold,
            "min_cluster_size": settings.min_cluster_size,
            "include_singletons": settings.include_singletons,
            "max_capabilities": settings.max_capabilities,
            "overflow_policy": settings.overflow_policy,
            "max_edges_per_capability": settings.max_edges_per_capability,
        }
        values.update(overrides)
        return cls(**values)


class DiscoveryOptions(BaseModel):
    """Everything one generate() call needs."""
    include_completed_tasks: bool = True
    lexical: FuzzySearchOptions = Field(default_factory=FuzzySearchOptions)
    inference: InferenceOptions = Field(default_factory=InferenceOptions)
    clustering: ClusteringOptions = Field(default_factory=ClusteringOptions)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiscoveryOptions":
        return cls(
            lexical=FuzzySearchOptions.from_settings(settings),
            inference=InferenceOptions.from_settings(settings),
            clustering=ClusteringOptions.from_settings(settings),
        )
