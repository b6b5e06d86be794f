"""
Tests: Edge inference strategies and the pairwise engine.

Run with:
    pytest capability_map/tests/test_inference.py -v
"""

import asyncio

import pytest
from pydantic import ValidationError

from capability_map.engine.context import EngineContext
from capability_map.engine.inference import EdgeInferenceEngine, partition_tasks
from capability_map.engine.strategies import (
    HierarchicalStrategy,
    LexicalOverlapStrategy,
    SemanticStrategy,
)
from capability_map.matching.semantic import FunctionSemanticMatcher
from capability_map.models.enums import EdgeType
from capability_map.models.schemas import InferenceOptions, SimilarityScore, SuggestedRelation, Task
from capability_map.services.relation_suggester import RelationSuggester


def _login_tasks() -> list[Task]:
    return [
        Task(id="T1", title="Implement login"),
        Task(id="T2", title="Add login form"),
        Task(id="T3", title="Write unit tests for payments"),
    ]


def _infer(tasks, **option_overrides):
    semantic = option_overrides.pop("semantic_matcher", None)
    suggester = option_overrides.pop("relation_suggester", None)
    engine = EdgeInferenceEngine.from_options(
        InferenceOptions(**option_overrides),
        semantic_matcher=semantic,
        relation_suggester=suggester,
    )
    return asyncio.run(engine.infer(tasks))


def _pairs(edges, edge_type):
    return {frozenset((e.source, e.target)) for e in edges if e.type == edge_type}


class _FixedSuggester(RelationSuggester):
    def __init__(self, relations):
        self.relations = relations
        self.calls = 0

    async def suggest_relations(self, tasks):
        self.calls += 1
        return self.relations


class _BrokenSuggester(RelationSuggester):
    async def suggest_relations(self, tasks):
        raise ConnectionError("provider offline")


class TestLexicalEdges:
    def test_login_tasks_connected(self):
        result = _infer(_login_tasks(), lexical_threshold=0.4)
        overlap = [e for e in result.edges if e.type == EdgeType.TASK_OVERLAP]
        assert _pairs(result.edges, EdgeType.TASK_OVERLAP) == {frozenset(("T1", "T2"))}
        assert overlap[0].confidence >= 0.4
        assert "login" in overlap[0].rationale

    def test_confidence_never_below_threshold(self):
        tasks = _login_tasks() + [
            Task(id="T5", title="Login rate limiting", tags=["security"]),
            Task(id="T6", title="Payments retry queue"),
        ]
        result = _infer(tasks, lexical_threshold=0.3)
        for edge in result.edges:
            if edge.type == EdgeType.TASK_OVERLAP:
                assert 0.3 <= edge.confidence <= 1.0


class TestHierarchicalEdges:
    def test_parent_child_always_connected(self):
        tasks = _login_tasks() + [Task(id="T4", title="Quarterly budget review", parent_id="T1")]
        result = _infer(tasks, hierarchical_confidence=0.9)
        hierarchical = [e for e in result.edges if e.type == EdgeType.HIERARCHICAL]
        assert len(hierarchical) == 1
        assert (hierarchical[0].source, hierarchical[0].target) == ("T1", "T4")
        assert hierarchical[0].confidence == 0.9

    def test_direction_follows_parent(self):
        strategy = HierarchicalStrategy(confidence=0.9)
        parent = Task(id="1", title="Parent")
        child = Task(id="1.1", title="Child", parent_id="1")
        assert strategy.orient(child, parent) == ("1", "1.1")
        assert asyncio.run(strategy.score(child, parent)).value == 0.9

    def test_unrelated_pair_has_no_signal(self):
        strategy = HierarchicalStrategy()
        signal = asyncio.run(strategy.score(Task(id="a", title="A"), Task(id="b", title="B")))
        assert signal.available and signal.value is None


class TestSemanticEdges:
    def test_scores_above_threshold_become_edges(self):
        def score(a, b):
            return 0.85 if {a.id, b.id} == {"T1", "T3"} else 0.2

        result = _infer(
            _login_tasks(),
            semantic_threshold=0.6,
            semantic_matcher=FunctionSemanticMatcher(score),
        )
        semantic = [e for e in result.edges if e.type == EdgeType.SEMANTIC]
        assert len(semantic) == 1
        assert semantic[0].confidence == pytest.approx(0.85)

    def test_matcher_failure_degrades_gracefully(self):
        def explode(a, b):
            raise RuntimeError("model not loaded")

        result = _infer(_login_tasks(), semantic_matcher=FunctionSemanticMatcher(explode))
        assert result.degraded_strategies == ["semantic"]
        assert not _pairs(result.edges, EdgeType.SEMANTIC)
        assert _pairs(result.edges, EdgeType.TASK_OVERLAP) == {frozenset(("T1", "T2"))}

    def test_timeout_counts_as_unavailable(self):
        async def slow(a, b):
            await asyncio.sleep(5)
            return 1.0

        strategy = SemanticStrategy(FunctionSemanticMatcher(slow), timeout_seconds=0.01)
        signal = asyncio.run(strategy.score(Task(id="a", title="A"), Task(id="b", title="B")))
        assert not signal.available
        assert "timed out" in signal.detail

    def test_out_of_range_scores_clamped(self):
        strategy = SemanticStrategy(FunctionSemanticMatcher(lambda a, b: 1.7), threshold=0.5)
        signal = asyncio.run(strategy.score(Task(id="a", title="A"), Task(id="b", title="B")))
        assert signal.value == 1.0


class TestAIEdges:
    def test_only_confident_known_pairs_accepted(self):
        suggester = _FixedSuggester([
            SuggestedRelation(source_id="T1", target_id="T3", confidence=0.8, rationale="auth before billing"),
            SuggestedRelation(source_id="T2", target_id="T3", confidence=0.3),
            SuggestedRelation(source_id="T1", target_id="T1", confidence=0.99),
            SuggestedRelation(source_id="T1", target_id="missing", confidence=0.9),
        ])
        result = _infer(_login_tasks(), ai_acceptance_floor=0.6, relation_suggester=suggester)
        ai_edges = [e for e in result.edges if e.type == EdgeType.AI_INFERRED]
        assert len(ai_edges) == 1
        assert (ai_edges[0].source, ai_edges[0].target) == ("T1", "T3")
        assert ai_edges[0].confidence == 0.8
        assert ai_edges[0].rationale == "auth before billing"
        assert suggester.calls == 1

    def test_suggester_failure_degrades_gracefully(self):
        result = _infer(_login_tasks(), relation_suggester=_BrokenSuggester())
        assert "ai" in result.degraded_strategies
        assert _pairs(result.edges, EdgeType.TASK_OVERLAP) == {frozenset(("T1", "T2"))}

    def test_disabled_ai_not_called(self):
        suggester = _FixedSuggester([])
        _infer(_login_tasks(), enable_ai=False, relation_suggester=suggester)
        assert suggester.calls == 0


class TestEngine:
    def test_multiple_types_per_pair_kept(self):
        result = _infer(
            _login_tasks(),
            semantic_matcher=FunctionSemanticMatcher(lambda a, b: 0.9),
        )
        types = {e.type for e in result.edges if {e.source, e.target} == {"T1", "T2"}}
        assert types == {EdgeType.TASK_OVERLAP, EdgeType.SEMANTIC}

    def test_malformed_tasks_skipped(self):
        tasks = _login_tasks() + [
            Task(id="", title="No id"),
            Task(id="T9", title="   "),
            Task(id="T1", title="Duplicate login id"),
        ]
        result = _infer(tasks)
        assert result.skipped_task_count == 3
        assert [t.id for t in result.tasks] == ["T1", "T2", "T3"]
        assert result.evaluated_pairs == 3

    def test_worker_count_does_not_change_edges(self):
        tasks = _login_tasks() + [
            Task(id=f"L{i}", title=f"Login screen variant {i}") for i in range(6)
        ]
        single = _infer(tasks, max_concurrency=1)
        pooled = _infer(tasks, max_concurrency=8)
        assert single.edges == pooled.edges

    def test_empty_snapshot(self):
        result = _infer([])
        assert result.edges == []
        assert result.evaluated_pairs == 0

    def test_context_collects_counters(self):
        engine = EdgeInferenceEngine([LexicalOverlapStrategy(threshold=0.4)])
        context = EngineContext()
        asyncio.run(engine.infer(_login_tasks(), context))
        assert context.counters["lexical.edges"] == 1
        assert context.counters["pairs"] == 3
        assert "pairs" in context.timings_ms


class TestConfigurationErrors:
    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError):
            InferenceOptions(lexical_threshold=1.5)

    def test_strategy_threshold_out_of_range(self):
        with pytest.raises(ValueError):
            LexicalOverlapStrategy(threshold=-0.1)

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            EdgeInferenceEngine([], max_concurrency=0)

    def test_similarity_score_range_and_immutability(self):
        score = SimilarityScore(source_id="T1", target_id="T2", value=0.5)
        with pytest.raises(ValidationError):
            SimilarityScore(source_id="T1", target_id="T2", value=1.2)
        with pytest.raises(ValidationError):
            score.value = 0.9


class TestPartitionTasks:
    def test_sorted_by_id(self):
        valid, skipped = partition_tasks([Task(id="b", title="B"), Task(id="a", title="A")])
        assert [t.id for t in valid] == ["a", "b"]
        assert skipped == 0
