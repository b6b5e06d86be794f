"""
Tests: Task source, AI relation suggester and hybrid search.

The LLM call is monkeypatched, so no API key or network is needed.

Run with:
    pytest capability_map/tests/test_services.py -v
"""

import asyncio
import json

import pytest

from capability_map.matching.search import search_tasks, semantic_search
from capability_map.matching.semantic import EmbeddingSemanticMatcher, FunctionSemanticMatcher
from capability_map.models.enums import TaskStatus
from capability_map.models.schemas import (
    FuzzySearchOptions,
    RelationSuggestions,
    SuggestedRelation,
    Task,
)
from capability_map.services import relation_suggester
from capability_map.services.relation_suggester import LLMRelationSuggester
from capability_map.services.task_source import load_tasks, parse_tasks


# ═══════════════════════════════════════════════════════════
#  Task source
# ═══════════════════════════════════════════════════════════


class TestParseTasks:
    def test_valid_records(self):
        snapshot = parse_tasks([
            {"id": "T1", "title": "Implement login", "status": "done", "tags": None},
            {"id": "T2", "title": "Login form", "parentId": "T1", "readiness": "ready"},
        ])
        assert [t.id for t in snapshot.tasks] == ["T1", "T2"]
        assert snapshot.tasks[0].status == TaskStatus.DONE
        assert snapshot.tasks[0].tags == []
        assert snapshot.tasks[1].parent_id == "T1"
        assert snapshot.invalid_count == 0

    def test_invalid_records_counted(self):
        snapshot = parse_tasks({
            "tasks": [
                {"id": "T1", "title": "Fine"},
                {"id": "T2", "title": "Bad status", "status": "someday"},
                {"id": "T3", "title": ["not", "text"]},
            ]
        })
        assert len(snapshot.tasks) == 1
        assert snapshot.invalid_count == 2

    def test_non_list_rejected(self):
        with pytest.raises(ValueError):
            parse_tasks("tasks")


class TestLoadTasks:
    def test_reads_json_file(self, tmp_path):
        path = tmp_path / "tasks.json"
        path.write_text(json.dumps([{"id": "T1", "title": "Implement login"}]), encoding="utf-8")
        snapshot = load_tasks(path)
        assert snapshot.tasks[0].title == "Implement login"
        assert snapshot.source == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_tasks(tmp_path / "absent.json")


# ═══════════════════════════════════════════════════════════
#  AI relation suggester
# ═══════════════════════════════════════════════════════════


class TestLLMRelationSuggester:
    def test_prompt_contains_tasks(self):
        prompt = LLMRelationSuggester().build_prompt([
            Task(id="T1", title="Implement login"),
            Task(id="T2", title="Login form", parent_id="T1"),
        ])
        assert '"id": "T1"' in prompt
        assert '"parent_id": "T1"' in prompt
        assert "{tasks_json}" not in prompt

    def test_structured_call(self, monkeypatch):
        captured = {}

        def fake_call(prompt, output_model):
            captured["model"] = output_model
            return RelationSuggestions(relations=[
                SuggestedRelation(source_id="T1", target_id="T2", confidence=0.8),
            ])

        monkeypatch.setattr(relation_suggester, "llm_json_call", fake_call)
        tasks = [Task(id="T1", title="Implement login"), Task(id="T2", title="Login form")]
        relations = asyncio.run(LLMRelationSuggester().suggest_relations(tasks))
        assert captured["model"] is RelationSuggestions
        assert relations[0].target_id == "T2"

    def test_fewer_than_two_tasks_skips_call(self, monkeypatch):
        def fail(prompt, output_model):
            raise AssertionError("LLM should not be called")

        monkeypatch.setattr(relation_suggester, "llm_json_call", fail)
        assert asyncio.run(LLMRelationSuggester().suggest_relations([Task(id="T1", title="x")])) == []

    def test_errors_propagate_to_caller(self, monkeypatch):
        def fail(prompt, output_model):
            raise ValueError("GROQ_API_KEY is not set")

        monkeypatch.setattr(relation_suggester, "llm_json_call", fail)
        tasks = [Task(id="T1", title="a"), Task(id="T2", title="b")]
        with pytest.raises(ValueError):
            asyncio.run(LLMRelationSuggester().suggest_relations(tasks))


# ═══════════════════════════════════════════════════════════
#  Hybrid search
# ═══════════════════════════════════════════════════════════


def _search_tasks() -> list[Task]:
    return [
        Task(id="1", title="Implement login form"),
        Task(id="2", title="Payments export"),
        Task(id="3", title="Login audit", metadata={"archived": True}),
    ]


def _semantic(a, b):
    return 0.9 if b.id == "1" else 0.4


class TestSearch:
    def test_semantic_search_skips_archived(self):
        results = asyncio.run(
            semantic_search(_search_tasks(), "sign in", FunctionSemanticMatcher(_semantic))
        )
        assert [r.task.id for r in results] == ["1", "2"]

    def test_hybrid_fuses_both_signals(self):
        results = asyncio.run(search_tasks(
            _search_tasks(),
            "login",
            matcher=FunctionSemanticMatcher(_semantic),
            options=FuzzySearchOptions(threshold=0.0),
            semantic_weight=0.7,
        ))
        scores = {r.task.id: r.score for r in results}
        assert [r.task.id for r in results] == ["1", "2"]
        assert scores["1"] == pytest.approx(0.7 * 0.9 + 0.3 * 0.7)
        assert scores["2"] == pytest.approx(0.7 * 0.4)

    def test_matcher_failure_falls_back_to_lexical(self):
        def explode(a, b):
            raise RuntimeError("no model")

        results = asyncio.run(search_tasks(
            _search_tasks(),
            "login",
            matcher=FunctionSemanticMatcher(explode),
            options=FuzzySearchOptions(threshold=0.0),
        ))
        assert [r.task.id for r in results] == ["1"]
        assert results[0].score == pytest.approx(0.7)

    def test_result_limit_applies_after_fusion(self):
        tasks = [Task(id="A", title="Login form"), Task(id="B", title="Login page")]

        def score(a, b):
            return 0.2 if b.id == "A" else 1.0

        def run(max_results):
            return asyncio.run(search_tasks(
                tasks,
                "login form",
                matcher=FunctionSemanticMatcher(score),
                options=FuzzySearchOptions(threshold=0.0, max_results=max_results),
                semantic_weight=0.5,
            ))

        full = run(None)
        assert [r.task.id for r in full] == ["B", "A"]
        top = run(1)
        assert [(r.task.id, r.score) for r in top] == [(full[0].task.id, full[0].score)]

    def test_result_limit_applies_to_lexical_fallback(self):
        def explode(a, b):
            raise RuntimeError("no model")

        results = asyncio.run(search_tasks(
            _search_tasks() + [Task(id="4", title="Login page")],
            "login",
            matcher=FunctionSemanticMatcher(explode),
            options=FuzzySearchOptions(threshold=0.0, max_results=1),
        ))
        assert len(results) == 1

    def test_lexical_only_without_matcher(self):
        results = asyncio.run(search_tasks(_search_tasks(), "payments"))
        assert [r.task.id for r in results] == ["2"]

    def test_empty_query(self):
        results = asyncio.run(
            search_tasks(_search_tasks(), "  ", matcher=FunctionSemanticMatcher(_semantic))
        )
        assert results == []


# ═══════════════════════════════════════════════════════════
#  Embedding matcher
# ═══════════════════════════════════════════════════════════


class _FakeEmbedder:
    def __init__(self):
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        return [[1.0, float(len(t))] for t in texts]


class TestEmbeddingSemanticMatcher:
    def test_cache_holds_only_current_run(self):
        embedder = _FakeEmbedder()
        matcher = EmbeddingSemanticMatcher(model=embedder)
        asyncio.run(matcher.prepare([Task(id="1", title="alpha"), Task(id="2", title="beta")]))
        asyncio.run(matcher.prepare([Task(id="3", title="gamma"), Task(id="2", title="beta")]))
        assert set(matcher._vectors) == {"beta", "gamma"}
        assert embedder.calls == [["alpha", "beta"], ["gamma"]]

    def test_identical_text_scores_one(self):
        matcher = EmbeddingSemanticMatcher(model=_FakeEmbedder())
        a, b = Task(id="1", title="beta"), Task(id="2", title="beta")
        asyncio.run(matcher.prepare([a, b]))
        assert asyncio.run(matcher.similarity(a, b)) == pytest.approx(1.0)

    def test_unprepared_pair_embedded_on_demand(self):
        embedder = _FakeEmbedder()
        matcher = EmbeddingSemanticMatcher(model=embedder)
        score = asyncio.run(matcher.similarity(Task(id="1", title="ab"), Task(id="2", title="abcd")))
        assert 0.0 < score < 1.0
        assert embedder.calls == [["ab", "abcd"]]
