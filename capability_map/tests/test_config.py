"""
Tests: Settings validation and option construction.

Run with:
    pytest capability_map/tests/test_config.py -v
"""

import pytest
from pydantic import ValidationError

from capability_map.config import Settings, get_settings
from capability_map.models.enums import OverflowPolicy
from capability_map.models.schemas import ClusteringOptions, DiscoveryOptions, FuzzySearchOptions


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.lexical_edge_threshold == 0.4
        assert settings.semantic_weight == 0.7
        assert settings.hierarchical_confidence == 0.9
        assert settings.overflow_policy == OverflowPolicy.MERGE

    @pytest.mark.parametrize("field,value", [
        ("lexical_edge_threshold", 1.5),
        ("semantic_edge_threshold", -0.1),
        ("semantic_weight", -0.5),
        ("strong_connection_threshold", 2.0),
        ("max_concurrency", 0),
    ])
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("STRONG_CONNECTION_THRESHOLD", "0.75")
        monkeypatch.setenv("OVERFLOW_POLICY", "drop")
        settings = Settings()
        assert settings.strong_connection_threshold == 0.75
        assert settings.overflow_policy == OverflowPolicy.DROP

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestOptionsFromSettings:
    def test_discovery_options_follow_settings(self):
        settings = Settings(
            lexical_edge_threshold=0.5,
            lexical_search_threshold=0.2,
            strong_connection_threshold=0.6,
            enable_ai_relations=True,
        )
        options = DiscoveryOptions.from_settings(settings)
        assert options.inference.lexical_threshold == 0.5
        assert options.inference.enable_ai is True
        assert options.lexical.threshold == 0.2
        assert options.clustering.strong_threshold == 0.6
        assert options.include_completed_tasks is True

    def test_overrides_win(self):
        options = ClusteringOptions.from_settings(Settings(), include_singletons=False)
        assert options.include_singletons is False

    def test_invalid_override_rejected(self):
        with pytest.raises(ValidationError):
            FuzzySearchOptions.from_settings(Settings(), threshold=3.0)
