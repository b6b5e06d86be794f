"""
Application configuration using Pydantic Settings.
All thresholds, weights and collaborator settings are centralized here.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field

from capability_map.models.enums import OverflowPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "Capability Map"
    log_level: str = "INFO"

    # ── Lexical matching ─────────────────────────────────
    lexical_search_threshold: float = Field(0.3, ge=0.0, le=1.0)
    lexical_edge_threshold: float = Field(0.4, ge=0.0, le=1.0)
    substring_bonus: float = Field(0.2, ge=0.0, le=1.0)
    min_token_length: int = Field(2, ge=1)
    use_stop_words: bool = True

    # ── Semantic matching ────────────────────────────────
    enable_semantic: bool = True
    embedding_model: str = "all-MiniLM-L6-v2"
    semantic_edge_threshold: float = Field(0.6, ge=0.0, le=1.0)
    semantic_weight: float = Field(0.7, ge=0.0, le=1.0)
    semantic_timeout_seconds: Optional[float] = Field(None, gt=0)

    # ── AI relation suggestions ──────────────────────────
    enable_ai_relations: bool = False
    groq_api_key: str = ""
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    ai_acceptance_floor: float = Field(0.6, ge=0.0, le=1.0)

    # ── Structure ────────────────────────────────────────
    hierarchical_confidence: float = Field(0.9, ge=0.0, le=1.0)

    # ── Clustering ───────────────────────────────────────
    strong_connection_threshold: float = Field(0.5, ge=0.0, le=1.0)
    min_cluster_size: int = Field(2, ge=1)
    include_singletons: bool = True
    max_capabilities: Optional[int] = Field(None, ge=1)
    overflow_policy: OverflowPolicy = OverflowPolicy.MERGE
    max_edges_per_capability: Optional[int] = Field(None, ge=1)

    # ── Concurrency ──────────────────────────────────────
    max_concurrency: int = Field(8, ge=1)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
