"""
AI Relation Suggester — asks an LLM which tasks belong together.

Contract: ``await suggester.suggest_relations(tasks)`` returns a list of
SuggestedRelation.  Confidence filtering and id validation are the inference
engine's job, not the suggester's.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from capability_map.models.schemas import RelationSuggestions, SuggestedRelation, Task
from capability_map.services.llm_service import llm_json_call

logger = logging.getLogger(__name__)

_PROMPT_PATH = (
    Path(__file__).resolve().parent.parent
    / "prompts"
    / "relation_suggestion_prompt.txt"
)


class RelationSuggester(ABC):
    """Abstract base for AI relation collaborators."""

    name: str = "ai"

    @abstractmethod
    async def suggest_relations(self, tasks: Sequence[Task]) -> list[SuggestedRelation]:
        ...


class LLMRelationSuggester(RelationSuggester):
    """Prompt-driven suggester backed by the Groq chat model."""

    name = "llm"

    def __init__(self, max_tasks: int = 150, max_prompt_chars: int = 12_000):
        self.max_tasks = max_tasks
        self.max_prompt_chars = max_prompt_chars

    def build_prompt(self, tasks: Sequence[Task]) -> str:
        template = _PROMPT_PATH.read_text(encoding="utf-8")
        corpus = [
            {
                "id": t.id,
                "title": t.title,
                "description": (t.description or "")[:300],
                "tags": t.tags,
                "parent_id": t.parent_id,
            }
            for t in list(tasks)[: self.max_tasks]
        ]
        tasks_json = json.dumps(corpus, indent=2)
        return template.format(tasks_json=tasks_json[: self.max_prompt_chars])

    async def suggest_relations(self, tasks: Sequence[Task]) -> list[SuggestedRelation]:
        if len(tasks) < 2:
            return []
        if len(tasks) > self.max_tasks:
            logger.warning(
                f"[AI] {len(tasks)} tasks exceed the prompt cap; "
                f"only the first {self.max_tasks} are sent"
            )

        prompt = self.build_prompt(tasks)
        logger.info(f"[AI] Requesting relation suggestions ({len(prompt)} char prompt)")
        result = await asyncio.to_thread(llm_json_call, prompt, RelationSuggestions)
        logger.info(f"[AI] Received {len(result.relations)} suggested relations")
        return list(result.relations)
