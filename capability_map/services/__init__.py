"""Services — LLM client, AI relation suggester, task snapshot source."""

from capability_map.services.relation_suggester import LLMRelationSuggester, RelationSuggester
from capability_map.services.task_source import TaskSnapshot, load_tasks, parse_tasks

__all__ = [
    "LLMRelationSuggester",
    "RelationSuggester",
    "TaskSnapshot",
    "load_tasks",
    "parse_tasks",
]
