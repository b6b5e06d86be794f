from enum import Enum

class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

class TaskReadiness(str, Enum):
    DRAFT = "draft"
    READY = "ready"
    BLOCKED = "blocked"

class EdgeType(str, Enum):
    HIERARCHICAL = "hierarchical"
    TASK_OVERLAP = "task-overlap"
    SEMANTIC = "semantic"
    AI_INFERRED = "ai-inferred"

class OverflowPolicy(str, Enum):
    MERGE = "merge"   # extra clusters collapse into one "Other" capability
    DROP = "drop"
