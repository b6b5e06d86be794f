"""
Task Source — read-only task snapshot provider backed by a JSON export.

Accepts either a bare list of task objects or ``{"tasks": [...]}``.  Records
that fail validation are counted, not raised, so a single bad row does not
stop a capability run.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from capability_map.models.schemas import Task

logger = logging.getLogger(__name__)


class TaskSnapshot(BaseModel):
    """Point-in-time list of tasks plus the number of unreadable records."""
    tasks: list[Task] = []
    invalid_count: int = 0
    source: str = ""


def parse_tasks(records: Any, source: str = "") -> TaskSnapshot:
    """Validate raw task records into a snapshot."""
    if isinstance(records, dict):
        records = records.get("tasks", [])
    if not isinstance(records, list):
        raise ValueError(f"Expected a list of tasks in {source or 'input'}")

    tasks: list[Task] = []
    invalid = 0
    for index, record in enumerate(records):
        try:
            tasks.append(Task.model_validate(record))
        except ValidationError as exc:
            invalid += 1
            logger.debug(f"[SOURCE] Record {index} rejected: {exc.error_count()} errors")

    if invalid:
        logger.warning(f"[SOURCE] Skipped {invalid} invalid task records from {source or 'input'}")
    logger.info(f"[SOURCE] Loaded {len(tasks)} tasks from {source or 'input'}")
    return TaskSnapshot(tasks=tasks, invalid_count=invalid, source=source)


def load_tasks(path: str | Path) -> TaskSnapshot:
    """Load a task snapshot from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Task file not found: {path}")
    records = json.loads(path.read_text(encoding="utf-8"))
    return parse_tasks(records, source=str(path))
