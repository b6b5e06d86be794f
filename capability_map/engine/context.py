"""
Engine context — per-run instrumentation passed explicitly through the engine.

Collects stage timings, counters and degradation notes for one capability
run.  A fresh context is created for every run; nothing here is global.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from contextlib import contextmanager
from typing import Any, Iterator

logger = logging.getLogger(__name__)


class EngineContext:
    """Timings, counters and degraded-signal bookkeeping for one run."""

    def __init__(self) -> None:
        self.timings_ms: dict[str, float] = {}
        self.counters: Counter[str] = Counter()
        self.degraded: dict[str, list[str]] = {}

    @contextmanager
    def track(self, stage: str) -> Iterator[None]:
        """Time a stage; repeated stages accumulate."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - t0) * 1000.0
            self.timings_ms[stage] = self.timings_ms.get(stage, 0.0) + elapsed
            logger.debug(f"[CONTEXT] {stage} took {elapsed:.1f}ms")

    def count(self, key: str, amount: int = 1) -> None:
        self.counters[key] += amount

    def mark_degraded(self, strategy: str, reason: str) -> None:
        """Record that *strategy* lost its signal for at least one pair."""
        reasons = self.degraded.setdefault(strategy, [])
        # Keep a handful of distinct reasons; the count lives in counters.
        if reason not in reasons and len(reasons) < 5:
            reasons.append(reason)
        self.counters[f"{strategy}.unavailable"] += 1

    @property
    def degraded_strategies(self) -> list[str]:
        return sorted(self.degraded)

    def summary(self) -> dict[str, Any]:
        return {
            "timings_ms": {k: round(v, 3) for k, v in self.timings_ms.items()},
            "counters": dict(self.counters),
            "degraded": {k: list(v) for k, v in self.degraded.items()},
        }
