"""
Hashing utilities for stable, content-derived identifiers.
"""

from __future__ import annotations

import hashlib
import json


def sha256_hash(content: str | bytes) -> str:
    """Return the SHA-256 hex digest of the given content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def short_id(parts: list[str], prefix: str = "", length: int = 12) -> str:
    """Deterministic id for a set of members: same members, same id."""
    raw = json.dumps(sorted(parts), ensure_ascii=True, separators=(",", ":"))
    return f"{prefix}{sha256_hash(raw)[:length]}"
