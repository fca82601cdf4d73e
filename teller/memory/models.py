"""Typed memory records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True, kw_only=True)
class MemoryFact:
    """One keyed long-term fact about a user; unique per (user_id, key)."""

    user_id: str
    key: str
    value: str
    confidence: float = 1.0
    updated_at: str
    deprecated: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class EpisodeEntry:
    """One append-only interaction record."""

    id: int
    user_id: str
    ts: str
    input_text: str
    intent: str
    entities: dict[str, Any] = field(default_factory=dict)
    output_text: str = ""
