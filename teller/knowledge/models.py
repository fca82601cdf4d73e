"""Knowledge base records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

HitSource: TypeAlias = Literal["kb", "log"]


@dataclass(frozen=True, slots=True, kw_only=True)
class KnowledgeDocument:
    id: str
    title: str
    source: str
    url: str | None
    content_hash: str
    tldr: str = ""
    bullets: tuple[str, ...] = ()
    facts: tuple[str, ...] = ()
    created_at: str


@dataclass(frozen=True, slots=True, kw_only=True)
class Passage:
    id: str
    document_id: str
    idx: int
    excerpt: str


@dataclass(frozen=True, slots=True, kw_only=True)
class Citation:
    document_id: str
    title: str
    url: str | None
    excerpt: str
    score: float = 0.0


@dataclass(frozen=True, slots=True, kw_only=True)
class IngestResult:
    document: KnowledgeDocument
    created: bool
    passages: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class RetrievalHit:
    source: HitSource
    text: str
    score: float
    title: str | None = None
    ts: str | None = None
    meta: dict[str, str] = field(default_factory=dict)
