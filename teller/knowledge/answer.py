"""Templated answers over retrieved citations."""

from __future__ import annotations

from dataclasses import dataclass, field

from teller.knowledge.models import Citation


@dataclass(frozen=True, slots=True)
class ComposedAnswer:
    answer: str
    citations: list[Citation] = field(default_factory=list)
    confidence: float = 0.0


def compose_answer(query: str, citations: list[Citation]) -> ComposedAnswer:
    if not citations:
        return ComposedAnswer(
            answer=(
                "I couldn't find anything reliable about that in what I've read so far. "
                "Send me a link to read, or rephrase the question."
            ),
        )
    highlights = "\n".join(f"• {c.excerpt} [{i}]" for i, c in enumerate(citations, start=1))
    answer = (
        "Based on what I've read:\n\n"
        f"{highlights}\n\n"
        f"In short, this ties back to {citations[0].title}."
    )
    return ComposedAnswer(answer=answer, citations=list(citations), confidence=0.8)


def format_citations(citations: list[Citation]) -> str:
    if not citations:
        return ""
    lines = [f"[{i}] {c.title}" + (f" {c.url}" if c.url else "") for i, c in enumerate(citations, start=1)]
    return "\n\nSources:\n" + "\n".join(lines)
