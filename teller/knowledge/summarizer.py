"""Frequency-based extractive summaries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from teller.brain.normalize import tokenize

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?؟])\s+|\n+")
_FACT_RE = re.compile(r"\b\d+\b|0x[a-fA-F0-9]{40}")


@dataclass(frozen=True, slots=True)
class Summary:
    tldr: str
    bullets: list[str] = field(default_factory=list)
    facts: list[str] = field(default_factory=list)


def split_sentences(text: str) -> list[str]:
    parts = (p.strip(" -#\t") for p in _SENTENCE_SPLIT_RE.split(text or ""))
    return [p for p in parts if len(p) > 20]


def summarize(text: str) -> Summary:
    """TL;DR from the two densest sentences, up to eight bullets, up to five facts."""
    sentences = split_sentences(text)
    if not sentences:
        return Summary(tldr="Not enough content to summarize.")

    counts: dict[str, int] = {}
    for word in tokenize(text):
        if len(word) > 3:
            counts[word] = counts.get(word, 0) + 1

    def score(sentence: str) -> float:
        words = tokenize(sentence)
        return sum(counts.get(w, 0) for w in words) / (len(words) + 1)

    ranked = sorted(sentences, key=score, reverse=True)
    tldr = ". ".join(s.rstrip(".") for s in ranked[:2]) + "."
    facts = [s for s in sentences if _FACT_RE.search(s)][:5]
    return Summary(tldr=tldr, bullets=ranked[2:10], facts=facts)
