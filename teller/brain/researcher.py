"""Deep research: ask the fallback router for a report and keep it in the knowledge base."""

from __future__ import annotations

import re

from loguru import logger

from teller.knowledge.index import SqliteKnowledgeIndex
from teller.providers.router import FallbackProviderRouter

_TRIGGER_RE = re.compile(r"deep research|research|بحث عميق|البحث العميق|دور اوي|بحث|search", re.IGNORECASE)

RESEARCH_PROMPT = (
    "Research the following topic for a crypto wallet user and write a compact report. "
    "Lead with the facts, flag anything uncertain, and end with one practical takeaway.\n\nTopic: {topic}"
)
UNAVAILABLE_REPLY = "I couldn't complete the research right now. Try again in a bit."


def research_topic(text: str) -> str:
    return _TRIGGER_RE.sub(" ", text or "").strip(" :-\t\n")


class Researcher:
    def __init__(self, router: FallbackProviderRouter, index: SqliteKnowledgeIndex) -> None:
        self._router = router
        self._index = index

    async def research(self, topic: str) -> str:
        """Return a synthesized report; successful reports are indexed as documents."""
        result = await self._router.ask(RESEARCH_PROMPT.format(topic=topic))
        if not result.ok:
            logger.warning("Research via {} failed status={} error={}", result.provider, result.status, result.error)
            return UNAVAILABLE_REPLY
        try:
            self._index.add_document(
                title=f"Research: {topic[:60]}",
                content=result.text,
                source="deep_research",
            )
        except Exception as e:
            logger.warning("Could not index research on {!r}: {}", topic, e)
        return result.text
