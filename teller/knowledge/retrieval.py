"""Merged ranking over knowledge passages and the user's episodic log."""

from __future__ import annotations

from datetime import datetime

from teller.brain.normalize import normalize_text, tokenize
from teller.knowledge.index import SqliteKnowledgeIndex
from teller.knowledge.models import RetrievalHit
from teller.memory.service import MemoryManager
from teller.utils.helpers import parse_iso, utc_now

TITLE_POINTS = 10.0
BODY_POINTS = 2.0
LOG_POINTS = 5.0
RECENCY_DAYS = 10.0


class RetrievalEngine:
    """KB hits score 10 per query token in the title, else 2 per token in the body.

    Log hits score 5 per token plus a recency bonus of ``max(0, 10 - days_ago)``
    that only applies once some token matched.
    """

    def __init__(
        self,
        index: SqliteKnowledgeIndex,
        memory: MemoryManager,
        *,
        top_n: int = 7,
        confident_score: float = 20.0,
    ) -> None:
        self._index = index
        self._memory = memory
        self.top_n = top_n
        self.confident_score = confident_score

    def retrieve(self, user_id: str, query: str, *, now: datetime | None = None) -> list[RetrievalHit]:
        tokens = tokenize(query)
        if not tokens:
            return []
        hits = self._score_passages(tokens, query) + self._score_episodes(user_id, tokens, now or utc_now())
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[: self.top_n]

    def is_confident(self, hit: RetrievalHit) -> bool:
        return hit.score > self.confident_score

    def _score_passages(self, tokens: list[str], query: str) -> list[RetrievalHit]:
        hits: list[RetrievalHit] = []
        for passage, title in self._index.candidate_passages(query):
            norm_title = normalize_text(title)
            norm_body = normalize_text(passage.excerpt)
            score = 0.0
            for token in tokens:
                if token in norm_title:
                    score += TITLE_POINTS
                elif token in norm_body:
                    score += BODY_POINTS
            if score > 0:
                hits.append(
                    RetrievalHit(
                        source="kb",
                        text=passage.excerpt,
                        score=score,
                        title=title,
                        meta={"document_id": passage.document_id},
                    )
                )
        return hits

    def _score_episodes(self, user_id: str, tokens: list[str], now: datetime) -> list[RetrievalHit]:
        hits: list[RetrievalHit] = []
        for episode in self._memory.recent_episodes(user_id, self._memory.episode_retention):
            haystack = normalize_text(f"{episode.input_text} {episode.intent} {episode.output_text}")
            score = sum(LOG_POINTS for token in tokens if token in haystack)
            if score <= 0:
                continue
            days_ago = (now - parse_iso(episode.ts)).total_seconds() / 86400.0
            score += max(0.0, RECENCY_DAYS - days_ago)
            hits.append(RetrievalHit(source="log", text=episode.input_text, score=score, ts=episode.ts))
        return hits
