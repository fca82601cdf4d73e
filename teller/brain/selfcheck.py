"""Reply-variety guard applied before a draft reply is sent."""

from __future__ import annotations

import random
from collections.abc import Sequence

from teller.brain.normalize import normalize_text

OPENINGS: tuple[str, ...] = (
    "Hey {name},",
    "Look,",
    "Alright {name},",
    "So here's the thing,",
    "Quick one,",
    "Okay {name},",
    "Right,",
    "Good question,",
)

CLOSINGS: tuple[str, ...] = (
    "Anything else?",
    "Want me to change anything?",
    "Does that work?",
    "I'm around if you need more.",
    "Let me know what's next.",
    "Clear enough?",
    "Happy to dig deeper.",
    "Shout if something looks off.",
)

# Normalized opening text before any name, e.g. "alright" or "good question".
_OPENING_LEADS: tuple[str, ...] = tuple(normalize_text(o.split("{name}")[0]) for o in OPENINGS)


def similarity(a: str, b: str) -> float:
    """Token Jaccard over normalized tokens longer than two characters."""
    tokens_a = {t for t in normalize_text(a).split(" ") if len(t) > 2}
    tokens_b = {t for t in normalize_text(b).split(" ") if len(t) > 2}
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


class SelfChecker:
    """Decides whether a draft needs an opening/closing wrapper and applies one."""

    def __init__(
        self,
        *,
        any_threshold: float = 0.6,
        latest_threshold: float = 0.5,
        markers: Sequence[str] = ("hey", "look", "يا", "بص"),
        rng: random.Random | None = None,
    ) -> None:
        self.any_threshold = any_threshold
        self.latest_threshold = latest_threshold
        self.markers = tuple(normalize_text(m) for m in markers if m.strip())
        self._rng = rng or random.Random()

    def needs_rewrite(self, draft: str, recent_replies: Sequence[str]) -> bool:
        """*recent_replies* is ordered most recent first."""
        if recent_replies:
            if similarity(draft, recent_replies[0]) > self.latest_threshold:
                return True
            if any(similarity(draft, r) > self.any_threshold for r in recent_replies):
                return True
        return not self.has_marker(draft)

    def has_marker(self, draft: str) -> bool:
        """A configured marker word, or a draft that already opens like a rewrite."""
        normalized = normalize_text(draft)
        words = set(normalized.split(" "))
        if any(m in words for m in self.markers):
            return True
        return any(normalized == lead or normalized.startswith(lead + " ") for lead in _OPENING_LEADS)

    def rewrite(self, draft: str, name: str, recent_replies: Sequence[str]) -> str:
        openings = [o.replace("{name}", name) for o in OPENINGS]
        fresh_openings = [o for o in openings if not any(o in r for r in recent_replies)]
        fresh_closings = [c for c in CLOSINGS if not any(c in r for r in recent_replies)]
        opening = self._rng.choice(fresh_openings or openings)
        closing = self._rng.choice(fresh_closings or list(CLOSINGS))
        return f"{opening} {draft} {closing}"

    def check(self, draft: str, name: str, recent_replies: Sequence[str]) -> str:
        if not draft.strip() or not self.needs_rewrite(draft, recent_replies):
            return draft
        return self.rewrite(draft, name, recent_replies)
