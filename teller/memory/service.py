"""Memory manager facade used by the pipeline, planner and tools."""

from __future__ import annotations

from typing import Any

from loguru import logger

from teller.memory.models import EpisodeEntry, MemoryFact
from teller.memory.store import SqliteMemoryStore

WALLET_KEY_PREFIX = "wallet_"


def normalize_handle(handle: str) -> str:
    return handle.strip().lstrip("@").lower()


def wallet_key(handle: str) -> str:
    """Fact key that maps an @handle to a hex wallet address."""
    return f"{WALLET_KEY_PREFIX}{normalize_handle(handle)}"


class MemoryManager:
    """Facts plus the bounded episodic log for each user."""

    def __init__(self, store: SqliteMemoryStore, *, episode_retention: int = 50) -> None:
        self.store = store
        self.episode_retention = max(1, int(episode_retention))

    def close(self) -> None:
        self.store.close()

    def store_fact(self, user_id: str, key: str, value: str, confidence: float = 1.0) -> MemoryFact:
        fact = self.store.upsert_fact(user_id, key.strip(), value.strip(), confidence)
        logger.debug("memory fact stored user={} key={}", user_id, fact.key)
        return fact

    def get_fact(self, user_id: str, key: str) -> MemoryFact | None:
        return self.store.get_fact(user_id, key)

    def get_all_facts(self, user_id: str, *, limit: int | None = None) -> list[MemoryFact]:
        return self.store.list_facts(user_id, limit=limit)

    def forget(self, user_id: str, keyword: str) -> int:
        """Mark facts whose key or value mentions *keyword* as deprecated."""
        if not keyword.strip():
            return 0
        count = self.store.deprecate_matching(user_id, keyword)
        logger.info("memory forget user={} keyword={!r} deprecated={}", user_id, keyword, count)
        return count

    def log_episode(
        self,
        user_id: str,
        text: str,
        intent: str,
        entities: dict[str, Any],
        outcome: str,
    ) -> int:
        return self.store.append_episode(
            user_id=user_id,
            input_text=text,
            intent=intent,
            entities=entities,
            output_text=outcome,
            retention=self.episode_retention,
        )

    def recent_episodes(self, user_id: str, limit: int) -> list[EpisodeEntry]:
        return self.store.recent_episodes(user_id, limit)

    def lookup_wallet(self, handle: str, *, user_id: str | None = None) -> str | None:
        """The caller's own ``wallet_<handle>`` mapping; other users' mappings never count."""
        if not user_id:
            return None
        own = self.store.get_fact(user_id, wallet_key(handle))
        return own.value if own is not None else None

    def preferred_name(self, user_id: str, fallback: str) -> str:
        """The stored ``name`` fact, else *fallback*."""
        fact = self.store.get_fact(user_id, "name")
        return fact.value if fact is not None and fact.value else fallback
