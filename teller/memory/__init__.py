"""Per-user facts and episodic history."""

from teller.memory.models import EpisodeEntry, MemoryFact
from teller.memory.service import MemoryManager, wallet_key
from teller.memory.store import SqliteMemoryStore

__all__ = ["EpisodeEntry", "MemoryFact", "MemoryManager", "SqliteMemoryStore", "wallet_key"]
