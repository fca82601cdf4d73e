"""Post-turn evaluation that files improvement proposals for the owner."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from teller.brain.normalize import contains_phrase, normalize_text
from teller.memory.service import MemoryManager
from teller.utils.helpers import ensure_dir, utc_now_iso

CONFUSION_SIGNALS: tuple[str, ...] = (
    "مش فاهم",
    "بتقول ايه",
    "غلط",
    "كررت",
    "بتكرر",
    "wrong",
    "repetitive",
    "you repeated",
    "makes no sense",
)
REPEAT_WINDOW = 3


@dataclass(frozen=True, slots=True, kw_only=True)
class SkillProposal:
    id: str
    reason: str
    proposal_md: str
    created_at: str


class SqliteProposalStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        ensure_dir(self.db_path.parent)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS skill_proposals (
                    id TEXT PRIMARY KEY,
                    reason TEXT NOT NULL,
                    proposal_md TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def add(self, reason: str, proposal_md: str) -> SkillProposal:
        proposal = SkillProposal(id=uuid.uuid4().hex, reason=reason, proposal_md=proposal_md, created_at=utc_now_iso())
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO skill_proposals (id, reason, proposal_md, created_at) VALUES (?, ?, ?, ?)",
                (proposal.id, proposal.reason, proposal.proposal_md, proposal.created_at),
            )
        return proposal

    def list(self, limit: int = 20) -> list[SkillProposal]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM skill_proposals ORDER BY created_at DESC LIMIT ?", (int(limit),)
            ).fetchall()
        return [
            SkillProposal(
                id=str(r["id"]),
                reason=str(r["reason"]),
                proposal_md=str(r["proposal_md"]),
                created_at=str(r["created_at"]),
            )
            for r in rows
        ]


class Evaluator:
    """Flags confusion and repeated inputs; runs after the episode is logged."""

    def __init__(self, memory: MemoryManager, proposals: SqliteProposalStore) -> None:
        self._memory = memory
        self._proposals = proposals

    def evaluate(self, user_id: str, text: str, output: str, intent: str) -> list[SkillProposal]:
        normalized = normalize_text(text)
        filed: list[SkillProposal] = []

        if any(contains_phrase(normalized, s) for s in CONFUSION_SIGNALS):
            filed.append(
                self._proposals.add(
                    f"User expressed confusion with the reply for intent {intent}.",
                    f'Input: "{text}"\nResponse: "{output}"',
                )
            )

        recent = self._memory.recent_episodes(user_id, REPEAT_WINDOW)
        if len(recent) == REPEAT_WINDOW and all(normalize_text(e.input_text) == normalized for e in recent):
            filed.append(
                self._proposals.add(
                    f'User repeated the same input: "{text}".',
                    "Add a dedicated skill or knowledge entry for this phrase.",
                )
            )

        if filed:
            logger.info("evaluator filed {} proposal(s) for user={}", len(filed), user_id)
        return filed
