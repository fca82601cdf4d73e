"""Skill registry: trigger phrases mapped to informational step lists."""

from __future__ import annotations

import json
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from teller.brain.planner import Plan, PlanStep, StepAction
from teller.utils.helpers import ensure_dir, utc_now_iso


@dataclass(frozen=True, slots=True, kw_only=True)
class Skill:
    name: str
    triggers: tuple[str, ...]
    steps_md: str
    safety_rules: str = ""

    def matches(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(t.lower() in lowered for t in self.triggers if t.strip())


class SqliteSkillStore:
    """Owner-added skills persisted across restarts."""

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
                CREATE TABLE IF NOT EXISTS skills (
                    name TEXT PRIMARY KEY,
                    triggers_json TEXT NOT NULL,
                    steps_md TEXT NOT NULL,
                    safety_rules_md TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def save(self, skill: Skill) -> None:
        now = utc_now_iso()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO skills (name, triggers_json, steps_md, safety_rules_md, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    triggers_json = excluded.triggers_json,
                    steps_md = excluded.steps_md,
                    safety_rules_md = excluded.safety_rules_md,
                    updated_at = excluded.updated_at
                """,
                (skill.name, json.dumps(list(skill.triggers), ensure_ascii=False), skill.steps_md, skill.safety_rules, now, now),
            )

    def load_all(self) -> list[Skill]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM skills ORDER BY created_at ASC").fetchall()
        skills: list[Skill] = []
        for row in rows:
            try:
                triggers = json.loads(row["triggers_json"])
            except json.JSONDecodeError:
                logger.warning("Skipping skill {} with unreadable triggers", row["name"])
                continue
            skills.append(
                Skill(
                    name=str(row["name"]),
                    triggers=tuple(str(t) for t in triggers),
                    steps_md=str(row["steps_md"]),
                    safety_rules=str(row["safety_rules_md"] or ""),
                )
            )
        return skills


class SkillRegistry:
    """Static, explicitly populated registry; first registered match wins."""

    def __init__(self, store: SqliteSkillStore | None = None) -> None:
        self._skills: list[Skill] = []
        self._store = store
        if store is not None:
            for skill in store.load_all():
                self._add(skill)

    def register(
        self,
        name: str,
        triggers: list[str] | tuple[str, ...],
        steps_md: str,
        safety_rules: str = "",
        *,
        persist: bool = False,
    ) -> Skill:
        skill = Skill(name=name.strip(), triggers=tuple(triggers), steps_md=steps_md, safety_rules=safety_rules)
        self._add(skill)
        if persist and self._store is not None:
            self._store.save(skill)
        return skill

    def _add(self, skill: Skill) -> None:
        self._skills = [s for s in self._skills if s.name != skill.name]
        self._skills.append(skill)

    def all(self) -> list[Skill]:
        return list(self._skills)

    def find_skill(self, text: str) -> Skill | None:
        for skill in self._skills:
            if skill.matches(text):
                return skill
        return None

    @staticmethod
    def run_skill(skill: Skill) -> Plan:
        lines = [line.strip() for line in skill.steps_md.splitlines() if line.strip().startswith("-")]
        steps = [
            PlanStep(
                id=f"skill_step_{i}",
                description=line[1:].strip(),
                action=StepAction.INFO,
            )
            for i, line in enumerate(lines)
        ]
        return Plan(intent=f"SKILL_{skill.name.upper()}", steps=steps)


def register_builtin_skills(registry: SkillRegistry) -> None:
    """Etiquette and safety procedures shipped with the assistant."""
    registry.register(
        "seed_phrase_safety",
        ["seed phrase", "recovery phrase", "private key", "عبارة الاسترداد", "المفتاح الخاص"],
        "- Never paste your seed phrase or private key into any chat, including this one\n"
        "- teller only ever asks you to sign a session message, never to reveal keys\n"
        "- If you already shared it, move funds to a fresh wallet right away",
        "Never request or echo key material.",
    )
    registry.register(
        "getting_started",
        ["how do i start", "getting started", "ابدأ ازاي", "أبدأ ازاي"],
        "- Link your wallet with /authorize and sign the message in your wallet\n"
        "- Finish with /verify <your address> <signature>\n"
        "- Then ask me to send, e.g. 'send 5 USDC to @sam'\n"
        "- Every transfer waits for your /confirm",
    )
