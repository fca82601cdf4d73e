"""SQLite storage for user facts and the episodic log."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from teller.memory.models import EpisodeEntry, MemoryFact
from teller.utils.helpers import ensure_dir, utc_now_iso


class SqliteMemoryStore:
    """Facts are upserted by (user_id, key); episodes are pruned per user on insert."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        ensure_dir(self.db_path.parent)

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _create_schema(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_facts (
                    user_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    confidence REAL NOT NULL DEFAULT 1.0,
                    deprecated INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, key)
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_user_facts_key ON user_facts (key, updated_at DESC)"
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS episodes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    ts TEXT NOT NULL,
                    input_text TEXT NOT NULL,
                    intent TEXT NOT NULL,
                    entities_json TEXT NOT NULL DEFAULT '{}',
                    output_text TEXT NOT NULL DEFAULT ''
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_episodes_user_id ON episodes (user_id, id DESC)"
            )
            self._conn.commit()

    @staticmethod
    def _row_to_fact(row: sqlite3.Row) -> MemoryFact:
        return MemoryFact(
            user_id=str(row["user_id"]),
            key=str(row["key"]),
            value=str(row["value"]),
            confidence=float(row["confidence"]),
            updated_at=str(row["updated_at"]),
            deprecated=bool(row["deprecated"]),
        )

    @staticmethod
    def _row_to_episode(row: sqlite3.Row) -> EpisodeEntry:
        try:
            entities = json.loads(row["entities_json"] or "{}")
        except json.JSONDecodeError:
            entities = {}
        return EpisodeEntry(
            id=int(row["id"]),
            user_id=str(row["user_id"]),
            ts=str(row["ts"]),
            input_text=str(row["input_text"]),
            intent=str(row["intent"]),
            entities=entities if isinstance(entities, dict) else {},
            output_text=str(row["output_text"]),
        )

    # ── Facts ────────────────────────────────────────────────────────

    def upsert_fact(self, user_id: str, key: str, value: str, confidence: float = 1.0) -> MemoryFact:
        now = utc_now_iso()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO user_facts (user_id, key, value, confidence, deprecated, updated_at)
                VALUES (?, ?, ?, ?, 0, ?)
                ON CONFLICT(user_id, key) DO UPDATE SET
                    value = excluded.value,
                    confidence = excluded.confidence,
                    deprecated = 0,
                    updated_at = excluded.updated_at
                """,
                (user_id, key, value, float(confidence), now),
            )
        return MemoryFact(user_id=user_id, key=key, value=value, confidence=float(confidence), updated_at=now)

    def get_fact(self, user_id: str, key: str) -> MemoryFact | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM user_facts WHERE user_id = ? AND key = ? AND deprecated = 0",
                (user_id, key),
            ).fetchone()
        return self._row_to_fact(row) if row else None

    def list_facts(self, user_id: str, *, include_deprecated: bool = False, limit: int | None = None) -> list[MemoryFact]:
        sql = "SELECT * FROM user_facts WHERE user_id = ?"
        params: list[Any] = [user_id]
        if not include_deprecated:
            sql += " AND deprecated = 0"
        sql += " ORDER BY updated_at DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_fact(row) for row in rows]

    def deprecate_matching(self, user_id: str, keyword: str) -> int:
        pattern = f"%{keyword.strip().lower()}%"
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE user_facts SET deprecated = 1, updated_at = ?
                WHERE user_id = ? AND deprecated = 0
                  AND (lower(key) LIKE ? OR lower(value) LIKE ?)
                """,
                (utc_now_iso(), user_id, pattern, pattern),
            )
        return int(cur.rowcount or 0)

    # ── Episodes ─────────────────────────────────────────────────────

    def append_episode(
        self,
        *,
        user_id: str,
        input_text: str,
        intent: str,
        entities: dict[str, Any],
        output_text: str,
        retention: int,
        ts: str | None = None,
    ) -> int:
        """Insert one episode and prune the user's log to *retention* rows, atomically."""
        keep = max(1, int(retention))
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO episodes (user_id, ts, input_text, intent, entities_json, output_text)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    ts or utc_now_iso(),
                    input_text,
                    intent,
                    json.dumps(entities, ensure_ascii=False),
                    output_text,
                ),
            )
            self._conn.execute(
                """
                DELETE FROM episodes
                WHERE user_id = ? AND id NOT IN (
                    SELECT id FROM episodes WHERE user_id = ? ORDER BY id DESC LIMIT ?
                )
                """,
                (user_id, user_id, keep),
            )
        return int(cur.lastrowid or 0)

    def recent_episodes(self, user_id: str, limit: int) -> list[EpisodeEntry]:
        """Most recent first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM episodes WHERE user_id = ? ORDER BY id DESC LIMIT ?",
                (user_id, max(0, int(limit))),
            ).fetchall()
        return [self._row_to_episode(row) for row in rows]

    def count_episodes(self, user_id: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS n FROM episodes WHERE user_id = ?", (user_id,)
            ).fetchone()
        return int(row["n"]) if row else 0
