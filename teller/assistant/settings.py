"""SQLite-backed model toggle, daily call quota and last-call diagnostics."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from teller.providers.base import ProviderCallResult
from teller.utils.helpers import ensure_dir, utc_day, utc_now_iso


@dataclass(frozen=True, slots=True, kw_only=True)
class AssistantDiagnostics:
    user_id: str
    day: str
    calls_today: int
    last_success_provider: str | None
    last_error_provider: str | None
    last_status: int | None
    last_error: str | None
    last_latency_ms: int | None
    updated_at: str


class SqliteAssistantSettings:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        ensure_dir(self.db_path.parent)

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=10.0)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS assistant_user_settings (
                    user_id TEXT PRIMARY KEY,
                    enabled INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS assistant_usage (
                    user_id TEXT NOT NULL,
                    usage_day TEXT NOT NULL,
                    call_count INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, usage_day)
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS assistant_diagnostics (
                    user_id TEXT PRIMARY KEY,
                    day TEXT NOT NULL,
                    calls_today INTEGER NOT NULL,
                    last_success_provider TEXT,
                    last_error_provider TEXT,
                    last_status INTEGER,
                    last_error TEXT,
                    last_latency_ms INTEGER,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def is_enabled(self, user_id: str, *, default: bool) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT enabled FROM assistant_user_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        return default if row is None else bool(row["enabled"])

    def set_enabled(self, user_id: str, enabled: bool) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO assistant_user_settings (user_id, enabled, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET enabled = excluded.enabled, updated_at = excluded.updated_at
                """,
                (user_id, 1 if enabled else 0, utc_now_iso()),
            )

    def try_consume(self, user_id: str, *, limit: int, day: str | None = None) -> bool:
        """Atomically take one call from today's quota; ``False`` once exhausted."""
        usage_day = day or utc_day()
        with self._lock, self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            row = self._conn.execute(
                "SELECT call_count FROM assistant_usage WHERE user_id = ? AND usage_day = ?",
                (user_id, usage_day),
            ).fetchone()
            if row is not None and int(row["call_count"]) >= limit:
                return False
            if limit <= 0:
                return False
            self._conn.execute(
                """
                INSERT INTO assistant_usage (user_id, usage_day, call_count) VALUES (?, ?, 1)
                ON CONFLICT(user_id, usage_day) DO UPDATE SET call_count = call_count + 1
                """,
                (user_id, usage_day),
            )
        return True

    def usage(self, user_id: str, day: str | None = None) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT call_count FROM assistant_usage WHERE user_id = ? AND usage_day = ?",
                (user_id, day or utc_day()),
            ).fetchone()
        return int(row["call_count"]) if row else 0

    def record_call(self, user_id: str, result: ProviderCallResult, *, day: str | None = None) -> None:
        today = day or utc_day()
        success = result.ok
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO assistant_diagnostics
                    (user_id, day, calls_today, last_success_provider, last_error_provider,
                     last_status, last_error, last_latency_ms, updated_at)
                VALUES (?, ?, 1, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    calls_today = CASE WHEN day = excluded.day THEN calls_today + 1 ELSE 1 END,
                    day = excluded.day,
                    last_success_provider = COALESCE(excluded.last_success_provider, last_success_provider),
                    last_error_provider = COALESCE(excluded.last_error_provider, last_error_provider),
                    last_status = excluded.last_status,
                    last_error = excluded.last_error,
                    last_latency_ms = excluded.last_latency_ms,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    today,
                    result.provider if success else None,
                    None if success else result.provider,
                    result.status,
                    result.error,
                    result.latency_ms,
                    utc_now_iso(),
                ),
            )

    def diagnostics(self, user_id: str) -> AssistantDiagnostics | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM assistant_diagnostics WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return AssistantDiagnostics(
            user_id=str(row["user_id"]),
            day=str(row["day"]),
            calls_today=int(row["calls_today"]),
            last_success_provider=row["last_success_provider"],
            last_error_provider=row["last_error_provider"],
            last_status=int(row["last_status"]) if row["last_status"] is not None else None,
            last_error=row["last_error"],
            last_latency_ms=int(row["last_latency_ms"]) if row["last_latency_ms"] is not None else None,
            updated_at=str(row["updated_at"]),
        )
