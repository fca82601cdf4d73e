"""Linked external identities (wallet + account id) keyed by user id."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from teller.utils.helpers import ensure_dir, utc_now_iso


@dataclass(frozen=True, slots=True, kw_only=True)
class LinkedIdentity:
    user_id: str
    username: str | None
    wallet_address: str
    linked_account_id: str | None
    updated_at: str


class SqliteIdentityDirectory:
    """Storage-backed identity collaborator; written by the account-linking flow."""

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
                CREATE TABLE IF NOT EXISTS linked_identities (
                    user_id TEXT PRIMARY KEY,
                    username TEXT,
                    wallet_address TEXT NOT NULL,
                    linked_account_id TEXT,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_linked_identities_username ON linked_identities (username)"
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def link(
        self,
        user_id: str,
        wallet_address: str,
        *,
        username: str | None = None,
        linked_account_id: str | None = None,
    ) -> LinkedIdentity:
        handle = username.strip().lstrip("@").lower() if username else None
        now = utc_now_iso()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO linked_identities (user_id, username, wallet_address, linked_account_id, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    username = COALESCE(excluded.username, username),
                    wallet_address = excluded.wallet_address,
                    linked_account_id = COALESCE(excluded.linked_account_id, linked_account_id),
                    updated_at = excluded.updated_at
                """,
                (user_id, handle, wallet_address, linked_account_id, now),
            )
        return LinkedIdentity(
            user_id=user_id,
            username=handle,
            wallet_address=wallet_address,
            linked_account_id=linked_account_id,
            updated_at=now,
        )

    def wallet_for_user(self, user_id: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT wallet_address FROM linked_identities WHERE user_id = ?", (user_id,)
            ).fetchone()
        return str(row["wallet_address"]) if row else None

    def lookup_wallet(self, username: str) -> str | None:
        handle = username.strip().lstrip("@").lower()
        if not handle:
            return None
        with self._lock:
            row = self._conn.execute(
                "SELECT wallet_address FROM linked_identities WHERE username = ? ORDER BY updated_at DESC LIMIT 1",
                (handle,),
            ).fetchone()
        return str(row["wallet_address"]) if row else None
