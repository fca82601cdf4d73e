"""SQLite persistence for drafts, session keys and daily draft counters."""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from pathlib import Path

from teller.safety.models import WAITING_WALLET, PendingTransaction, RateLimitWindow, SessionKey, TxStatus
from teller.utils.helpers import ensure_dir, utc_now_iso


class SqliteSafetyStore:
    """All writes that gate a transfer go through single SQL statements or one transaction."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        ensure_dir(self.db_path.parent)

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=10.0)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=FULL")
        self._create_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _create_schema(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pending_transactions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    recipient TEXT NOT NULL,
                    token TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    status TEXT NOT NULL,
                    tx_hash TEXT,
                    error TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_pending_transactions_user_status
                ON pending_transactions (user_id, status, created_at DESC)
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session_keys (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    wallet_address TEXT NOT NULL,
                    session_public_key TEXT NOT NULL,
                    session_private_key TEXT NOT NULL,
                    permissions_json TEXT NOT NULL DEFAULT '[]',
                    auth_message TEXT NOT NULL DEFAULT '',
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_session_keys_user ON session_keys (user_id, created_at DESC)"
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS draft_rate_limits (
                    user_id TEXT NOT NULL,
                    day_window TEXT NOT NULL,
                    count INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, day_window)
                )
                """
            )
            self._conn.commit()

    @staticmethod
    def _row_to_tx(row: sqlite3.Row) -> PendingTransaction:
        return PendingTransaction(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            recipient=str(row["recipient"]),
            token=str(row["token"]),
            amount=str(row["amount"]),
            status=TxStatus(str(row["status"])),
            created_at=str(row["created_at"]),
            tx_hash=str(row["tx_hash"]) if row["tx_hash"] else None,
            error=str(row["error"]) if row["error"] else None,
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> SessionKey:
        return SessionKey(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            wallet_address=str(row["wallet_address"]),
            session_public_key=str(row["session_public_key"]),
            session_private_key=str(row["session_private_key"]),
            permissions=tuple(json.loads(row["permissions_json"] or "[]")),
            auth_message=str(row["auth_message"] or ""),
            expires_at=str(row["expires_at"]),
            created_at=str(row["created_at"]),
        )

    # ── Drafts ───────────────────────────────────────────────────────

    def create_draft_within_limit(
        self,
        *,
        user_id: str,
        recipient: str,
        token: str,
        amount: str,
        window: str,
        limit: int,
    ) -> PendingTransaction | None:
        """Insert a pending row and bump the window counter in one transaction.

        Returns ``None`` without writing when the window is already at *limit*.
        """
        now = utc_now_iso()
        tx = PendingTransaction(
            id=uuid.uuid4().hex,
            user_id=user_id,
            recipient=recipient,
            token=token,
            amount=amount,
            created_at=now,
        )
        with self._lock, self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            row = self._conn.execute(
                "SELECT count FROM draft_rate_limits WHERE user_id = ? AND day_window = ?",
                (user_id, window),
            ).fetchone()
            if row is not None and int(row["count"]) >= limit:
                return None
            self._conn.execute(
                """
                INSERT INTO pending_transactions
                    (id, user_id, recipient, token, amount, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (tx.id, user_id, recipient, token, amount, TxStatus.PENDING.value, now, now),
            )
            self._conn.execute(
                """
                INSERT INTO draft_rate_limits (user_id, day_window, count) VALUES (?, ?, 1)
                ON CONFLICT(user_id, day_window) DO UPDATE SET count = count + 1
                """,
                (user_id, window),
            )
        return tx

    def rate_window(self, user_id: str, window: str) -> RateLimitWindow:
        with self._lock:
            row = self._conn.execute(
                "SELECT count FROM draft_rate_limits WHERE user_id = ? AND day_window = ?",
                (user_id, window),
            ).fetchone()
        return RateLimitWindow(user_id=user_id, window=window, count=int(row["count"]) if row else 0)

    def get_transaction(self, tx_id: str) -> PendingTransaction | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM pending_transactions WHERE id = ?", (tx_id,)).fetchone()
        return self._row_to_tx(row) if row else None

    def latest_pending(self, user_id: str) -> PendingTransaction | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT * FROM pending_transactions
                WHERE user_id = ? AND status = ?
                ORDER BY created_at DESC, rowid DESC LIMIT 1
                """,
                (user_id, TxStatus.PENDING.value),
            ).fetchone()
        return self._row_to_tx(row) if row else None

    def list_transactions(self, user_id: str, limit: int = 20) -> list[PendingTransaction]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM pending_transactions WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (user_id, int(limit)),
            ).fetchall()
        return [self._row_to_tx(r) for r in rows]

    def executed_transactions(self, *, user_id: str | None = None, limit: int = 5) -> list[PendingTransaction]:
        sql = "SELECT * FROM pending_transactions WHERE status = ?"
        params: list[object] = [TxStatus.EXECUTED.value]
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        sql += " ORDER BY updated_at DESC, rowid DESC LIMIT ?"
        params.append(int(limit))
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_tx(r) for r in rows]

    def finish_transaction(
        self,
        tx_id: str,
        status: TxStatus,
        *,
        tx_hash: str | None = None,
        error: str | None = None,
    ) -> bool:
        """Move a pending row to a terminal status; ``False`` if it was not pending."""
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE pending_transactions
                SET status = ?, tx_hash = ?, error = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (status.value, tx_hash, error, utc_now_iso(), tx_id, TxStatus.PENDING.value),
            )
        return cur.rowcount == 1

    def cancel_pending(self, user_id: str) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE pending_transactions SET status = ?, updated_at = ? WHERE user_id = ? AND status = ?",
                (TxStatus.CANCELLED.value, utc_now_iso(), user_id, TxStatus.PENDING.value),
            )
        return int(cur.rowcount or 0)

    # ── Session keys ─────────────────────────────────────────────────

    def save_session(self, session: SessionKey) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO session_keys
                    (id, user_id, wallet_address, session_public_key, session_private_key,
                     permissions_json, auth_message, expires_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.user_id,
                    session.wallet_address,
                    session.session_public_key,
                    session.session_private_key,
                    json.dumps(list(session.permissions)),
                    session.auth_message,
                    session.expires_at,
                    session.created_at,
                ),
            )

    def sessions_for(self, user_id: str) -> list[SessionKey]:
        """Newest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM session_keys WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def latest_waiting_session(self, user_id: str) -> SessionKey | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT * FROM session_keys WHERE user_id = ? AND wallet_address = ?
                ORDER BY created_at DESC, rowid DESC LIMIT 1
                """,
                (user_id, WAITING_WALLET),
            ).fetchone()
        return self._row_to_session(row) if row else None

    def activate_session(self, session_id: str, wallet_address: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE session_keys SET wallet_address = ? WHERE id = ? AND wallet_address = ?",
                (wallet_address, session_id, WAITING_WALLET),
            )
        return cur.rowcount == 1
