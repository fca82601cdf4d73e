"""SQLite knowledge index with content-hash dedup and a term table."""

from __future__ import annotations

import hashlib
import json
import sqlite3
import threading
import uuid
from collections import Counter
from pathlib import Path

from teller.brain.normalize import tokenize
from teller.knowledge.models import Citation, KnowledgeDocument, Passage
from teller.utils.helpers import ensure_dir, utc_now_iso

MIN_PASSAGE_CHARS = 20
MAX_PASSAGE_CHARS = 300


def content_hash(text: str) -> str:
    return hashlib.sha256(text.strip().encode("utf-8")).hexdigest()


def chunk_passages(content: str) -> list[str]:
    """Paragraph chunks longer than 20 chars, each cut to 300 chars."""
    chunks = [p.strip() for p in content.split("\n\n")]
    kept = [c[:MAX_PASSAGE_CHARS] for c in chunks if len(c) > MIN_PASSAGE_CHARS]
    if not kept and content.strip():
        kept = [content.strip()[:MAX_PASSAGE_CHARS]]
    return kept


class SqliteKnowledgeIndex:
    """Documents are immutable once indexed; re-adding the same URL or content is a no-op."""

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
                CREATE TABLE IF NOT EXISTS kb_documents (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    source TEXT NOT NULL,
                    url TEXT UNIQUE,
                    content_hash TEXT NOT NULL UNIQUE,
                    tldr TEXT NOT NULL DEFAULT '',
                    bullets_json TEXT NOT NULL DEFAULT '[]',
                    facts_json TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kb_passages (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL REFERENCES kb_documents(id),
                    idx INTEGER NOT NULL,
                    excerpt TEXT NOT NULL
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kb_terms (
                    term TEXT NOT NULL,
                    passage_id TEXT NOT NULL REFERENCES kb_passages(id),
                    tf INTEGER NOT NULL,
                    PRIMARY KEY (term, passage_id)
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_kb_passages_doc ON kb_passages (document_id, idx)"
            )
            self._conn.commit()

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> KnowledgeDocument:
        return KnowledgeDocument(
            id=str(row["id"]),
            title=str(row["title"]),
            source=str(row["source"]),
            url=str(row["url"]) if row["url"] else None,
            content_hash=str(row["content_hash"]),
            tldr=str(row["tldr"] or ""),
            bullets=tuple(json.loads(row["bullets_json"] or "[]")),
            facts=tuple(json.loads(row["facts_json"] or "[]")),
            created_at=str(row["created_at"]),
        )

    def find_existing(self, *, url: str | None = None, digest: str | None = None) -> KnowledgeDocument | None:
        with self._lock:
            row = None
            if url:
                row = self._conn.execute("SELECT * FROM kb_documents WHERE url = ?", (url,)).fetchone()
            if row is None and digest:
                row = self._conn.execute(
                    "SELECT * FROM kb_documents WHERE content_hash = ?", (digest,)
                ).fetchone()
        return self._row_to_document(row) if row else None

    def add_document(
        self,
        *,
        title: str,
        content: str,
        source: str,
        url: str | None = None,
        tldr: str = "",
        bullets: list[str] | None = None,
        facts: list[str] | None = None,
    ) -> tuple[KnowledgeDocument, bool]:
        """Index one document and its passages; returns ``(document, created)``."""
        digest = content_hash(content)
        with self._lock:
            existing = self.find_existing(url=url, digest=digest)
            if existing is not None:
                return existing, False

            document = KnowledgeDocument(
                id=uuid.uuid4().hex,
                title=title.strip() or (url or "untitled"),
                source=source,
                url=url,
                content_hash=digest,
                tldr=tldr,
                bullets=tuple(bullets or ()),
                facts=tuple(facts or ()),
                created_at=utc_now_iso(),
            )
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kb_documents (id, title, source, url, content_hash, tldr, bullets_json, facts_json, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        document.id,
                        document.title,
                        document.source,
                        document.url,
                        document.content_hash,
                        document.tldr,
                        json.dumps(list(document.bullets), ensure_ascii=False),
                        json.dumps(list(document.facts), ensure_ascii=False),
                        document.created_at,
                    ),
                )
                for idx, excerpt in enumerate(chunk_passages(content)):
                    passage_id = uuid.uuid4().hex
                    self._conn.execute(
                        "INSERT INTO kb_passages (id, document_id, idx, excerpt) VALUES (?, ?, ?, ?)",
                        (passage_id, document.id, idx, excerpt),
                    )
                    terms = Counter(tokenize(f"{document.title} {excerpt}"))
                    self._conn.executemany(
                        "INSERT INTO kb_terms (term, passage_id, tf) VALUES (?, ?, ?)",
                        [(term, passage_id, tf) for term, tf in terms.items()],
                    )
        return document, True

    def search_terms(self, query: str, limit: int = 3) -> list[Citation]:
        """Passages ranked by summed term frequency of the query terms."""
        terms = sorted(set(tokenize(query)))
        if not terms:
            return []
        placeholders = ",".join("?" for _ in terms)
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT p.id, p.document_id, p.excerpt, d.title, d.url, SUM(t.tf) AS score
                FROM kb_terms t
                JOIN kb_passages p ON t.passage_id = p.id
                JOIN kb_documents d ON p.document_id = d.id
                WHERE t.term IN ({placeholders})
                GROUP BY p.id
                ORDER BY score DESC, p.idx ASC
                LIMIT ?
                """,
                (*terms, int(limit)),
            ).fetchall()
        return [
            Citation(
                document_id=str(r["document_id"]),
                title=str(r["title"]),
                url=str(r["url"]) if r["url"] else None,
                excerpt=str(r["excerpt"]),
                score=float(r["score"]),
            )
            for r in rows
        ]

    def candidate_passages(self, query: str, limit: int = 200) -> list[tuple[Passage, str]]:
        """Passages sharing at least one term with *query*, paired with their document title."""
        terms = sorted(set(tokenize(query)))
        if not terms:
            return []
        placeholders = ",".join("?" for _ in terms)
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT DISTINCT p.id, p.document_id, p.idx, p.excerpt, d.title
                FROM kb_terms t
                JOIN kb_passages p ON t.passage_id = p.id
                JOIN kb_documents d ON p.document_id = d.id
                WHERE t.term IN ({placeholders})
                LIMIT ?
                """,
                (*terms, int(limit)),
            ).fetchall()
        return [
            (
                Passage(id=str(r["id"]), document_id=str(r["document_id"]), idx=int(r["idx"]), excerpt=str(r["excerpt"])),
                str(r["title"]),
            )
            for r in rows
        ]

    def list_documents(self, limit: int = 20) -> list[KnowledgeDocument]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM kb_documents ORDER BY created_at DESC LIMIT ?", (int(limit),)
            ).fetchall()
        return [self._row_to_document(r) for r in rows]

    def count_documents(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS n FROM kb_documents").fetchone()
        return int(row["n"]) if row else 0

    def passages_for(self, document_id: str) -> list[Passage]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM kb_passages WHERE document_id = ? ORDER BY idx ASC", (document_id,)
            ).fetchall()
        return [
            Passage(id=str(r["id"]), document_id=str(r["document_id"]), idx=int(r["idx"]), excerpt=str(r["excerpt"]))
            for r in rows
        ]
