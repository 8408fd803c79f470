"""
cardsmith/db.py — SQLite reference card store.

Tables
------
cards       : one row per persisted card, keyed by card_id
attachments : uploaded files attached to a card (one card, many files)
events      : ingest audit log

(user_id, content_hash) is UNIQUE: two cards with the same title+content
can never both exist for one user.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_DDL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS cards (
    card_id       TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    title         TEXT NOT NULL CHECK(length(title) BETWEEN 1 AND 200),
    content       TEXT NOT NULL CHECK(length(content) BETWEEN 1 AND 10000),
    content_hash  TEXT NOT NULL,
    type          TEXT NOT NULL DEFAULT 'concept'
                       CHECK(type IN ('concept', 'action', 'quote',
                                      'checklist', 'mindmap')),
    category      TEXT NOT NULL DEFAULT 'General',
    tags          TEXT NOT NULL DEFAULT '[]',
    source        TEXT NOT NULL DEFAULT '',
    metadata      TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_cards_user_hash ON cards(user_id, content_hash);
CREATE INDEX IF NOT EXISTS idx_cards_user_category   ON cards(user_id, category);

CREATE TABLE IF NOT EXISTS attachments (
    attachment_id INTEGER PRIMARY KEY AUTOINCREMENT,
    card_id       TEXT NOT NULL REFERENCES cards(card_id) ON DELETE CASCADE,
    filename      TEXT NOT NULL,
    original_name TEXT NOT NULL,
    mimetype      TEXT,
    size_bytes    INTEGER,
    path          TEXT,
    added_at      TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_attachments_card ON attachments(card_id);

CREATE TABLE IF NOT EXISTS events (
    event_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id    TEXT,
    event_type TEXT,
    detail     TEXT,
    ts         TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------

def get_connection(db_path: Path) -> sqlite3.Connection:
    """Return a WAL-mode, FK-enabled connection with row_factory set."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path.resolve()), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.executescript(_DDL)
    conn.commit()
    return conn


def new_card_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Hash lookup
# ---------------------------------------------------------------------------

def find_card_by_hash(
    conn: sqlite3.Connection,
    user_id: str,
    content_hash: str,
) -> sqlite3.Row | None:
    return conn.execute(
        "SELECT * FROM cards WHERE user_id = ? AND content_hash = ?",
        (user_id, content_hash),
    ).fetchone()


class CardIndex:
    """HashIndex over the cards table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def find_by_hash(self, user_id: str, content_hash: str) -> str | None:
        row = find_card_by_hash(self.conn, user_id, content_hash)
        return row["card_id"] if row is not None else None


# ---------------------------------------------------------------------------
# cards helpers
# ---------------------------------------------------------------------------

def insert_card(conn: sqlite3.Connection, c: dict[str, Any]) -> str:
    """
    Insert a new cards row and return its card_id.
    Required keys: user_id, title, content, content_hash.
    Optional: card_id, type, category, tags (list), source, metadata (dict).
    Raises sqlite3.IntegrityError if (user_id, content_hash) already exists.
    """
    card_id = c.get("card_id") or new_card_id()
    metadata = c.get("metadata")
    conn.execute(
        """
        INSERT INTO cards
            (card_id, user_id, title, content, content_hash,
             type, category, tags, source, metadata)
        VALUES
            (:card_id, :user_id, :title, :content, :content_hash,
             :type, :category, :tags, :source, :metadata)
        """,
        {
            "card_id":      card_id,
            "user_id":      c["user_id"],
            "title":        c["title"],
            "content":      c["content"],
            "content_hash": c["content_hash"],
            "type":         c.get("type") or "concept",
            "category":     c.get("category") or "General",
            "tags":         json.dumps(list(c.get("tags") or [])),
            "source":       c.get("source", ""),
            "metadata":     json.dumps(metadata) if metadata is not None else None,
        },
    )
    return card_id


def update_card_source(conn: sqlite3.Connection, card_id: str, source: str) -> None:
    conn.execute(
        "UPDATE cards SET source=?, updated_at=datetime('now') WHERE card_id=?",
        (source, card_id),
    )


def get_card(conn: sqlite3.Connection, card_id: str) -> dict[str, Any] | None:
    row = conn.execute("SELECT * FROM cards WHERE card_id = ?", (card_id,)).fetchone()
    return _card_dict(row) if row is not None else None


def list_cards(
    conn: sqlite3.Connection,
    user_id: str,
    category: str | None = None,
) -> list[dict[str, Any]]:
    if category:
        rows = conn.execute(
            "SELECT * FROM cards WHERE user_id=? AND category=? ORDER BY created_at, rowid",
            (user_id, category),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM cards WHERE user_id=? ORDER BY created_at, rowid",
            (user_id,),
        ).fetchall()
    return [_card_dict(r) for r in rows]


def _card_dict(row: sqlite3.Row) -> dict[str, Any]:
    d = dict(row)
    d["tags"] = json.loads(d["tags"] or "[]")
    d["metadata"] = json.loads(d["metadata"]) if d["metadata"] else None
    return d


# ---------------------------------------------------------------------------
# attachments helpers
# ---------------------------------------------------------------------------

def add_attachment(conn: sqlite3.Connection, card_id: str, a: dict[str, Any]) -> int:
    """
    Attach an uploaded file to a card.
    Required: filename, original_name. Optional: mimetype, size_bytes, path.
    """
    cur = conn.execute(
        """
        INSERT INTO attachments
            (card_id, filename, original_name, mimetype, size_bytes, path)
        VALUES
            (:card_id, :filename, :original_name, :mimetype, :size_bytes, :path)
        """,
        {
            "card_id":       card_id,
            "filename":      a["filename"],
            "original_name": a["original_name"],
            "mimetype":      a.get("mimetype"),
            "size_bytes":    a.get("size_bytes"),
            "path":          a.get("path"),
        },
    )
    return cur.lastrowid  # type: ignore[return-value]


def get_attachments(conn: sqlite3.Connection, card_id: str) -> list[sqlite3.Row]:
    return conn.execute(
        "SELECT * FROM attachments WHERE card_id=? ORDER BY attachment_id",
        (card_id,),
    ).fetchall()


# ---------------------------------------------------------------------------
# events helper
# ---------------------------------------------------------------------------

def log_event(
    conn: sqlite3.Connection,
    event_type: str,
    detail: str | None = None,
    user_id: str | None = None,
) -> None:
    conn.execute(
        "INSERT INTO events (user_id, event_type, detail) VALUES (?, ?, ?)",
        (user_id, event_type, detail),
    )
    conn.commit()


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

def get_stats(conn: sqlite3.Connection, user_id: str | None = None) -> dict[str, Any]:
    """Card counts by category plus total card and attachment counts."""
    where, params = ("WHERE user_id = ?", (user_id,)) if user_id else ("", ())
    rows = conn.execute(
        f"SELECT category, COUNT(*) AS cnt FROM cards {where} GROUP BY category",
        params,
    ).fetchall()
    stats: dict[str, Any] = {"by_category": {r["category"]: r["cnt"] for r in rows}}
    stats["total_cards"] = sum(stats["by_category"].values())
    stats["total_attachments"] = conn.execute(
        f"SELECT COUNT(*) FROM attachments a JOIN cards c ON c.card_id = a.card_id "
        f"{where.replace('user_id', 'c.user_id')}",
        params,
    ).fetchone()[0]
    return stats
