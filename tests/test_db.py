"""
tests/test_db.py — SQLite card store schema and helper unit tests.

Run with: pytest tests/test_db.py -v
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from cardsmith.db import (
    CardIndex,
    add_attachment,
    get_attachments,
    get_card,
    get_connection,
    get_stats,
    insert_card,
    list_cards,
    log_event,
    update_card_source,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def conn(tmp_path: Path):
    db_path = tmp_path / "db" / "cardsmith.db"
    c = get_connection(db_path)
    yield c
    c.close()


def _card(user_id: str = "alice", content_hash: str = "h1", **kwargs) -> dict:
    base = {
        "user_id":      user_id,
        "title":        "Card title",
        "content":      "Card content",
        "content_hash": content_hash,
        "type":         "concept",
        "category":     "General",
        "tags":         ["a", "b"],
        "source":       "notes.txt",
    }
    return {**base, **kwargs}


def _attachment(name: str = "notes.txt") -> dict:
    return {
        "filename":      f"file-1-1{Path(name).suffix}",
        "original_name": name,
        "mimetype":      "text/plain",
        "size_bytes":    42,
        "path":          f"/tmp/{name}",
    }


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

def test_tables_created(conn: sqlite3.Connection) -> None:
    names = {
        r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert {"cards", "attachments", "events"} <= names


def test_connection_uses_wal(conn: sqlite3.Connection) -> None:
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    assert mode.lower() == "wal"


# ---------------------------------------------------------------------------
# cards
# ---------------------------------------------------------------------------

def test_insert_and_get_card(conn: sqlite3.Connection) -> None:
    card_id = insert_card(conn, _card(metadata={"row_number": 2}))
    conn.commit()
    card = get_card(conn, card_id)
    assert card is not None
    assert card["title"] == "Card title"
    assert card["tags"] == ["a", "b"]
    assert card["metadata"] == {"row_number": 2}
    assert card["created_at"]


def test_get_missing_card_returns_none(conn: sqlite3.Connection) -> None:
    assert get_card(conn, "nope") is None


def test_duplicate_hash_per_user_rejected(conn: sqlite3.Connection) -> None:
    insert_card(conn, _card())
    conn.commit()
    with pytest.raises(sqlite3.IntegrityError):
        insert_card(conn, _card())
    # another user may hold the same hash
    insert_card(conn, _card(user_id="bob"))
    conn.commit()


def test_invalid_type_rejected(conn: sqlite3.Connection) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        insert_card(conn, _card(type="essay"))


@pytest.mark.parametrize("field, value", [
    ("title", ""),
    ("title", "t" * 201),
    ("content", ""),
    ("content", "c" * 10_001),
])
def test_length_limits_enforced(conn: sqlite3.Connection, field: str, value: str) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        insert_card(conn, _card(**{field: value}))


def test_card_index_finds_by_hash(conn: sqlite3.Connection) -> None:
    card_id = insert_card(conn, _card(content_hash="abc"))
    conn.commit()
    index = CardIndex(conn)
    assert index.find_by_hash("alice", "abc") == card_id
    assert index.find_by_hash("bob", "abc") is None


def test_update_source(conn: sqlite3.Connection) -> None:
    card_id = insert_card(conn, _card())
    update_card_source(conn, card_id, "notes.txt, more.pdf")
    conn.commit()
    assert get_card(conn, card_id)["source"] == "notes.txt, more.pdf"


def test_list_cards_filters(conn: sqlite3.Connection) -> None:
    insert_card(conn, _card(content_hash="1", category="AI"))
    insert_card(conn, _card(content_hash="2", category="Data"))
    insert_card(conn, _card(user_id="bob", content_hash="3", category="AI"))
    conn.commit()
    assert len(list_cards(conn, "alice")) == 2
    assert [c["content_hash"] for c in list_cards(conn, "alice", category="AI")] == ["1"]


# ---------------------------------------------------------------------------
# attachments
# ---------------------------------------------------------------------------

def test_attachments_append_in_order(conn: sqlite3.Connection) -> None:
    card_id = insert_card(conn, _card())
    add_attachment(conn, card_id, _attachment("notes.txt"))
    add_attachment(conn, card_id, _attachment("more.pdf"))
    conn.commit()
    names = [a["original_name"] for a in get_attachments(conn, card_id)]
    assert names == ["notes.txt", "more.pdf"]


def test_attachment_requires_existing_card(conn: sqlite3.Connection) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        add_attachment(conn, "missing", _attachment())


# ---------------------------------------------------------------------------
# events / stats
# ---------------------------------------------------------------------------

def test_log_event(conn: sqlite3.Connection) -> None:
    log_event(conn, "UPLOADED", detail="notes.txt", user_id="alice")
    row = conn.execute("SELECT * FROM events").fetchone()
    assert row["event_type"] == "UPLOADED"
    assert row["user_id"] == "alice"


def test_get_stats(conn: sqlite3.Connection) -> None:
    a = insert_card(conn, _card(content_hash="1", category="AI"))
    insert_card(conn, _card(content_hash="2", category="AI"))
    b = insert_card(conn, _card(user_id="bob", content_hash="3", category="Data"))
    add_attachment(conn, a, _attachment())
    add_attachment(conn, b, _attachment())
    add_attachment(conn, b, _attachment("x.pdf"))
    conn.commit()

    all_stats = get_stats(conn)
    assert all_stats["total_cards"] == 3
    assert all_stats["total_attachments"] == 3
    assert all_stats["by_category"] == {"AI": 2, "Data": 1}

    alice = get_stats(conn, user_id="alice")
    assert alice == {"by_category": {"AI": 2}, "total_cards": 2, "total_attachments": 1}
