"""
tests/test_ingest.py — Upload ingestion, duplicate merging and batch tests.

Run with: pytest tests/test_ingest.py -v
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

import cardsmith.ingest as ingest
from cardsmith.db import get_attachments, get_card, get_connection, list_cards
from cardsmith.dedupe import CREATE, Resolution, content_hash
from cardsmith.errors import (
    BatchTooLarge,
    FileTooLarge,
    InvalidFileType,
    UnsupportedFormat,
)
from cardsmith.ingest import (
    guess_mimetype,
    ingest_batch,
    ingest_upload,
    persist_draft,
    stage_upload,
)
from cardsmith.models import CardDraft

NOTES = (
    "Step 1: Do the thing. Step 2: Verify.\n\n"
    "Budget review happens every quarter.\n"
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def conn(tmp_path: Path):
    c = get_connection(tmp_path / "db" / "cardsmith.db")
    yield c
    c.close()


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


def _stage(tmp_path: Path, upload_dir: Path, name: str, body: str | bytes):
    src = tmp_path / "src" / name
    src.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(body, str):
        src.write_text(body, encoding="utf-8")
    else:
        src.write_bytes(body)
    return stage_upload(src, upload_dir)


def _events(conn: sqlite3.Connection) -> list[str]:
    return [r["event_type"] for r in conn.execute("SELECT event_type FROM events ORDER BY event_id")]


# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------

def test_stage_upload_copies_under_unique_name(tmp_path: Path, upload_dir: Path) -> None:
    up = _stage(tmp_path, upload_dir, "notes.txt", NOTES)
    assert up.path.parent == upload_dir
    assert up.filename.startswith("file-") and up.filename.endswith(".txt")
    assert up.original_name == "notes.txt"
    assert up.mimetype == "text/plain"
    assert up.size == len(NOTES.encode("utf-8"))
    assert (tmp_path / "src" / "notes.txt").exists()


def test_guess_mimetype() -> None:
    assert guess_mimetype("a.PDF") == "application/pdf"
    assert guess_mimetype("a.jpeg") == "image/jpeg"
    assert guess_mimetype("a.xls") == "application/vnd.ms-excel"


# ---------------------------------------------------------------------------
# Single upload
# ---------------------------------------------------------------------------

def test_ingest_creates_cards_with_attachment(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    up = _stage(tmp_path, upload_dir, "notes.txt", NOTES)
    stats = ingest_upload(conn, "alice", up)

    assert stats["created"] == 2
    assert stats["merged"] == 0
    assert stats["failed"] == 0
    cards = list_cards(conn, "alice")
    assert len(cards) == 2
    for card in cards:
        assert card["source"] == "notes.txt"
        attachments = get_attachments(conn, card["card_id"])
        assert [a["filename"] for a in attachments] == [up.filename]
    assert up.path.exists()
    assert _events(conn) == ["UPLOADED"]


def test_reupload_merges_instead_of_duplicating(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    first = ingest_upload(conn, "alice", _stage(tmp_path, upload_dir, "notes.txt", NOTES))
    second = ingest_upload(conn, "alice", _stage(tmp_path, upload_dir, "notes.txt", NOTES))

    assert first["created"] == 2
    assert second["created"] == 0
    assert second["merged"] == 2
    assert sorted(second["card_ids"]) == sorted(first["card_ids"])
    cards = list_cards(conn, "alice")
    assert len(cards) == 2
    for card in cards:
        assert card["source"] == "notes.txt"
        assert len(get_attachments(conn, card["card_id"])) == 2


def test_same_content_other_file_extends_source(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    ingest_upload(conn, "alice", _stage(tmp_path, upload_dir, "notes.txt", NOTES))
    stats = ingest_upload(conn, "alice", _stage(tmp_path, upload_dir, "copy.md", NOTES))

    assert stats["merged"] == 2
    for card in list_cards(conn, "alice"):
        assert card["source"] == "notes.txt, copy.md"


def test_other_user_gets_own_cards(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    ingest_upload(conn, "alice", _stage(tmp_path, upload_dir, "notes.txt", NOTES))
    stats = ingest_upload(conn, "bob", _stage(tmp_path, upload_dir, "notes.txt", NOTES))
    assert stats["created"] == 2
    assert len(list_cards(conn, "bob")) == 2


def test_duplicate_paragraph_in_one_file_merges(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    body = "Budget review happens every quarter.\n\nBudget review happens every quarter."
    stats = ingest_upload(conn, "alice", _stage(tmp_path, upload_dir, "dup.txt", body))
    assert stats["created"] == 1
    assert stats["merged"] == 1
    card = list_cards(conn, "alice")[0]
    assert len(get_attachments(conn, card["card_id"])) == 2


def test_overrides_applied(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    up = _stage(tmp_path, upload_dir, "notes.txt", NOTES)
    ingest_upload(conn, "alice", up, category="Leadership", tags="team, growth")
    for card in list_cards(conn, "alice"):
        assert card["category"] == "Leadership"
        assert card["tags"] == ["team", "growth"]


def test_too_large_file_rejected_and_removed(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    up = _stage(tmp_path, upload_dir, "notes.txt", NOTES)
    with pytest.raises(FileTooLarge):
        ingest_upload(conn, "alice", up, max_file_bytes=10)
    assert not up.path.exists()
    assert _events(conn) == ["UPLOAD_FAILED"]
    assert list_cards(conn, "alice") == []


def test_disallowed_mimetype_rejected_and_removed(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    up = _stage(tmp_path, upload_dir, "notes.txt", NOTES)
    with pytest.raises(InvalidFileType):
        ingest_upload(conn, "alice", up, allowed_mimetypes=["application/pdf"])
    assert not up.path.exists()


def test_unsupported_format_removes_stored_file(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    up = _stage(tmp_path, upload_dir, "anim.gif", b"GIF89a" + b"\x00" * 10)
    assert up.mimetype == "image/gif"
    with pytest.raises(UnsupportedFormat):
        ingest_upload(conn, "alice", up)
    assert not up.path.exists()


def test_create_race_falls_back_to_merge(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection, monkeypatch: pytest.MonkeyPatch,
) -> None:
    up = _stage(tmp_path, upload_dir, "notes.txt", NOTES)
    draft = CardDraft("Budget review", "Budget review happens every quarter.", source="notes.txt")
    card_id, merged = persist_draft(conn, "alice", draft, up)
    assert merged is False

    # A stale lookup still says "create"; the unique index catches it.
    def stale(d: CardDraft, user_id: str, index) -> Resolution:
        return Resolution(CREATE, content_hash(d.title, d.content))

    monkeypatch.setattr(ingest, "resolve", stale)
    again_id, merged = persist_draft(conn, "alice", draft, up)
    assert merged is True
    assert again_id == card_id
    assert len(get_attachments(conn, card_id)) == 2
    assert get_card(conn, card_id)["source"] == "notes.txt"


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def test_batch_continues_past_failures(
    tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection,
) -> None:
    uploads = [
        _stage(tmp_path, upload_dir, "notes.txt", NOTES),
        _stage(tmp_path, upload_dir, "bad.json", "{broken"),
        _stage(tmp_path, upload_dir, "more.md", "Customer feedback shapes the roadmap."),
    ]
    results = ingest_batch(conn, "alice", uploads)

    assert [r["file"] for r in results] == ["notes.txt", "bad.json", "more.md"]
    assert [r["success"] for r in results] == [True, False, True]
    assert results[0]["total"] == 2
    assert results[1]["error"].startswith("JSON file extraction failed")
    assert results[2]["created"] == 1
    assert len(list_cards(conn, "alice")) == 3


def test_batch_limit(tmp_path: Path, upload_dir: Path, conn: sqlite3.Connection) -> None:
    uploads = [
        _stage(tmp_path, upload_dir, f"n{i}.txt", f"Paragraph {i} about budgets.")
        for i in range(3)
    ]
    with pytest.raises(BatchTooLarge) as exc:
        ingest_batch(conn, "alice", uploads, max_files=2)
    assert exc.value.count == 3
    assert list_cards(conn, "alice") == []
