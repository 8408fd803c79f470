"""
cardsmith/ingest.py — Upload handling on top of the pipeline.

This is the caller side of the pipeline: it owns persistence, duplicate
merging against stored state, attachment bookkeeping and clean-up.

stage_upload(src, upload_dir, mimetype) -> Upload
    Copy a local file into the upload directory under a unique stored name.

ingest_upload(conn, user_id, upload, category, tags, max_file_bytes,
              allowed_mimetypes) -> dict
    1. MIME allow-list check → InvalidFileType; size check → FileTooLarge
    2. process_file() → drafts (pipeline errors re-raised after the stored
       upload is deleted)
    3. apply_overrides() for the user-supplied category / tags
    4. Per draft: resolve() against the cards table, then
         create → new card + singleton attachment list
         merge  → append attachment, extend source
       A failing draft is logged and counted; the rest continue.
    Returns {"created": N, "merged": N, "failed": N, "card_ids": [...]}.

ingest_batch(conn, user_id, uploads, ...) -> list[dict]
    Sequential. One failing file never aborts its siblings.
"""

from __future__ import annotations

import logging
import mimetypes
import random
import shutil
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from cardsmith.db import (
    CardIndex,
    add_attachment,
    get_card,
    insert_card,
    log_event,
    update_card_source,
)
from cardsmith.dedupe import merge_source, resolve
from cardsmith.errors import (
    BatchTooLarge,
    CardsmithError,
    FileTooLarge,
    InvalidFileType,
)
from cardsmith.extract import MIME_EXTENSIONS
from cardsmith.models import CardDraft
from cardsmith.pipeline import apply_overrides, process_file

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_BATCH_FILES = 5

# Serializes resolve + persist so two drafts with the same (user, hash) can
# not both take the create branch.
_persist_lock = threading.Lock()


@dataclass(frozen=True)
class Upload:
    path: Path             # where the stored copy lives
    filename: str          # stored name, e.g. file-1700000000000-123456789.pdf
    original_name: str
    mimetype: str | None
    size: int

    def attachment(self) -> dict[str, Any]:
        return {
            "filename":      self.filename,
            "original_name": self.original_name,
            "mimetype":      self.mimetype,
            "size_bytes":    self.size,
            "path":          str(self.path),
        }


# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------

_EXTENSION_MIMES: dict[str, str] = {ext: mime for mime, ext in MIME_EXTENSIONS.items()}
_EXTENSION_MIMES[".jpeg"] = "image/jpeg"


def guess_mimetype(file_name: str) -> str | None:
    ext = Path(file_name).suffix.lower()
    return _EXTENSION_MIMES.get(ext) or mimetypes.guess_type(file_name)[0]


def _stored_name(original_name: str) -> str:
    suffix = Path(original_name).suffix
    return f"file-{int(time.time() * 1000)}-{random.randint(0, 10**9 - 1)}{suffix}"


def stage_upload(
    src: Path,
    upload_dir: Path,
    mimetype: str | None = None,
) -> Upload:
    upload_dir.mkdir(parents=True, exist_ok=True)
    stored = _stored_name(src.name)
    dest = upload_dir / stored
    shutil.copyfile(src, dest)
    return Upload(
        path=dest,
        filename=stored,
        original_name=src.name,
        mimetype=mimetype or guess_mimetype(src.name),
        size=dest.stat().st_size,
    )


def _discard(upload: Upload) -> None:
    try:
        upload.path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove stored upload %s: %s", upload.path, e)


# ---------------------------------------------------------------------------
# Persistence of one draft
# ---------------------------------------------------------------------------

def _merge(conn: sqlite3.Connection, card_id: str, upload: Upload) -> None:
    card = get_card(conn, card_id)
    if card is None:
        raise CardsmithError(f"card {card_id} vanished during merge")
    add_attachment(conn, card_id, upload.attachment())
    new_source = merge_source(card["source"], upload.original_name)
    if new_source != card["source"]:
        update_card_source(conn, card_id, new_source)


def persist_draft(
    conn: sqlite3.Connection,
    user_id: str,
    draft: CardDraft,
    upload: Upload,
) -> tuple[str, bool]:
    """
    Create or merge one draft. Returns (card_id, merged).
    """
    index = CardIndex(conn)
    with _persist_lock:
        res = resolve(draft, user_id, index)
        if res.is_merge:
            with conn:
                _merge(conn, res.existing_card_id, upload)  # type: ignore[arg-type]
            return res.existing_card_id, True  # type: ignore[return-value]

        try:
            with conn:
                card_id = insert_card(conn, {
                    "user_id":      user_id,
                    "title":        draft.title,
                    "content":      draft.content,
                    "content_hash": res.content_hash,
                    "type":         draft.type,
                    "category":     draft.category,
                    "tags":         list(draft.tags),
                    "source":       upload.original_name,
                    "metadata":     draft.metadata,
                })
                add_attachment(conn, card_id, upload.attachment())
            return card_id, False
        except sqlite3.IntegrityError:
            # Another writer created the same card first; fold into it.
            existing = index.find_by_hash(user_id, res.content_hash)
            if existing is None:
                raise
            with conn:
                _merge(conn, existing, upload)
            return existing, True


# ---------------------------------------------------------------------------
# Single upload
# ---------------------------------------------------------------------------

def ingest_upload(
    conn: sqlite3.Connection,
    user_id: str,
    upload: Upload,
    category: str | None = None,
    tags: str | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    allowed_mimetypes: Iterable[str] | None = None,
) -> dict[str, Any]:
    """
    Process one stored upload for user_id and persist its cards.
    Pipeline-level errors delete the stored file and propagate.
    allowed_mimetypes=None accepts any declared type.
    """
    stats: dict[str, Any] = {"created": 0, "merged": 0, "failed": 0, "card_ids": []}

    try:
        if allowed_mimetypes is not None and upload.mimetype not in set(allowed_mimetypes):
            raise InvalidFileType(upload.original_name, upload.mimetype)
        if upload.size > max_file_bytes:
            raise FileTooLarge(upload.original_name, upload.size, max_file_bytes)
        data = upload.path.read_bytes()
        result = process_file(data, upload.original_name, upload.mimetype)
    except (CardsmithError, OSError) as e:
        logger.error("Upload %s failed: %s", upload.original_name, e)
        _discard(upload)
        log_event(conn, "UPLOAD_FAILED", detail=f"{upload.original_name}: {e}", user_id=user_id)
        raise

    drafts = apply_overrides(result.drafts, category=category, tags=tags)

    for i, draft in enumerate(drafts, start=1):
        try:
            card_id, merged = persist_draft(conn, user_id, draft, upload)
        except (sqlite3.Error, CardsmithError) as e:
            logger.error(
                "Error persisting item %d/%d (%s) from %s: %s",
                i, len(drafts), draft.title, upload.original_name, e,
            )
            stats["failed"] += 1
            continue
        stats["merged" if merged else "created"] += 1
        stats["card_ids"].append(card_id)
        logger.debug("%s card: %s", "Updated existing" if merged else "Created new", draft.title)

    log_event(
        conn, "UPLOADED",
        detail=(
            f"{upload.original_name}: created={stats['created']} "
            f"merged={stats['merged']} failed={stats['failed']}"
        ),
        user_id=user_id,
    )
    logger.info(
        "Ingested %s: %d created, %d merged, %d failed",
        upload.original_name, stats["created"], stats["merged"], stats["failed"],
    )
    return stats


# ---------------------------------------------------------------------------
# Batch upload
# ---------------------------------------------------------------------------

def ingest_batch(
    conn: sqlite3.Connection,
    user_id: str,
    uploads: Iterable[Upload],
    category: str | None = None,
    tags: str | None = None,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    max_files: int = DEFAULT_MAX_BATCH_FILES,
    allowed_mimetypes: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """
    Ingest several uploads one after another.
    Returns one result per file:
      {"file", "success", "created", "merged", "total", "error"}
    """
    uploads = list(uploads)
    if len(uploads) > max_files:
        raise BatchTooLarge(len(uploads), max_files)

    results: list[dict[str, Any]] = []
    for upload in uploads:
        try:
            stats = ingest_upload(
                conn, user_id, upload,
                category=category, tags=tags, max_file_bytes=max_file_bytes,
                allowed_mimetypes=allowed_mimetypes,
            )
        except (CardsmithError, OSError) as e:
            results.append({
                "file": upload.original_name, "success": False,
                "created": 0, "merged": 0, "total": 0, "error": str(e),
            })
            continue
        results.append({
            "file":    upload.original_name,
            "success": True,
            "created": stats["created"],
            "merged":  stats["merged"],
            "total":   stats["created"] + stats["merged"],
            "error":   None,
        })
    return results
