"""
cardsmith/dedupe.py — Content-hash duplicate resolution.

content_hash(title, content)
    sha256 of "<title>-<content>", each lowercased and trimmed.
    Tags, category, source and attachments never affect identity.

resolve(draft, user_id, hash_index) -> Resolution
    "merge" into the user's existing card with the same hash, else "create".
    Evaluated independently for every draft; hash_index is whatever the
    caller persists cards in (see cardsmith.db.CardIndex).
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol

from cardsmith.models import CardDraft

CREATE = "create"
MERGE = "merge"


class HashIndex(Protocol):
    def find_by_hash(self, user_id: str, content_hash: str) -> str | None: ...


@dataclass(frozen=True)
class Resolution:
    action: str                       # "create" | "merge"
    content_hash: str
    existing_card_id: str | None = None

    @property
    def is_merge(self) -> bool:
        return self.action == MERGE


def content_hash(title: str, content: str) -> str:
    key = f"{title.lower().strip()}-{content.lower().strip()}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def resolve(draft: CardDraft, user_id: str, hash_index: HashIndex) -> Resolution:
    h = content_hash(draft.title, draft.content)
    existing = hash_index.find_by_hash(user_id, h)
    if existing is not None:
        return Resolution(MERGE, h, existing)
    return Resolution(CREATE, h)


def merge_source(existing_source: str, file_name: str) -> str:
    """Append file_name to a comma-joined source string unless already named."""
    if not existing_source:
        return file_name
    if file_name in (s.strip() for s in existing_source.split(",")):
        return existing_source
    return f"{existing_source}, {file_name}"


class InMemoryHashIndex:
    """Dict-backed HashIndex keyed on (user_id, content_hash)."""

    def __init__(self) -> None:
        self._cards: dict[tuple[str, str], str] = {}

    def find_by_hash(self, user_id: str, content_hash: str) -> str | None:
        return self._cards.get((user_id, content_hash))

    def add(self, user_id: str, content_hash: str, card_id: str) -> None:
        self._cards.setdefault((user_id, content_hash), card_id)

    def __len__(self) -> int:
        return len(self._cards)
