"""
cardsmith/models.py — Data shapes passed between pipeline stages.

CardDraft        : the pipeline's only output unit
TextContent      : extractor result for free-text formats
RowsContent      : extractor result for spreadsheets (one Sheet per worksheet)
SkippedItem      : a section/row that produced no draft, with the reason
AssemblyResult   : (drafts, skipped) pair returned by the assembler
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

CARD_TYPES: tuple[str, ...] = ("concept", "action", "quote", "checklist", "mindmap")
DEFAULT_CARD_TYPE = "concept"
DEFAULT_CATEGORY = "General"

MAX_TITLE_CHARS = 200
MAX_CONTENT_CHARS = 10_000
MAX_TAGS = 10


@dataclass(frozen=True)
class CardDraft:
    title: str
    content: str
    type: str = DEFAULT_CARD_TYPE
    category: str = DEFAULT_CATEGORY
    tags: tuple[str, ...] = ()
    source: str = ""
    metadata: dict[str, Any] | None = None

    def is_complete(self) -> bool:
        return bool(self.title.strip()) and bool(self.content.strip())

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "title":    self.title,
            "content":  self.content,
            "type":     self.type,
            "category": self.category,
            "tags":     list(self.tags),
            "source":   self.source,
        }
        if self.metadata is not None:
            d["metadata"] = self.metadata
        return d


# ---------------------------------------------------------------------------
# Extracted content (tagged variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextContent:
    text: str
    kind: str = field(default="text", init=False)


@dataclass(frozen=True)
class Sheet:
    name: str
    rows: list[list[Any]]   # first row is the header
    first_row: int = 1      # 1-based sheet row of the header


@dataclass(frozen=True)
class RowsContent:
    sheets: list[Sheet]
    kind: str = field(default="rows", init=False)


ExtractedContent = Union[TextContent, RowsContent]


# ---------------------------------------------------------------------------
# Assembly results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SkippedItem:
    location: str   # "section 3" | "Sheet1 row 7"
    reason: str


@dataclass
class AssemblyResult:
    drafts: list[CardDraft] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)

    def extend(self, other: "AssemblyResult") -> None:
        self.drafts.extend(other.drafts)
        self.skipped.extend(other.skipped)
