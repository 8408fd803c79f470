"""
cardsmith/assemble.py — Build CardDrafts from segmented text or sheet rows.

Text path
---------
assemble_text(text, source) -> AssemblyResult
    segment() → collapse whitespace → skip sections < MIN_SECTION_CHARS
    → classify_type / generate_title / classify_category / extract_tags.

Row path (spreadsheets)
-----------------------
assemble_rows(sheets) -> AssemblyResult
    The first row of each sheet's used range is the schema; every later row
    becomes one card. Rows are numbered as they appear in the sheet.
      content : column index 1 if non-blank, else first non-blank cell
      title   : first non-blank cell (< 100 chars verbatim, else generated),
                fallback "<Sheet> - Row <n>"
      tags    : slugified column names + sheet name + row-<n>
    Category is always "Data", type always "concept".
    All-blank rows are skipped without an error.

Both loops are best-effort: a failing section or row is logged, recorded in
AssemblyResult.skipped, and the loop moves on.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from cardsmith.classify import classify_category, classify_type
from cardsmith.errors import SectionAssemblyError
from cardsmith.models import (
    MAX_CONTENT_CHARS,
    MAX_TAGS,
    MAX_TITLE_CHARS,
    AssemblyResult,
    CardDraft,
    Sheet,
    SkippedItem,
)
from cardsmith.segment import segment
from cardsmith.titles import extract_tags, generate_title

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_SECTION_CHARS = 10
MAX_ROW_CONTENT_CHARS = 9_500
TRUNCATION_MARKER = "... [Content truncated]"
ROW_CATEGORY = "Data"
ROW_TYPE = "concept"

_WS_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def _cell_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _keep(result: AssemblyResult, draft: CardDraft, location: str) -> None:
    if draft.is_complete():
        result.drafts.append(draft)
    else:
        logger.warning("Dropping %s: empty title or content", location)
        result.skipped.append(SkippedItem(location, "empty title or content"))


# ---------------------------------------------------------------------------
# Text path
# ---------------------------------------------------------------------------

def build_section_card(section: str, source: str) -> CardDraft | None:
    """
    One section → one draft. None for sections too short to be useful.
    Any failure is raised as SectionAssemblyError.
    """
    clean = _WS_RE.sub(" ", section.strip())
    if len(clean) < MIN_SECTION_CHARS:
        return None
    try:
        card_type = classify_type(clean)
        title = generate_title(clean, card_type)
        category = classify_category(clean)
        tags = extract_tags(clean)
    except Exception as e:
        raise SectionAssemblyError(f"section from {source}", e) from e

    return CardDraft(
        title=_clip(title or "Untitled Card", MAX_TITLE_CHARS),
        content=_clip(clean, MAX_CONTENT_CHARS),
        type=card_type,
        category=category,
        tags=tuple(tags),
        source=source,
    )


def assemble_text(text: str, source: str) -> AssemblyResult:
    result = AssemblyResult()
    for idx, section in enumerate(segment(text), start=1):
        location = f"section {idx}"
        try:
            draft = build_section_card(section, source)
        except SectionAssemblyError as e:
            logger.warning("Skipping %s of %s: %s", location, source, e.cause)
            result.skipped.append(SkippedItem(location, str(e.cause)))
            continue
        if draft is not None:
            _keep(result, draft, location)
    return result


# ---------------------------------------------------------------------------
# Row path
# ---------------------------------------------------------------------------

def placeholder_column(index: int) -> str:
    return f"Column_{index + 1}"


def build_schema(header: Iterable[Any]) -> list[str]:
    """Column names from the header row; blank headers get Column_<n>."""
    return [
        _cell_text(h) or placeholder_column(i)
        for i, h in enumerate(header)
    ]


def slugify(name: str) -> str:
    return _WS_RE.sub("-", name.lower())


def _row_tags(schema: list[str], sheet_name: str, row_number: int) -> tuple[str, ...]:
    tags = [
        slugify(name)
        for i, name in enumerate(schema)
        if name != placeholder_column(i)
    ]
    tags += [sheet_name.lower(), f"row-{row_number}"]
    return tuple(dict.fromkeys(tags))[:MAX_TAGS]


def assemble_row(
    row: list[Any],
    row_number: int,
    sheet_name: str,
    schema: list[str],
) -> CardDraft | None:
    """
    Build a draft from one data row. row_number is the 1-based
    sheet row. Returns None for an all-blank row.
    """
    if not any(_cell_text(v) for v in row):
        return None

    structured: dict[str, Any] = {}
    for i, name in enumerate(schema):
        structured[name] = row[i] if i < len(row) and row[i] is not None else ""

    content = _cell_text(row[1]) if len(row) > 1 else ""
    if not content:
        content = next((_cell_text(v) for v in row if _cell_text(v)), "")
    if len(content) > MAX_ROW_CONTENT_CHARS:
        content = content[:MAX_ROW_CONTENT_CHARS] + TRUNCATION_MARKER

    first = next((_cell_text(v) for v in row if _cell_text(v)), "")
    if 0 < len(first) < 100:
        title = first
    elif first:
        title = generate_title(first, ROW_TYPE)
    else:
        title = f"{sheet_name} - Row {row_number}"

    return CardDraft(
        title=_clip(title, MAX_TITLE_CHARS),
        content=content,
        type=ROW_TYPE,
        category=ROW_CATEGORY,
        tags=_row_tags(schema, sheet_name, row_number),
        source=f"Excel: {sheet_name}",
        metadata={
            "row_number":     row_number,
            "sheet_name":     sheet_name,
            "column_count":   len(schema),
            "schema":         list(schema),
            "structured_row": structured,
        },
    )


def assemble_sheet(sheet: Sheet) -> AssemblyResult:
    result = AssemblyResult()
    if not sheet.rows:
        return result

    schema = build_schema(sheet.rows[0])
    logger.debug("Sheet %s schema: %s", sheet.name, schema)

    for row_number, row in enumerate(sheet.rows[1:], start=sheet.first_row + 1):
        location = f"{sheet.name} row {row_number}"
        try:
            draft = assemble_row(row, row_number, sheet.name, schema)
        except Exception as e:
            err = SectionAssemblyError(location, e)
            logger.warning("Skipping %s", err)
            result.skipped.append(SkippedItem(location, str(e)))
            continue
        if draft is None:
            logger.debug("Row %d of %s is blank, skipping", row_number, sheet.name)
            continue
        _keep(result, draft, location)
    return result


def assemble_rows(sheets: Iterable[Sheet]) -> AssemblyResult:
    result = AssemblyResult()
    for sheet in sheets:
        result.extend(assemble_sheet(sheet))
    return result
