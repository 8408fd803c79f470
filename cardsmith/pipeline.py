"""
cardsmith/pipeline.py — Single-file entry point for the card pipeline.

process_file(file_bytes, file_name, mime_type) -> PipelineResult
    extract → (text path | row path) → drafts.
    Raises UnsupportedFormat / ExtractionFailed from extraction, and
    NoContentExtracted when no draft survives (including the case where
    every section failed individually).

apply_overrides(drafts, category, tags) -> list[CardDraft]
    Caller-boundary overlay of a user-supplied category / comma-separated
    tag string. Not applied by process_file itself.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field

from cardsmith.assemble import assemble_rows, assemble_text
from cardsmith.errors import NoContentExtracted
from cardsmith.extract import extract
from cardsmith.models import MAX_TAGS, CardDraft, RowsContent, SkippedItem

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    file_name: str
    drafts: list[CardDraft] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)


def process_file(
    file_bytes: bytes,
    file_name: str,
    mime_type: str | None = None,
) -> PipelineResult:
    logger.info("Processing %s (%d bytes)", file_name, len(file_bytes))
    content = extract(file_bytes, file_name, mime_type)

    if isinstance(content, RowsContent):
        assembled = assemble_rows(content.sheets)
    else:
        assembled = assemble_text(content.text, file_name)

    if not assembled.drafts:
        logger.warning(
            "No cards created from %s (%d items skipped)",
            file_name, len(assembled.skipped),
        )
        raise NoContentExtracted(file_name, assembled.skipped)

    logger.info(
        "Processed %s: %d drafts, %d skipped",
        file_name, len(assembled.drafts), len(assembled.skipped),
    )
    return PipelineResult(file_name, assembled.drafts, assembled.skipped)


def parse_tags(tags: str) -> tuple[str, ...]:
    """'a, b,,a' → ('a', 'b')"""
    cleaned = (t.strip() for t in tags.split(","))
    return tuple(dict.fromkeys(t for t in cleaned if t))[:MAX_TAGS]


def apply_overrides(
    drafts: list[CardDraft],
    category: str | None = None,
    tags: str | None = None,
) -> list[CardDraft]:
    changes: dict[str, object] = {}
    if category and category.strip():
        changes["category"] = category.strip()
    if tags and tags.strip():
        changes["tags"] = parse_tags(tags)
    if not changes:
        return list(drafts)
    return [dataclasses.replace(d, **changes) for d in drafts]
