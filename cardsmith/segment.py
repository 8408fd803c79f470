"""
cardsmith/segment.py — Split extracted free text into candidate card sections.

Blank lines end a section. A section longer than MAX_SECTION_CHARS is split
again at sentence boundaries. Whitespace-only sections are dropped; the
minimum useful length is decided by the assembler, not here.
"""

from __future__ import annotations

import re
from typing import Iterator

MAX_SECTION_CHARS = 500

_BLANK_LINE_RE = re.compile(r"\n\s*\n|\r\n\s*\r\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def segment(text: str) -> Iterator[str]:
    """Yield sections of text in document order."""
    for block in _BLANK_LINE_RE.split(text):
        if len(block) > MAX_SECTION_CHARS:
            parts = _SENTENCE_RE.split(block)
        else:
            parts = [block]
        for part in parts:
            if part.strip():
                yield part
