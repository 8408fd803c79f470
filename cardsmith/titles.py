"""
cardsmith/titles.py — Title and tag generation from lexical cues.
"""

from __future__ import annotations

import re

from cardsmith.classify import CATEGORY_KEYWORDS
from cardsmith.models import MAX_TAGS

MAX_TITLE_LINE = 100
TITLE_WORDS = 3
FREE_TAGS = 5

TITLE_STOP_WORDS = frozenset(
    {"the", "and", "for", "with", "this", "that", "have", "will", "from"}
)
TAG_STOP_WORDS = frozenset(
    {"about", "their", "there", "these", "those", "which", "where", "would",
     "could", "should"}
)

_WORD_RE = re.compile(r"\w+")
_LEADING_BULLET_RE = re.compile(r"^[-•*]\s*")
_LEADING_QUOTE_RE = re.compile(r"^[\"“”„«»]\s*")
_TRAILING_QUOTE_RE = re.compile(r"\s*[\"“”„«»]$")

# Every category keyword once, in table order.
_ALL_CATEGORY_KEYWORDS: tuple[str, ...] = tuple(
    dict.fromkeys(kw for _, keywords in CATEGORY_KEYWORDS for kw in keywords)
)


def tokenize(text: str) -> list[str]:
    return _WORD_RE.findall(text)


def generate_title(text: str, card_type: str) -> str:
    first_line = text.split("\n")[0].strip()
    title = _LEADING_BULLET_RE.sub("", first_line)
    title = _TRAILING_QUOTE_RE.sub("", _LEADING_QUOTE_RE.sub("", title))
    if 0 < len(title) < MAX_TITLE_LINE:
        return title

    words = [
        w for w in tokenize(text.lower())
        if len(w) > 3 and w not in TITLE_STOP_WORDS
    ]
    if words:
        return " ".join(w[:1].upper() + w[1:] for w in words[:TITLE_WORDS])

    return f"{card_type[:1].upper()}{card_type[1:]} Card"


def extract_tags(text: str) -> list[str]:
    """
    Category keywords found in the text, then the first few distinct longer
    words, in encounter order. At most MAX_TAGS, no duplicates.
    """
    lowered = text.lower()
    tags: dict[str, None] = {}

    for kw in _ALL_CATEGORY_KEYWORDS:
        if kw in lowered:
            tags[kw] = None

    relevant = [
        w for w in tokenize(lowered)
        if len(w) > 4 and w not in TAG_STOP_WORDS
    ]
    for w in list(dict.fromkeys(relevant))[:FREE_TAGS]:
        tags[w] = None

    return list(tags)[:MAX_TAGS]
