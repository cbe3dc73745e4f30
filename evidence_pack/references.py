"""Scripture reference parsing and overlap matching.

Two syntaxes are understood:

- full book names, optionally numbered and multi-word: "1 John 2:1-2",
  "Song of Solomon 1:1", "Psalm 51";
- canonical compact codes: "JHN 6:1-5", "1CO 13".

Only the first range of a comma-separated list is parsed ("ROM 8:1-6, 8:22-26"
reads as ROM 8:1-6). Anything malformed yields ``None``; nothing here raises.
"""

from __future__ import annotations

import re
from typing import Optional

from .books import lookup_book_code
from .schemas import ParsedReference

COMPACT_REF_RE = re.compile(r"^([1-3]?[A-Z]{2,3})\s+(\d{1,3})(?::(\d{1,3})(?:-(\d{1,3}))?)?$")
LOOSE_REF_RE = re.compile(r"^(\d?\s*[A-Za-z][A-Za-z.\s]+?)\s+(\d{1,3})(?::(\d{1,3})(?:-(\d{1,3}))?)?$")


def _first_range(text: str) -> str:
    return text.strip().split(",")[0].strip()


def _build(book_code: str, chapter: str, start: Optional[str], end: Optional[str]) -> Optional[ParsedReference]:
    chapter_num = int(chapter)
    verse_start = int(start) if start else None
    verse_end = int(end) if end else None
    if chapter_num <= 0 or verse_start == 0:
        return None
    if verse_end is not None and verse_end < verse_start:
        return None
    return ParsedReference(book_code, chapter_num, verse_start, verse_end)


def parse_compact_reference(text: object) -> Optional[ParsedReference]:
    """Parse a canonical-code reference such as "JHN 6:1-5"."""
    if not isinstance(text, str):
        return None
    match = COMPACT_REF_RE.match(_first_range(text))
    if not match:
        return None
    return _build(match.group(1), match.group(2), match.group(3), match.group(4))


def parse_loose_reference(text: object) -> Optional[ParsedReference]:
    """Parse a book-name reference such as "1 John 2:1-2"."""
    if not isinstance(text, str):
        return None
    match = LOOSE_REF_RE.match(_first_range(text))
    if not match:
        return None
    book_code = lookup_book_code(match.group(1))
    if not book_code:
        return None
    return _build(book_code, match.group(2), match.group(3), match.group(4))


def parse_reference(text: object) -> Optional[ParsedReference]:
    """Parse either syntax, trying the canonical form first."""
    return parse_compact_reference(text) or parse_loose_reference(text)


def references_match(a: ParsedReference, b: ParsedReference) -> bool:
    """Same book and chapter, and overlapping verses unless either is chapter-level."""
    if a.book_code != b.book_code or a.chapter != b.chapter:
        return False
    if a.verse_start is None or b.verse_start is None:
        return True
    a_end = a.verse_end if a.verse_end is not None else a.verse_start
    b_end = b.verse_end if b.verse_end is not None else b.verse_start
    return a.verse_start <= b_end and b.verse_start <= a_end


def format_reference(ref: ParsedReference) -> str:
    if ref.verse_start is None:
        return f"{ref.book_code} {ref.chapter}"
    if ref.verse_end is None or ref.verse_end == ref.verse_start:
        return f"{ref.book_code} {ref.chapter}:{ref.verse_start}"
    return f"{ref.book_code} {ref.chapter}:{ref.verse_start}-{ref.verse_end}"
