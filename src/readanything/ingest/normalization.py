"""Text normalisation for decoder output before it is wrapped in unit blocks."""
from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"[ \t]+")
_MULTIPLE_NEWLINES_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
# OCR splits words at the right margin: "docu-\nment" -> "document"
_HYPHENATED_BREAK_RE = re.compile(r"(\w)-\n(\w)")
# Lines inside a unit body that would be read back as a unit header.
_HEADER_LIKE_LINE_RE = re.compile(r"^(--- (?:Page \d+|Slide \d+|Sheet: .*) ---)$", re.MULTILINE)


def normalize_text(text: str) -> str:
    """Normalise OCR output: NFC, LF line endings, single spaces, rejoined hyphenation."""

    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _TRAILING_SPACE_RE.sub("\n", normalized)
    normalized = _HYPHENATED_BREAK_RE.sub(r"\1\2", normalized)
    normalized = _MULTIPLE_NEWLINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def escape_header_lines(body: str) -> str:
    """Indent body lines that look like unit headers so only real headers anchor units."""

    return _HEADER_LIKE_LINE_RE.sub(r" \1", body)


__all__ = ["escape_header_lines", "normalize_text"]
