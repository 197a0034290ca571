"""Utilities for detecting the format of uploaded documents."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Optional


class FormatKind(str, Enum):
    """Closed set of format kinds understood by the extractors."""

    PDF = "pdf"
    IMAGE = "image"
    SPREADSHEET = "spreadsheet"
    SLIDES = "slides"
    WORD = "word"
    PLAIN_TEXT = "plainText"


class FormatClassifier:
    """Maps a file name and optional media type to a :class:`FormatKind`.

    Classification never fails: anything unrecognised is treated as plain
    text.
    """

    _MIME_MAP = {
        "application/pdf": FormatKind.PDF,
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FormatKind.SPREADSHEET,
        "application/vnd.ms-excel": FormatKind.SPREADSHEET,
        "application/vnd.openxmlformats-officedocument.presentationml.presentation": FormatKind.SLIDES,
        "application/vnd.ms-powerpoint": FormatKind.SLIDES,
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FormatKind.WORD,
        "text/plain": FormatKind.PLAIN_TEXT,
    }

    # Substrings found in vendor media types that do not appear verbatim above.
    _MIME_HINTS = (
        ("spreadsheet", FormatKind.SPREADSHEET),
        ("presentation", FormatKind.SLIDES),
        ("wordprocessing", FormatKind.WORD),
    )

    _SUFFIX_MAP = {
        "pdf": FormatKind.PDF,
        "jpg": FormatKind.IMAGE,
        "jpeg": FormatKind.IMAGE,
        "png": FormatKind.IMAGE,
        "bmp": FormatKind.IMAGE,
        "webp": FormatKind.IMAGE,
        "xlsx": FormatKind.SPREADSHEET,
        "xls": FormatKind.SPREADSHEET,
        "pptx": FormatKind.SLIDES,
        "ppt": FormatKind.SLIDES,
        "docx": FormatKind.WORD,
        "txt": FormatKind.PLAIN_TEXT,
    }

    @classmethod
    def detect(cls, file_name: str, media_type: Optional[str] = None) -> FormatKind:
        """Return the format kind for ``file_name``.

        An explicit media type wins, then the extension (case-insensitive),
        then plain text.
        """

        detected = cls._from_media_type(media_type)
        if detected is not None:
            return detected

        suffix = Path(file_name or "").suffix.lower().lstrip(".")
        if suffix in cls._SUFFIX_MAP:
            return cls._SUFFIX_MAP[suffix]

        guessed_type, _ = mimetypes.guess_type(file_name or "")
        detected = cls._from_media_type(guessed_type)
        if detected is not None:
            return detected

        return FormatKind.PLAIN_TEXT

    @classmethod
    def _from_media_type(cls, media_type: Optional[str]) -> Optional[FormatKind]:
        if not media_type:
            return None
        normalized = media_type.split(";", 1)[0].strip().lower()
        if normalized in cls._MIME_MAP:
            return cls._MIME_MAP[normalized]
        if normalized.startswith("image/"):
            return FormatKind.IMAGE
        for hint, kind in cls._MIME_HINTS:
            if hint in normalized:
                return kind
        return None


__all__ = ["FormatClassifier", "FormatKind"]
