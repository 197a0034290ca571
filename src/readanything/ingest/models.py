"""Data models used by the ingestion pipeline."""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Optional

from .normalization import escape_header_lines

PAGE_HEADER = "--- Page {index} ---"
SHEET_HEADER = "--- Sheet: {name} ---"
SLIDE_HEADER = "--- Slide {index} ---"
WORD_HEADER = "--- Document Content ---"
IMAGE_HEADER = "--- Image OCR Result ---"
TEXT_HEADER = "--- Text File ---"


@dataclass(slots=True, frozen=True)
class SourceFile:
    """An uploaded file as handed to the pipeline."""

    name: str
    data: bytes
    media_type: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(slots=True, frozen=True)
class VisualPayload:
    """Base64 encoded image bytes forwarded to the reasoning engine."""

    data: str
    media_type: str

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str) -> "VisualPayload":
        return cls(data=base64.b64encode(data).decode("ascii"), media_type=media_type)


@dataclass(slots=True)
class ExtractionResult:
    """Unit-segmented text produced by one extractor run."""

    text: str
    unit_count: int
    visual_payload: Optional[VisualPayload] = None
    ocr_performed: bool = False
    warnings: list[str] = field(default_factory=list)


def unit_block(header: str, body: str) -> str:
    """Render one unit of a multi-unit document.

    Header-like lines in ``body`` are escaped so the unit count read back
    from the text always matches the number of blocks written.
    """

    return f"{header}\n{escape_header_lines(body)}\n\n"


def whole_block(header: str, body: str) -> str:
    """Render the single unit of a document without native subdivision."""

    return f"{header}\n{body}"


__all__ = [
    "ExtractionResult",
    "IMAGE_HEADER",
    "PAGE_HEADER",
    "SHEET_HEADER",
    "SLIDE_HEADER",
    "SourceFile",
    "TEXT_HEADER",
    "VisualPayload",
    "WORD_HEADER",
    "unit_block",
    "whole_block",
]
