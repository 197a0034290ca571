"""Normalized document model and the unit-header invariant.

A document's anchors are never stored. They are recomputed from the
normalized text on demand, so they cannot drift from it.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from readanything.errors import DocumentInvariantError
from readanything.ingest.format_detection import FormatKind
from readanything.ingest.models import (
    IMAGE_HEADER,
    TEXT_HEADER,
    WORD_HEADER,
    VisualPayload,
)


class AnchorKind(str, Enum):
    PAGE = "page"
    SLIDE = "slide"
    SHEET = "sheet"
    WHOLE = "whole"


_NUMBERED_HEADERS = {
    FormatKind.PDF: (AnchorKind.PAGE, re.compile(r"^--- Page (\d+) ---$", re.MULTILINE)),
    FormatKind.SLIDES: (AnchorKind.SLIDE, re.compile(r"^--- Slide (\d+) ---$", re.MULTILINE)),
}
_SHEET_HEADER_RE = re.compile(r"^--- Sheet: (.*) ---$", re.MULTILINE)
_WHOLE_HEADERS = {
    FormatKind.WORD: WORD_HEADER,
    FormatKind.IMAGE: IMAGE_HEADER,
    FormatKind.PLAIN_TEXT: TEXT_HEADER,
}


@dataclass(slots=True, frozen=True)
class Anchor:
    """A unit header found in normalized text."""

    unit_index: int
    kind: AnchorKind
    label: str
    offset: int
    header: str


@dataclass(slots=True, frozen=True)
class RawBinaryHandle:
    """The original upload bytes, held only while the upload is live."""

    data: bytes
    media_type: Optional[str] = None


@dataclass(slots=True)
class DocumentRecord:
    """One ingested file in canonical, addressable form."""

    id: str
    name: str
    format_kind: FormatKind
    normalized_text: str
    unit_count: int
    raw_binary: Optional[RawBinaryHandle] = None
    visual_payload: Optional[VisualPayload] = None
    language: Optional[str] = None
    media_type: Optional[str] = None
    size_bytes: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def anchor_kind(self) -> AnchorKind:
        return anchor_kind_for(self.format_kind)

    @property
    def has_raw_binary(self) -> bool:
        return self.raw_binary is not None

    def anchors(self) -> list[Anchor]:
        return scan_anchors(self.format_kind, self.normalized_text)

    def without_raw_binary(self) -> "DocumentRecord":
        """Return a copy suitable for persistence."""

        return DocumentRecord(
            id=self.id,
            name=self.name,
            format_kind=self.format_kind,
            normalized_text=self.normalized_text,
            unit_count=self.unit_count,
            raw_binary=None,
            visual_payload=self.visual_payload,
            language=self.language,
            media_type=self.media_type,
            size_bytes=self.size_bytes,
            created_at=self.created_at,
        )


def anchor_kind_for(format_kind: FormatKind) -> AnchorKind:
    if format_kind in _NUMBERED_HEADERS:
        return _NUMBERED_HEADERS[format_kind][0]
    if format_kind is FormatKind.SPREADSHEET:
        return AnchorKind.SHEET
    return AnchorKind.WHOLE


def scan_anchors(format_kind: FormatKind, normalized_text: str) -> list[Anchor]:
    """Return the unit headers of ``normalized_text`` in document order.

    Numbered headers carry their index in the text; sheet headers carry a
    name and are numbered by position. Formats without native subdivision
    have a single header at the very start of the text.
    """

    if format_kind in _NUMBERED_HEADERS:
        kind, pattern = _NUMBERED_HEADERS[format_kind]
        return [
            Anchor(
                unit_index=int(match.group(1)),
                kind=kind,
                label=f"{kind.value.title()} {match.group(1)}",
                offset=match.start(),
                header=match.group(0),
            )
            for match in pattern.finditer(normalized_text)
        ]
    if format_kind is FormatKind.SPREADSHEET:
        return [
            Anchor(
                unit_index=position,
                kind=AnchorKind.SHEET,
                label=match.group(1),
                offset=match.start(),
                header=match.group(0),
            )
            for position, match in enumerate(_SHEET_HEADER_RE.finditer(normalized_text), start=1)
        ]
    header = _WHOLE_HEADERS[format_kind]
    if normalized_text.startswith(header):
        return [Anchor(unit_index=1, kind=AnchorKind.WHOLE, label=header.strip("- "), offset=0, header=header)]
    return []


def validate_unit_headers(format_kind: FormatKind, normalized_text: str, unit_count: int) -> list[Anchor]:
    """Check that the text carries exactly ``unit_count`` headers numbered ``1..unit_count``."""

    anchors = scan_anchors(format_kind, normalized_text)
    if len(anchors) != unit_count:
        raise DocumentInvariantError(
            f"expected {unit_count} unit headers for {format_kind.value}, found {len(anchors)}"
        )
    for expected, anchor in enumerate(anchors, start=1):
        if anchor.unit_index != expected:
            raise DocumentInvariantError(
                f"unit header {anchor.header!r} is out of sequence; expected unit {expected}"
            )
    return anchors


def build_document_record(
    *,
    name: str,
    format_kind: FormatKind,
    normalized_text: str,
    unit_count: int,
    raw_binary: Optional[RawBinaryHandle] = None,
    visual_payload: Optional[VisualPayload] = None,
    language: Optional[str] = None,
    media_type: Optional[str] = None,
    size_bytes: Optional[int] = None,
    document_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> DocumentRecord:
    """Wrap extractor output in a :class:`DocumentRecord`, enforcing the header invariant."""

    if format_kind in _WHOLE_HEADERS and unit_count != 1:
        raise DocumentInvariantError(f"{format_kind.value} documents have exactly one unit, got {unit_count}")
    if visual_payload is not None and format_kind is not FormatKind.IMAGE:
        raise DocumentInvariantError("only image documents carry a visual payload")
    validate_unit_headers(format_kind, normalized_text, unit_count)
    return DocumentRecord(
        id=document_id or uuid.uuid4().hex,
        name=name,
        format_kind=format_kind,
        normalized_text=normalized_text,
        unit_count=unit_count,
        raw_binary=raw_binary,
        visual_payload=visual_payload,
        language=language,
        media_type=media_type,
        size_bytes=size_bytes,
        created_at=created_at or datetime.now(timezone.utc),
    )


__all__ = [
    "Anchor",
    "AnchorKind",
    "DocumentRecord",
    "RawBinaryHandle",
    "VisualPayload",
    "anchor_kind_for",
    "build_document_record",
    "scan_anchors",
    "validate_unit_headers",
]
