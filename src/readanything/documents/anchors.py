"""Mapping between unit numbers and navigation targets."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from readanything.errors import AnchorResolutionError
from readanything.ingest.format_detection import FormatKind

from .model import Anchor, AnchorKind, DocumentRecord

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RendererTarget:
    """Open the original file in its native renderer at a given unit."""

    document_id: str
    unit_index: int
    locator: str
    media_type: str


@dataclass(slots=True, frozen=True)
class TextOffsetTarget:
    """Scroll the extracted text to the header of a given unit."""

    document_id: str
    unit_index: int
    offset: int
    element_id: str
    kind: AnchorKind
    label: str


NavigationTarget = Union[RendererTarget, TextOffsetTarget]


def unit_element_id(unit_index: int) -> str:
    """DOM-style id of the section marker for ``unit_index`` in the text view."""

    return f"doc-unit-{unit_index}"


class AnchorResolver:
    """Resolves ``(document, unit_index)`` to a :data:`NavigationTarget`.

    Out-of-range indices are errors rather than being clamped to the
    nearest unit.
    """

    def resolve(self, document: DocumentRecord, unit_index: int) -> NavigationTarget:
        if unit_index < 1 or unit_index > document.unit_count:
            raise AnchorResolutionError(
                unit_index, f"{document.name} has units 1..{document.unit_count}"
            )

        if document.raw_binary is not None and document.format_kind is FormatKind.PDF:
            return RendererTarget(
                document_id=document.id,
                unit_index=unit_index,
                locator=f"#page={unit_index}",
                media_type=document.raw_binary.media_type or "application/pdf",
            )

        anchor = self._find_anchor(document, unit_index)
        if anchor is None:
            raise AnchorResolutionError(unit_index, f"no unit header for unit {unit_index} in {document.name}")
        LOGGER.debug("Resolved unit %s of %s to text offset %s", unit_index, document.id, anchor.offset)
        return TextOffsetTarget(
            document_id=document.id,
            unit_index=unit_index,
            offset=anchor.offset,
            element_id=unit_element_id(unit_index),
            kind=anchor.kind,
            label=anchor.label,
        )

    def unit_at_offset(self, document: DocumentRecord, offset: int) -> Optional[int]:
        """Return the unit whose block contains ``offset``, or ``None`` before the first header."""

        current: Optional[int] = None
        for anchor in document.anchors():
            if anchor.offset > offset:
                break
            current = anchor.unit_index
        return current

    @staticmethod
    def _find_anchor(document: DocumentRecord, unit_index: int) -> Optional[Anchor]:
        for anchor in document.anchors():
            if anchor.unit_index == unit_index:
                return anchor
        return None


__all__ = [
    "AnchorResolver",
    "NavigationTarget",
    "RendererTarget",
    "TextOffsetTarget",
    "unit_element_id",
]
