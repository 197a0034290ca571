"""Text-only view of a document, used when the original bytes are gone."""
from __future__ import annotations

from dataclasses import dataclass

from .anchors import unit_element_id
from .model import AnchorKind, DocumentRecord


@dataclass(slots=True, frozen=True)
class ViewSegment:
    """One unit of the degraded view: a section marker followed by its text."""

    unit_index: int
    element_id: str
    kind: AnchorKind
    label: str
    header: str
    offset: int
    body: str


def degraded_view(document: DocumentRecord) -> list[ViewSegment]:
    """Split ``document.normalized_text`` at its unit headers.

    Every unit becomes a segment whose ``element_id`` matches the
    ``TextOffsetTarget.element_id`` the resolver produces for it.
    """

    anchors = document.anchors()
    text = document.normalized_text
    segments: list[ViewSegment] = []
    for position, anchor in enumerate(anchors):
        body_start = anchor.offset + len(anchor.header)
        body_end = anchors[position + 1].offset if position + 1 < len(anchors) else len(text)
        body = text[body_start:body_end].strip("\n")
        segments.append(
            ViewSegment(
                unit_index=anchor.unit_index,
                element_id=unit_element_id(anchor.unit_index),
                kind=anchor.kind,
                label=anchor.label,
                header=anchor.header,
                offset=anchor.offset,
                body=body,
            )
        )
    return segments


__all__ = ["ViewSegment", "degraded_view"]
