"""Normalized documents, their anchors and navigation targets."""

from .anchors import AnchorResolver, NavigationTarget, RendererTarget, TextOffsetTarget
from .model import (
    Anchor,
    AnchorKind,
    DocumentRecord,
    RawBinaryHandle,
    build_document_record,
    scan_anchors,
)
from .viewer import ViewSegment, degraded_view

__all__ = [
    "Anchor",
    "AnchorKind",
    "AnchorResolver",
    "DocumentRecord",
    "NavigationTarget",
    "RawBinaryHandle",
    "RendererTarget",
    "TextOffsetTarget",
    "ViewSegment",
    "build_document_record",
    "degraded_view",
    "scan_anchors",
]
