"""Citation tokens in generated answers and their binding to document units.

Parsing is a pure, single left-to-right pass. It never checks unit
numbers against a document; that is the resolver's job, so a citation can
still be attempted against a document that is not currently active.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from readanything.documents.anchors import AnchorResolver, NavigationTarget
from readanything.documents.model import DocumentRecord
from readanything.errors import AnchorResolutionError
from readanything.telemetry import emit_citation_event

LOGGER = logging.getLogger(__name__)

CITATION_RE = re.compile(r"\[(Page|Slide|Sheet)\s+(\d+)\]", re.IGNORECASE)
# A quoted file name directly in front of a token: "report.pdf" [Page 3]
_FILE_HINT_RE = re.compile(r"[\"“]([^\"“”\n]+)[\"”]\s*$")


@dataclass(slots=True, frozen=True)
class TextSpan:
    text: str
    start: int
    end: int


@dataclass(slots=True, frozen=True)
class CitationSpan:
    unit_word: str
    unit_index: int
    literal: str
    start: int
    end: int
    file_hint: Optional[str] = None

    @property
    def display_label(self) -> str:
        return f"{self.unit_word.title()} {self.unit_index}"


Span = Union[TextSpan, CitationSpan]


def parse_citations(answer: str) -> list[Span]:
    """Split ``answer`` into plain text and citation spans, in order.

    Text between tokens is passed through verbatim. An answer without
    tokens comes back as a single :class:`TextSpan`.
    """

    spans: list[Span] = []
    cursor = 0
    for match in CITATION_RE.finditer(answer):
        if match.start() > cursor:
            spans.append(TextSpan(text=answer[cursor:match.start()], start=cursor, end=match.start()))
        hint = _FILE_HINT_RE.search(answer, cursor, match.start())
        spans.append(
            CitationSpan(
                unit_word=match.group(1),
                unit_index=int(match.group(2)),
                literal=match.group(0),
                start=match.start(),
                end=match.end(),
                file_hint=hint.group(1).strip() if hint else None,
            )
        )
        cursor = match.end()
    if cursor < len(answer) or not spans:
        spans.append(TextSpan(text=answer[cursor:], start=cursor, end=len(answer)))
    return spans


@dataclass(slots=True, frozen=True)
class BoundCitation:
    """A citation span together with the outcome of resolving it."""

    span: CitationSpan
    document_id: Optional[str]
    document_name: Optional[str]
    target: Optional[NavigationTarget]
    reason: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.target is not None


BoundSpan = Union[TextSpan, BoundCitation]


def find_document_by_name(documents: Sequence[DocumentRecord], name: str) -> Optional[DocumentRecord]:
    for document in documents:
        if document.name == name:
            return document
    lowered = name.casefold()
    for document in documents:
        if document.name.casefold() == lowered:
            return document
    return None


def bind_citations(
    spans: Sequence[Span],
    documents: Sequence[DocumentRecord],
    *,
    resolver: Optional[AnchorResolver] = None,
    active_document_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> list[BoundSpan]:
    """Resolve every citation span against the session's documents.

    A quoted file name in front of the token picks the document; otherwise
    the active document is used, falling back to the first document. Each
    occurrence is resolved independently and failures are kept as
    unresolved citations.
    """

    resolver = resolver or AnchorResolver()
    active = None
    if active_document_id is not None:
        active = next((doc for doc in documents if doc.id == active_document_id), None)
    default_document = active or (documents[0] if documents else None)

    bound: list[BoundSpan] = []
    for span in spans:
        if isinstance(span, TextSpan):
            bound.append(span)
            continue

        document = default_document
        if span.file_hint:
            hinted = find_document_by_name(documents, span.file_hint)
            if hinted is not None:
                document = hinted

        if document is None:
            reason = "no documents loaded"
            bound.append(BoundCitation(span=span, document_id=None, document_name=None, target=None, reason=reason))
            emit_citation_event(
                session_id=session_id, document_id=None, unit_index=span.unit_index, resolved=False, reason=reason
            )
            continue

        try:
            target = resolver.resolve(document, span.unit_index)
        except AnchorResolutionError as error:
            LOGGER.info("Citation %s unresolved in %s: %s", span.literal, document.name, error.reason)
            bound.append(
                BoundCitation(
                    span=span,
                    document_id=document.id,
                    document_name=document.name,
                    target=None,
                    reason=error.reason,
                )
            )
            emit_citation_event(
                session_id=session_id,
                document_id=document.id,
                unit_index=span.unit_index,
                resolved=False,
                reason=error.reason,
            )
            continue

        bound.append(BoundCitation(span=span, document_id=document.id, document_name=document.name, target=target))
        emit_citation_event(
            session_id=session_id, document_id=document.id, unit_index=span.unit_index, resolved=True
        )
    return bound


def render_citations(
    answer: str,
    documents: Sequence[DocumentRecord],
    *,
    resolver: Optional[AnchorResolver] = None,
    active_document_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> list[BoundSpan]:
    """Parse and bind in one step; called every time an answer is displayed."""

    return bind_citations(
        parse_citations(answer),
        documents,
        resolver=resolver,
        active_document_id=active_document_id,
        session_id=session_id,
    )


__all__ = [
    "BoundCitation",
    "BoundSpan",
    "CITATION_RE",
    "CitationSpan",
    "Span",
    "TextSpan",
    "bind_citations",
    "find_document_by_name",
    "parse_citations",
    "render_citations",
]
