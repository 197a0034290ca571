from __future__ import annotations

from readanything.citations import (
    BoundCitation,
    CitationSpan,
    TextSpan,
    bind_citations,
    parse_citations,
    render_citations,
)
from readanything.documents.anchors import RendererTarget, TextOffsetTarget
from readanything.documents.model import DocumentRecord, RawBinaryHandle, build_document_record
from readanything.ingest.format_detection import FormatKind


def _pdf(name: str, pages: int, *, with_bytes: bool = False) -> DocumentRecord:
    return build_document_record(
        name=name,
        format_kind=FormatKind.PDF,
        normalized_text="".join(f"--- Page {i} ---\np{i}\n\n" for i in range(1, pages + 1)),
        unit_count=pages,
        raw_binary=RawBinaryHandle(data=b"%PDF") if with_bytes else None,
    )


def _deck(name: str, slides: int) -> DocumentRecord:
    return build_document_record(
        name=name,
        format_kind=FormatKind.SLIDES,
        normalized_text="".join(f"--- Slide {i} ---\ns{i}\n\n\n" for i in range(1, slides + 1)),
        unit_count=slides,
    )


def test_text_around_citations_is_preserved() -> None:
    spans = parse_citations("See [Page 3] and [Slide 12] for details.")

    assert [type(span) for span in spans] == [TextSpan, CitationSpan, TextSpan, CitationSpan, TextSpan]
    assert [span.text for span in spans if isinstance(span, TextSpan)] == ["See ", " and ", " for details."]
    citations = [span for span in spans if isinstance(span, CitationSpan)]
    assert [citation.unit_index for citation in citations] == [3, 12]
    assert [citation.literal for citation in citations] == ["[Page 3]", "[Slide 12]"]


def test_answer_without_tokens_is_a_single_text_span() -> None:
    answer = "No citations here, just [brackets] and [Chapter 2]."

    assert parse_citations(answer) == [TextSpan(text=answer, start=0, end=len(answer))]


def test_empty_answer() -> None:
    assert parse_citations("") == [TextSpan(text="", start=0, end=0)]


def test_unit_word_is_case_insensitive_and_spacing_flexible() -> None:
    spans = parse_citations("[page 1][SHEET  2][Slide\t007]")

    assert [(span.unit_word, span.unit_index) for span in spans] == [("page", 1), ("SHEET", 2), ("Slide", 7)]


def test_malformed_brackets_stay_plain_text() -> None:
    spans = parse_citations("[Page [Page 4]] and [Page five] and [Page 2")

    citations = [span for span in spans if isinstance(span, CitationSpan)]
    assert [citation.literal for citation in citations] == ["[Page 4]"]
    assert "".join(
        span.text if isinstance(span, TextSpan) else span.literal for span in spans
    ) == "[Page [Page 4]] and [Page five] and [Page 2"


def test_repeated_citations_are_independent() -> None:
    spans = parse_citations("[Page 2] then again [Page 2]")

    citations = [span for span in spans if isinstance(span, CitationSpan)]
    assert len(citations) == 2
    assert citations[0].start != citations[1].start


def test_quoted_file_name_is_captured_as_hint() -> None:
    spans = parse_citations('As shown in "budget deck.pptx" [Slide 4], costs rose.')

    citation = next(span for span in spans if isinstance(span, CitationSpan))
    assert citation.file_hint == "budget deck.pptx"
    assert spans[0] == TextSpan(text='As shown in "budget deck.pptx" ', start=0, end=31)


def test_binding_uses_file_hint_then_active_then_first() -> None:
    report = _pdf("report.pdf", 3, with_bytes=True)
    deck = _deck("deck.pptx", 2)
    spans = parse_citations('"deck.pptx" [Slide 2] vs [Page 1]')

    bound = [span for span in bind_citations(spans, [report, deck]) if isinstance(span, BoundCitation)]

    assert bound[0].document_id == deck.id
    assert isinstance(bound[0].target, TextOffsetTarget)
    assert bound[1].document_id == report.id
    assert isinstance(bound[1].target, RendererTarget)
    assert bound[1].target.locator == "#page=1"

    active = bind_citations(parse_citations("[Slide 1]"), [report, deck], active_document_id=deck.id)
    assert active[0].document_id == deck.id
    assert active[0].resolved


def test_out_of_range_citation_is_unresolved_not_clamped() -> None:
    report = _pdf("report.pdf", 5)

    bound = render_citations("Check [Page 9].", [report])

    citation = bound[1]
    assert isinstance(citation, BoundCitation)
    assert not citation.resolved
    assert citation.target is None
    assert citation.document_id == report.id
    assert "1..5" in (citation.reason or "")


def test_unknown_file_hint_falls_back_to_default_document() -> None:
    report = _pdf("report.pdf", 2)

    bound = render_citations('"missing.pdf" [Page 2]', [report])

    citation = next(span for span in bound if isinstance(span, BoundCitation))
    assert citation.document_id == report.id
    assert citation.resolved


def test_citations_without_documents_are_unresolved() -> None:
    bound = render_citations("[Page 1]", [])

    assert isinstance(bound[0], BoundCitation)
    assert bound[0].reason == "no documents loaded"
