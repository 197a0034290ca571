from __future__ import annotations

import base64
import io
import zipfile

import pytest

from conftest import (
    FakeArchiveReader,
    FakeOcrEngine,
    FakePdfReader,
    FakeSpreadsheetReader,
    FakeWordConverter,
    slide_xml,
)
from readanything.errors import ExtractionError
from readanything.ingest.capabilities import (
    DocxWordConverter,
    MissingCapability,
    PandasSpreadsheetReader,
    ZipArchiveReader,
)
from readanything.ingest.extractors import (
    DocxExtractor,
    ImageExtractor,
    PDFExtractor,
    SlidesExtractor,
    SpreadsheetExtractor,
    TextExtractor,
    slide_entries,
)
from readanything.ingest.format_detection import FormatKind
from readanything.ingest.models import SourceFile


def _source(name: str, data: bytes = b"binary", media_type: str | None = None) -> SourceFile:
    return SourceFile(name=name, data=data, media_type=media_type)


def test_pdf_pages_become_numbered_units() -> None:
    extractor = PDFExtractor(FakePdfReader(["Intro\nline two", "Conclusion"]))

    result = extractor.extract(_source("paper.pdf"))

    assert result.unit_count == 2
    assert result.text == "--- Page 1 ---\nIntro\nline two\n\n--- Page 2 ---\nConclusion\n\n"


def test_pdf_without_pages_has_no_units() -> None:
    result = PDFExtractor(FakePdfReader([])).extract(_source("empty.pdf"))

    assert result.unit_count == 0
    assert result.text == ""


def test_pdf_failure_mid_document_discards_partial_output() -> None:
    reader = FakePdfReader(["one", "two", "three", "four"], fail_at=2)

    with pytest.raises(ExtractionError) as excinfo:
        PDFExtractor(reader).extract(_source("broken.pdf"))

    assert excinfo.value.format_kind is FormatKind.PDF
    assert excinfo.value.file_name == "broken.pdf"
    assert "page 3" in excinfo.value.cause


def test_unavailable_capability_fails_before_decoding() -> None:
    reader = FakePdfReader(["never read"], reason="pypdf is not installed")

    with pytest.raises(ExtractionError) as excinfo:
        PDFExtractor(reader).extract(_source("paper.pdf"))

    assert reader.calls == 0
    assert "pypdf is not installed" in excinfo.value.cause


def test_missing_capability_names_the_decoder() -> None:
    extractor = SpreadsheetExtractor(MissingCapability("pandas", "pandas is not installed"))

    with pytest.raises(ExtractionError) as excinfo:
        extractor.extract(_source("budget.xlsx"))

    assert excinfo.value.format_kind is FormatKind.SPREADSHEET
    assert "pandas" in str(excinfo.value)


def test_no_capability_configured() -> None:
    with pytest.raises(ExtractionError, match="no decoder configured"):
        DocxExtractor(None).extract(_source("letter.docx"))


def test_spreadsheet_sheets_in_workbook_order() -> None:
    reader = FakeSpreadsheetReader([("Q1 Results", "region,total\nnorth,10"), ("Summary", "done")])

    result = SpreadsheetExtractor(reader).extract(_source("report.xlsx"))

    assert result.unit_count == 2
    assert result.text == (
        "--- Sheet: Q1 Results ---\nregion,total\nnorth,10\n\n"
        "--- Sheet: Summary ---\ndone\n\n"
    )


def test_slide_entries_sort_numerically() -> None:
    names = [
        "ppt/slides/slide2.xml",
        "ppt/slides/slide10.xml",
        "ppt/slides/_rels/slide1.xml.rels",
        "ppt/slides/slide1.xml",
        "ppt/presentation.xml",
    ]

    assert slide_entries(names) == [
        "ppt/slides/slide1.xml",
        "ppt/slides/slide2.xml",
        "ppt/slides/slide10.xml",
    ]


def test_slides_emit_units_in_numeric_order() -> None:
    archive = FakeArchiveReader(
        {
            "ppt/slides/slide2.xml": slide_xml("second"),
            "ppt/slides/slide10.xml": slide_xml("tenth"),
            "ppt/slides/slide1.xml": slide_xml("Title", "Subtitle"),
        }
    )

    result = SlidesExtractor(archive).extract(_source("deck.pptx"))

    assert result.unit_count == 3
    assert result.text == (
        "--- Slide 1 ---\nTitle\nSubtitle\n\n\n"
        "--- Slide 2 ---\nsecond\n\n\n"
        "--- Slide 3 ---\ntenth\n\n\n"
    )


def test_slides_from_real_zip_archive() -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("ppt/presentation.xml", "<p:presentation xmlns:p='urn:p'/>")
        archive.writestr("ppt/slides/slide2.xml", slide_xml("Agenda"))
        archive.writestr("ppt/slides/slide1.xml", slide_xml("Welcome"))

    result = SlidesExtractor(ZipArchiveReader()).extract(_source("deck.pptx", buffer.getvalue()))

    assert result.unit_count == 2
    assert result.text.index("Welcome") < result.text.index("Agenda")


def test_slides_reject_non_archive_bytes() -> None:
    with pytest.raises(ExtractionError) as excinfo:
        SlidesExtractor(ZipArchiveReader()).extract(_source("deck.pptx", b"not a zip"))

    assert excinfo.value.format_kind is FormatKind.SLIDES


def test_word_document_is_one_unit() -> None:
    result = DocxExtractor(FakeWordConverter("Para one\n\nPara two")).extract(_source("letter.docx"))

    assert result.unit_count == 1
    assert result.text == "--- Document Content ---\nPara one\n\nPara two"


def test_image_produces_ocr_text_and_visual_payload() -> None:
    data = b"\x89PNG\r\n\x1a\nfake"
    extractor = ImageExtractor(FakeOcrEngine("Total:   42  \r\n"))

    result = extractor.extract(_source("receipt.png", data, "image/png"))

    assert result.unit_count == 1
    assert result.text == "--- Image OCR Result ---\nTotal: 42"
    assert result.ocr_performed is True
    assert result.visual_payload is not None
    assert result.visual_payload.media_type == "image/png"
    assert base64.b64decode(result.visual_payload.data) == data


def test_image_ocr_failure_keeps_visual_payload() -> None:
    extractor = ImageExtractor(FakeOcrEngine(error=RuntimeError("tesseract crashed")))

    result = extractor.extract(_source("photo.jpg", b"jpeg-bytes"))

    assert result.text == "--- Image OCR Result ---\n"
    assert result.ocr_performed is False
    assert result.visual_payload is not None
    assert result.visual_payload.media_type == "image/jpeg"
    assert any("tesseract crashed" in warning for warning in result.warnings)


def test_image_without_ocr_engine_keeps_visual_payload() -> None:
    extractor = ImageExtractor(FakeOcrEngine(reason="tesseract binary not found"))

    result = extractor.extract(_source("photo.webp", b"webp-bytes", "image/webp"))

    assert result.unit_count == 1
    assert result.visual_payload is not None
    assert result.warnings == ["OCR skipped: tesseract binary not found"]


def test_plain_text_passes_through_untouched() -> None:
    raw = "  indented\r\nline\n\n\n\nend  "

    result = TextExtractor().extract(_source("notes.txt", raw.encode("utf-8")))

    assert result.unit_count == 1
    assert result.text == f"--- Text File ---\n{raw}"


def test_plain_text_falls_back_to_latin1() -> None:
    result = TextExtractor().extract(_source("legacy.txt", "café".encode("latin-1")))

    assert result.text == "--- Text File ---\ncafé"


def test_pandas_reader_renders_sheets_as_csv() -> None:
    pd = pytest.importorskip("pandas")
    pytest.importorskip("openpyxl")

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame([["item", "cost"], ["rent", 100]]).to_excel(
            writer, sheet_name="Budget", index=False, header=False
        )
        pd.DataFrame([["ok"]]).to_excel(writer, sheet_name="Notes", index=False, header=False)

    result = SpreadsheetExtractor(PandasSpreadsheetReader()).extract(_source("budget.xlsx", buffer.getvalue()))

    assert result.unit_count == 2
    assert result.text == "--- Sheet: Budget ---\nitem,cost\nrent,100\n\n--- Sheet: Notes ---\nok\n\n"


def test_python_docx_converter_joins_paragraphs() -> None:
    docx = pytest.importorskip("docx")

    document = docx.Document()
    document.add_paragraph("Heading")
    document.add_paragraph("")
    document.add_paragraph("Body text")
    buffer = io.BytesIO()
    document.save(buffer)

    result = DocxExtractor(DocxWordConverter()).extract(_source("letter.docx", buffer.getvalue()))

    assert result.text == "--- Document Content ---\nHeading\n\nBody text"


def test_image_ocr_rejoins_words_split_at_line_end() -> None:
    extractor = ImageExtractor(FakeOcrEngine("Quarterly docu-\nment review\n\n\n\nSigned"))

    result = extractor.extract(_source("scan.png", b"png", "image/png"))

    assert result.text == "--- Image OCR Result ---\nQuarterly document review\n\nSigned"
