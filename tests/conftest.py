"""Shared fixtures: in-memory decoder capabilities and a service wired to the mock engine."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from contextlib import contextmanager
from typing import Iterator, Optional

import pytest

from readanything.ingest.capabilities import DecoderCapabilities, ZipArchiveReader
from readanything.ingest.pipeline import IngestPipeline
from readanything.llm.engines import MockReasoningEngine
from readanything.services.documents import DocumentService
from readanything.sessions import SessionStore


class _FakeCapability:
    name = "fake"

    def __init__(self, reason: Optional[str] = None) -> None:
        self._reason = reason

    @property
    def available(self) -> bool:
        return self._reason is None

    @property
    def unavailable_reason(self) -> Optional[str]:
        return self._reason


class FakePdfReader(_FakeCapability):
    name = "fake-pdf"

    def __init__(self, pages: list[str], *, fail_at: Optional[int] = None, reason: Optional[str] = None) -> None:
        super().__init__(reason)
        self.pages = pages
        self.fail_at = fail_at
        self.calls = 0

    def read_pages(self, data: bytes) -> Iterator[str]:
        self.calls += 1
        for index, page in enumerate(self.pages):
            if self.fail_at is not None and index == self.fail_at:
                raise ValueError(f"corrupt object on page {index + 1}")
            yield page


class FakeSpreadsheetReader(_FakeCapability):
    name = "fake-sheets"

    def __init__(self, sheets: list[tuple[str, str]], *, reason: Optional[str] = None) -> None:
        super().__init__(reason)
        self.sheets = sheets

    def read_sheets(self, data: bytes) -> Iterator[tuple[str, str]]:
        yield from self.sheets


class _FakeArchive:
    def __init__(self, entries: dict[str, str]) -> None:
        self.entries = entries

    def names(self) -> list[str]:
        return list(self.entries)

    def read_xml(self, name: str) -> ET.Element:
        return ET.fromstring(self.entries[name])


class FakeArchiveReader(_FakeCapability):
    name = "fake-zip"

    def __init__(self, entries: dict[str, str], *, reason: Optional[str] = None) -> None:
        super().__init__(reason)
        self.entries = entries

    @contextmanager
    def open(self, data: bytes) -> Iterator[_FakeArchive]:
        yield _FakeArchive(self.entries)


class FakeWordConverter(_FakeCapability):
    name = "fake-docx"

    def __init__(self, text: str, *, reason: Optional[str] = None) -> None:
        super().__init__(reason)
        self.text = text

    def to_plain_text(self, data: bytes) -> str:
        return self.text


class FakeOcrEngine(_FakeCapability):
    name = "fake-ocr"

    def __init__(self, text: str = "", *, error: Optional[Exception] = None, reason: Optional[str] = None) -> None:
        super().__init__(reason)
        self.text = text
        self.error = error

    def recognize(self, data: bytes) -> str:
        if self.error is not None:
            raise self.error
        return self.text


class FixedLanguageDetector:
    def detect(self, text: str) -> Optional[str]:
        return "en" if text.strip() else None


SLIDE_XML = (
    '<p:sld xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main" '
    'xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main">'
    "<p:cSld><p:spTree><p:sp><p:txBody>{runs}</p:txBody></p:sp></p:spTree></p:cSld></p:sld>"
)


def slide_xml(*texts: str) -> str:
    runs = "".join(f"<a:p><a:r><a:t>{text}</a:t></a:r></a:p>" for text in texts)
    return SLIDE_XML.format(runs=runs)


def fake_capabilities(**overrides: object) -> DecoderCapabilities:
    defaults = {
        "pdf": FakePdfReader(["First page text", "Second page text"]),
        "spreadsheet": FakeSpreadsheetReader([("Budget", "item,cost\nrent,100"), ("Notes", "ok")]),
        "archive": ZipArchiveReader(),
        "word": FakeWordConverter("Heading\n\nBody paragraph"),
        "ocr": FakeOcrEngine("Scanned receipt total 42"),
    }
    defaults.update(overrides)
    return DecoderCapabilities(**defaults)


def make_pipeline(**overrides: object) -> IngestPipeline:
    return IngestPipeline(fake_capabilities(**overrides), language_detector=FixedLanguageDetector())


@pytest.fixture()
def pipeline() -> IngestPipeline:
    return make_pipeline()


@pytest.fixture()
def mock_engine() -> MockReasoningEngine:
    return MockReasoningEngine()


@pytest.fixture()
def document_service(pipeline: IngestPipeline, mock_engine: MockReasoningEngine) -> DocumentService:
    return DocumentService(pipeline=pipeline, store=SessionStore(), engine=mock_engine)
