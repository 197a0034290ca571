"""Decoder capabilities injected into the extractor adapters.

Every capability reports whether it can run (``available``) and, when it
cannot, why (``unavailable_reason``). Availability is settled when the
capability is constructed so adapters never look up globals at call time.
"""
from __future__ import annotations

import importlib.util
import io
import logging
import zipfile
import xml.etree.ElementTree as ET
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import ContextManager, Iterator, Optional, Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class DecoderCapability(Protocol):
    """Common surface shared by all decoder capabilities."""

    name: str

    @property
    def available(self) -> bool:
        ...

    @property
    def unavailable_reason(self) -> Optional[str]:
        ...


class PdfPageReader(DecoderCapability, Protocol):
    def read_pages(self, data: bytes) -> Iterator[str]:
        """Yield the text of each page in document order."""
        ...


class SpreadsheetReader(DecoderCapability, Protocol):
    def read_sheets(self, data: bytes) -> Iterator[tuple[str, str]]:
        """Yield ``(sheet_name, csv_text)`` in workbook order."""
        ...


class SlideArchive(Protocol):
    def names(self) -> list[str]:
        ...

    def read_xml(self, name: str) -> ET.Element:
        ...


class ArchiveReader(DecoderCapability, Protocol):
    def open(self, data: bytes) -> ContextManager[SlideArchive]:
        ...


class WordConverter(DecoderCapability, Protocol):
    def to_plain_text(self, data: bytes) -> str:
        ...


class OcrEngine(DecoderCapability, Protocol):
    def recognize(self, data: bytes) -> str:
        ...


class _CapabilityBase:
    name = "capability"

    def __init__(self, reason: Optional[str] = None) -> None:
        self._reason = reason

    @property
    def available(self) -> bool:
        return self._reason is None

    @property
    def unavailable_reason(self) -> Optional[str]:
        return self._reason


class PypdfPageReader(_CapabilityBase):
    """Page text reader backed by :mod:`pypdf`."""

    name = "pypdf"

    def __init__(self) -> None:
        try:
            from pypdf import PdfReader
        except ImportError as error:
            super().__init__(f"pypdf is not installed ({error})")
            self._reader_cls = None
        else:
            super().__init__()
            self._reader_cls = PdfReader

    def read_pages(self, data: bytes) -> Iterator[str]:
        if self._reader_cls is None:
            raise RuntimeError(self.unavailable_reason)
        reader = self._reader_cls(io.BytesIO(data))
        if reader.is_encrypted and not reader.decrypt(""):
            raise ValueError("PDF is password protected")
        for page in reader.pages:
            yield page.extract_text() or ""


class PandasSpreadsheetReader(_CapabilityBase):
    """Workbook reader that renders each sheet as CSV through pandas."""

    name = "pandas"

    def __init__(self) -> None:
        try:
            import pandas as pd
        except ImportError as error:
            super().__init__(f"pandas is not installed ({error})")
            self._pd = None
            return
        if importlib.util.find_spec("openpyxl") is None:
            super().__init__("openpyxl is not installed; pandas cannot read .xlsx workbooks")
        else:
            super().__init__()
        self._pd = pd

    def read_sheets(self, data: bytes) -> Iterator[tuple[str, str]]:
        if self._pd is None:
            raise RuntimeError(self.unavailable_reason)
        with self._pd.ExcelFile(io.BytesIO(data)) as workbook:
            for sheet_name in workbook.sheet_names:
                frame = workbook.parse(sheet_name, header=None, dtype=object)
                csv_text = frame.to_csv(index=False, header=False, lineterminator="\n")
                if csv_text.endswith("\n"):
                    csv_text = csv_text[:-1]
                yield str(sheet_name), csv_text


class _ZipSlideArchive:
    def __init__(self, archive: zipfile.ZipFile) -> None:
        self._archive = archive

    def names(self) -> list[str]:
        return self._archive.namelist()

    def read_xml(self, name: str) -> ET.Element:
        return ET.fromstring(self._archive.read(name))


class ZipArchiveReader(_CapabilityBase):
    """Reads OOXML containers with :mod:`zipfile` and ElementTree."""

    name = "zipfile"

    def __init__(self) -> None:
        super().__init__()

    @contextmanager
    def open(self, data: bytes) -> Iterator[SlideArchive]:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            yield _ZipSlideArchive(archive)


class DocxWordConverter(_CapabilityBase):
    """Plain text converter backed by python-docx."""

    name = "python-docx"

    def __init__(self) -> None:
        try:
            from docx import Document
        except ImportError as error:
            super().__init__(f"python-docx is not installed ({error})")
            self._document_cls = None
        else:
            super().__init__()
            self._document_cls = Document

    def to_plain_text(self, data: bytes) -> str:
        if self._document_cls is None:
            raise RuntimeError(self.unavailable_reason)
        document = self._document_cls(io.BytesIO(data))
        text_parts = [paragraph.text for paragraph in document.paragraphs if paragraph.text]
        return "\n\n".join(text_parts)


class TesseractOcrEngine(_CapabilityBase):
    """OCR engine using pytesseract over Pillow images."""

    name = "pytesseract"

    def __init__(self, language: str = "eng") -> None:
        self.language = language
        try:
            import pytesseract
            from PIL import Image
        except ImportError as error:
            super().__init__(f"pytesseract and Pillow are required for OCR ({error})")
            self._pytesseract = None
            self._image = None
        else:
            super().__init__()
            self._pytesseract = pytesseract
            self._image = Image

    def recognize(self, data: bytes) -> str:
        if self._pytesseract is None or self._image is None:
            raise RuntimeError(self.unavailable_reason)
        with self._image.open(io.BytesIO(data)) as image:
            return self._pytesseract.image_to_string(image, lang=self.language) or ""


class MissingCapability(_CapabilityBase):
    """Placeholder for a decoder that is known to be absent."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(reason)
        self.name = name


@dataclass(slots=True)
class DecoderCapabilities:
    """Bundle of decoders handed to :class:`~readanything.ingest.pipeline.IngestPipeline`."""

    pdf: Optional[PdfPageReader] = None
    spreadsheet: Optional[SpreadsheetReader] = None
    archive: Optional[ArchiveReader] = None
    word: Optional[WordConverter] = None
    ocr: Optional[OcrEngine] = None
    notes: list[str] = field(default_factory=list)

    @classmethod
    def default(cls, ocr_language: str = "eng") -> "DecoderCapabilities":
        capabilities = cls(
            pdf=PypdfPageReader(),
            spreadsheet=PandasSpreadsheetReader(),
            archive=ZipArchiveReader(),
            word=DocxWordConverter(),
            ocr=TesseractOcrEngine(language=ocr_language),
        )
        for capability in (
            capabilities.pdf,
            capabilities.spreadsheet,
            capabilities.archive,
            capabilities.word,
            capabilities.ocr,
        ):
            if capability is not None and not capability.available:
                LOGGER.warning("Decoder %s unavailable: %s", capability.name, capability.unavailable_reason)
                capabilities.notes.append(f"{capability.name}: {capability.unavailable_reason}")
        return capabilities


__all__ = [
    "ArchiveReader",
    "DecoderCapabilities",
    "DecoderCapability",
    "DocxWordConverter",
    "MissingCapability",
    "OcrEngine",
    "PandasSpreadsheetReader",
    "PdfPageReader",
    "PypdfPageReader",
    "SlideArchive",
    "SpreadsheetReader",
    "TesseractOcrEngine",
    "WordConverter",
    "ZipArchiveReader",
]
