"""Extractors turning each supported format into unit-segmented text."""
from __future__ import annotations

import logging
import mimetypes
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar, Optional

from readanything.errors import ExtractionError

from .capabilities import (
    ArchiveReader,
    DecoderCapability,
    OcrEngine,
    PdfPageReader,
    SpreadsheetReader,
    WordConverter,
)
from .format_detection import FormatKind
from .models import (
    IMAGE_HEADER,
    PAGE_HEADER,
    SHEET_HEADER,
    SLIDE_HEADER,
    TEXT_HEADER,
    WORD_HEADER,
    ExtractionResult,
    SourceFile,
    VisualPayload,
    unit_block,
    whole_block,
)
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)

_SLIDE_ENTRY_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_DRAWINGML_TEXT_TAG = "{http://schemas.openxmlformats.org/drawingml/2006/main}t"
_IMAGE_SUFFIX_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "bmp": "image/bmp",
    "webp": "image/webp",
}


class Extractor(ABC):
    """Base class for the per-format adapters.

    Subclasses implement :meth:`_extract`; this wrapper checks the decoder
    capability up front and converts any decoder failure into an
    :class:`ExtractionError` so callers never see partial output.
    """

    format_kind: ClassVar[FormatKind]

    def __init__(self, capability: Optional[DecoderCapability] = None) -> None:
        self.capability = capability

    def extract(self, source: SourceFile) -> ExtractionResult:
        self._require_capability()
        try:
            return self._extract(source)
        except ExtractionError:
            raise
        except Exception as error:
            LOGGER.warning(
                "Decoding %s as %s failed: %s", source.name, self.format_kind.value, error
            )
            raise ExtractionError(
                self.format_kind,
                f"malformed {self.format_kind.value} data: {error}",
                file_name=source.name,
                error=error,
            ) from error

    def _require_capability(self) -> None:
        if not self.requires_capability:
            return
        if self.capability is None:
            raise ExtractionError(self.format_kind, "no decoder configured")
        if not self.capability.available:
            reason = self.capability.unavailable_reason or "unknown reason"
            raise ExtractionError(
                self.format_kind, f"decoder {self.capability.name} unavailable: {reason}"
            )

    @property
    def requires_capability(self) -> bool:
        return True

    @abstractmethod
    def _extract(self, source: SourceFile) -> ExtractionResult:
        ...


class PDFExtractor(Extractor):
    """One unit per page, keeping the line breaks of the text layer."""

    format_kind = FormatKind.PDF
    capability: PdfPageReader

    def _extract(self, source: SourceFile) -> ExtractionResult:
        blocks: list[str] = []
        for index, page_text in enumerate(self.capability.read_pages(source.data), start=1):
            blocks.append(unit_block(PAGE_HEADER.format(index=index), page_text))
        LOGGER.debug("Extracted %s pages from %s", len(blocks), source.name)
        return ExtractionResult(text="".join(blocks), unit_count=len(blocks))


class SpreadsheetExtractor(Extractor):
    """One unit per sheet in workbook order, cells serialised as CSV rows."""

    format_kind = FormatKind.SPREADSHEET
    capability: SpreadsheetReader

    def _extract(self, source: SourceFile) -> ExtractionResult:
        blocks: list[str] = []
        for sheet_name, csv_text in self.capability.read_sheets(source.data):
            blocks.append(unit_block(SHEET_HEADER.format(name=sheet_name), csv_text))
        return ExtractionResult(text="".join(blocks), unit_count=len(blocks))


class SlidesExtractor(Extractor):
    """One unit per slide, slides ordered by their numeric entry index."""

    format_kind = FormatKind.SLIDES
    capability: ArchiveReader

    def _extract(self, source: SourceFile) -> ExtractionResult:
        blocks: list[str] = []
        with self.capability.open(source.data) as archive:
            for index, entry in enumerate(slide_entries(archive.names()), start=1):
                root = archive.read_xml(entry)
                slide_text = "".join(
                    f"{node.text or ''}\n" for node in root.iter(_DRAWINGML_TEXT_TAG)
                )
                blocks.append(unit_block(SLIDE_HEADER.format(index=index), slide_text))
        return ExtractionResult(text="".join(blocks), unit_count=len(blocks))


def slide_entries(names: list[str]) -> list[str]:
    """Return slide XML entries sorted by embedded number (``slide2`` before ``slide10``)."""

    numbered: list[tuple[int, str]] = []
    for name in names:
        match = _SLIDE_ENTRY_RE.match(name)
        if match:
            numbered.append((int(match.group(1)), name))
    numbered.sort(key=lambda item: item[0])
    return [name for _, name in numbered]


class DocxExtractor(Extractor):
    """The whole Word document as a single unit."""

    format_kind = FormatKind.WORD
    capability: WordConverter

    def _extract(self, source: SourceFile) -> ExtractionResult:
        text = self.capability.to_plain_text(source.data)
        return ExtractionResult(text=whole_block(WORD_HEADER, text), unit_count=1)


class ImageExtractor(Extractor):
    """Best-effort OCR plus the raw pixels as a visual payload.

    OCR problems are recorded as warnings; they never prevent the visual
    payload from being produced.
    """

    format_kind = FormatKind.IMAGE
    capability: Optional[OcrEngine]

    @property
    def requires_capability(self) -> bool:
        return False

    def _extract(self, source: SourceFile) -> ExtractionResult:
        payload = VisualPayload.from_bytes(source.data, image_media_type(source))
        warnings: list[str] = []
        ocr_text = ""
        ocr_performed = False
        if self.capability is None or not self.capability.available:
            reason = self.capability.unavailable_reason if self.capability else "no OCR engine configured"
            warnings.append(f"OCR skipped: {reason}")
            LOGGER.info("OCR skipped for %s: %s", source.name, reason)
        else:
            try:
                ocr_text = normalize_text(self.capability.recognize(source.data))
                ocr_performed = True
            except Exception as error:
                warnings.append(f"OCR failed: {error}")
                LOGGER.warning("OCR failed for %s; keeping visual payload only (%s)", source.name, error)
        return ExtractionResult(
            text=whole_block(IMAGE_HEADER, ocr_text),
            unit_count=1,
            visual_payload=payload,
            ocr_performed=ocr_performed,
            warnings=warnings,
        )


def image_media_type(source: SourceFile) -> str:
    if source.media_type and source.media_type.lower().startswith("image/"):
        return source.media_type
    guessed, _ = mimetypes.guess_type(source.name)
    if guessed and guessed.startswith("image/"):
        return guessed
    suffix = Path(source.name).suffix.lower().lstrip(".")
    return _IMAGE_SUFFIX_TYPES.get(suffix, "application/octet-stream")


class TextExtractor(Extractor):
    """Plain text passed through untouched as a single unit."""

    format_kind = FormatKind.PLAIN_TEXT

    @property
    def requires_capability(self) -> bool:
        return False

    def _extract(self, source: SourceFile) -> ExtractionResult:
        return ExtractionResult(text=whole_block(TEXT_HEADER, decode_text(source.data)), unit_count=1)


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        LOGGER.info("Text is not valid UTF-8; decoding as latin-1")
        return data.decode("latin-1")


__all__ = [
    "DocxExtractor",
    "Extractor",
    "ImageExtractor",
    "PDFExtractor",
    "SlidesExtractor",
    "SpreadsheetExtractor",
    "TextExtractor",
    "decode_text",
    "image_media_type",
    "slide_entries",
]
