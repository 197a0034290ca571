"""High level ingestion pipeline entry point."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from readanything.documents.model import DocumentRecord, RawBinaryHandle, build_document_record
from readanything.errors import DocumentInvariantError, ExtractionError
from readanything.telemetry import emit_batch_event, emit_ingest_event

from .capabilities import DecoderCapabilities
from .extractors import (
    DocxExtractor,
    Extractor,
    ImageExtractor,
    PDFExtractor,
    SlidesExtractor,
    SpreadsheetExtractor,
    TextExtractor,
)
from .format_detection import FormatClassifier, FormatKind
from .language import LanguageDetector
from .models import SourceFile

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestStatistics:
    """Diagnostics captured for the most recent successful ingestion."""

    file_name: str
    format_kind: FormatKind
    unit_count: int
    duration_seconds: float
    language: Optional[str]
    ocr_performed: bool


class IngestPipeline:
    """Classifies, extracts and wraps uploaded files into document records."""

    def __init__(
        self,
        capabilities: Optional[DecoderCapabilities] = None,
        *,
        language_detector: Optional[LanguageDetector] = None,
    ) -> None:
        self.capabilities = capabilities or DecoderCapabilities.default()
        self.language_detector = language_detector or LanguageDetector()
        self.extractors: dict[FormatKind, Extractor] = {
            FormatKind.PDF: PDFExtractor(self.capabilities.pdf),
            FormatKind.SPREADSHEET: SpreadsheetExtractor(self.capabilities.spreadsheet),
            FormatKind.SLIDES: SlidesExtractor(self.capabilities.archive),
            FormatKind.WORD: DocxExtractor(self.capabilities.word),
            FormatKind.IMAGE: ImageExtractor(self.capabilities.ocr),
            FormatKind.PLAIN_TEXT: TextExtractor(),
        }
        self.last_statistics: Optional[IngestStatistics] = None

    def ingest(self, source: SourceFile, *, session_id: Optional[str] = None) -> DocumentRecord:
        """Turn one uploaded file into a :class:`DocumentRecord`.

        Raises :class:`ExtractionError` naming the file and its format kind
        when decoding fails or the extracted text breaks the unit invariant.
        """

        format_kind = FormatClassifier.detect(source.name, source.media_type)
        LOGGER.info("Processing file %s (%s)", source.name, format_kind.value)
        emit_ingest_event(
            "ingest.file.start",
            file_name=source.name,
            format_kind=format_kind.value,
            session_id=session_id,
            size_bytes=source.size_bytes,
        )
        started = time.perf_counter()
        try:
            result = self.extractors[format_kind].extract(source)
            language = self.language_detector.detect(result.text)
            record = build_document_record(
                name=source.name,
                format_kind=format_kind,
                normalized_text=result.text,
                unit_count=result.unit_count,
                raw_binary=RawBinaryHandle(data=source.data, media_type=source.media_type),
                visual_payload=result.visual_payload,
                language=language,
                media_type=source.media_type,
                size_bytes=source.size_bytes,
            )
        except ExtractionError as error:
            failure = error.with_file_name(source.name)
            emit_ingest_event(
                "ingest.file.error",
                file_name=source.name,
                format_kind=format_kind.value,
                session_id=session_id,
                size_bytes=source.size_bytes,
                error=failure,
            )
            raise failure from failure.__cause__
        except DocumentInvariantError as error:
            failure = ExtractionError(format_kind, str(error), file_name=source.name, error=error)
            emit_ingest_event(
                "ingest.file.error",
                file_name=source.name,
                format_kind=format_kind.value,
                session_id=session_id,
                size_bytes=source.size_bytes,
                error=failure,
            )
            raise failure from error

        duration = time.perf_counter() - started
        self.last_statistics = IngestStatistics(
            file_name=source.name,
            format_kind=format_kind,
            unit_count=record.unit_count,
            duration_seconds=duration,
            language=language,
            ocr_performed=result.ocr_performed,
        )
        for warning in result.warnings:
            LOGGER.warning("%s: %s", source.name, warning)
        emit_ingest_event(
            "ingest.file.complete",
            file_name=source.name,
            format_kind=format_kind.value,
            session_id=session_id,
            size_bytes=source.size_bytes,
            duration_ms=duration * 1000.0,
            units=record.unit_count,
            language=language,
        )
        return record

    async def ingest_batch(
        self, sources: Sequence[SourceFile], *, session_id: Optional[str] = None
    ) -> list[DocumentRecord]:
        """Extract every file concurrently and return records in upload order.

        The batch is all-or-nothing: the first failing file aborts the batch,
        outstanding extractions are abandoned and no records are returned.
        """

        names = [source.name for source in sources]
        if not sources:
            return []
        emit_batch_event("ingest.batch.start", files=names, session_id=session_id)
        started = time.perf_counter()
        tasks = [
            asyncio.create_task(asyncio.to_thread(self.ingest, source, session_id=session_id))
            for source in sources
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        failure = _first_failure(tasks, done)
        if failure is not None:
            for task in pending:
                task.cancel()
            for task in done:
                # Retrieve remaining exceptions so asyncio does not report them as unhandled.
                if not task.cancelled():
                    task.exception()
            emit_batch_event(
                "ingest.batch.error",
                files=names,
                session_id=session_id,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=failure,
            )
            raise failure

        records = [task.result() for task in tasks]
        emit_batch_event(
            "ingest.batch.complete",
            files=names,
            session_id=session_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return records


def _first_failure(tasks: list[asyncio.Task], done: set[asyncio.Task]) -> Optional[BaseException]:
    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            return task.exception()
    return None


__all__ = ["IngestPipeline", "IngestStatistics"]
