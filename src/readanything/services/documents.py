from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Sequence

from readanything.audio.decode import decode_base64_pcm
from readanything.audio.playback import SpeechSynthesizer
from readanything.audio.synthesis import get_speech_synthesizer
from readanything.citations import BoundCitation, BoundSpan, render_citations
from readanything.config import Settings, get_settings
from readanything.documents.anchors import AnchorResolver, NavigationTarget
from readanything.documents.model import DocumentRecord, RawBinaryHandle
from readanything.documents.viewer import ViewSegment, degraded_view
from readanything.errors import AudioDecodeError, ReasoningEngineError
from readanything.ingest.capabilities import DecoderCapabilities
from readanything.ingest.format_detection import FormatKind
from readanything.ingest.models import SourceFile
from readanything.ingest.pipeline import IngestPipeline
from readanything.llm.context import HistoryTurn, ReasoningRequest
from readanything.llm.engines import ReasoningEngine, get_reasoning_engine
from readanything.logging_config import get_ingest_audit_logger
from readanything.sessions import (
    ERROR_MESSAGE,
    Message,
    MessageRole,
    Session,
    SessionSnapshot,
    SessionStore,
)
from readanything.telemetry import (
    emit_exception,
    emit_inference_request,
    emit_inference_result,
    emit_playback_event,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AnswerResult:
    """Structured result returned from :meth:`DocumentService.ask`."""

    session_id: str
    question: str
    message: Message
    spans: list[BoundSpan]
    engine: str

    @property
    def citations(self) -> list[BoundCitation]:
        return [span for span in self.spans if isinstance(span, BoundCitation)]


@dataclass(slots=True)
class SpeechResult:
    """Synthesized audio for one message, or the text to hand to platform speech."""

    message_id: str
    text: str
    audio_base64: Optional[str]
    samples: int
    sample_rate: int

    @property
    def fallback(self) -> bool:
        return self.audio_base64 is None


@dataclass(slots=True)
class DocumentView:
    """How a document should be shown: natively, or as extracted text."""

    document: DocumentRecord
    native: bool
    segments: list[ViewSegment] = field(default_factory=list)


class DocumentService:
    """Orchestrates ingestion, question answering and citation navigation per session."""

    def __init__(
        self,
        *,
        pipeline: IngestPipeline | None = None,
        store: SessionStore | None = None,
        engine: ReasoningEngine | None = None,
        resolver: AnchorResolver | None = None,
        settings: Settings | None = None,
        synthesizer: SpeechSynthesizer | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.pipeline = pipeline or IngestPipeline(DecoderCapabilities.default(self.settings.ocr_language))
        self.store = store or SessionStore(self.settings.sessions_path)
        self.engine = engine or get_reasoning_engine(self.settings)
        self.resolver = resolver or AnchorResolver()
        self.synthesizer = synthesizer if synthesizer is not None else get_speech_synthesizer(self.settings)
        self._audit_logger = get_ingest_audit_logger()

    async def create_session(self, sources: Sequence[SourceFile]) -> Session:
        """Ingest one batch and open a session for it; nothing is stored if any file fails."""

        records = await self.pipeline.ingest_batch(sources)
        session = self.store.create(records)
        self._audit(session.id, records)
        return session

    async def add_documents(self, session_id: str, sources: Sequence[SourceFile]) -> list[DocumentRecord]:
        self.store.get(session_id)
        records = await self.pipeline.ingest_batch(sources, session_id=session_id)
        self.store.append_documents(session_id, records)
        self._audit(session_id, records)
        return records

    async def ask(
        self,
        session_id: str,
        question: str,
        *,
        active_document_id: Optional[str] = None,
    ) -> AnswerResult:
        """Answer ``question`` over the session's documents.

        On engine failure the transcript still gets the user's question and
        a fallback model message, then :class:`ReasoningEngineError` is raised.
        """

        session = self.store.get(session_id)
        history = [HistoryTurn(role=message.role.value, content=message.content) for message in session.messages]
        request = ReasoningRequest(
            question=question,
            documents=list(session.documents),
            history=history,
            session_id=session_id,
        )
        user_message = Message(role=MessageRole.USER, content=question)
        req_id = uuid.uuid4().hex
        context = self.engine.prepare(request)
        emit_inference_request(
            req_id=req_id,
            session_id=session_id,
            engine=self.engine.name,
            question_preview=question,
            context_chars=len(context.text),
            truncated=context.truncated,
            images=len(context.images),
            history=len(history),
        )

        started = time.perf_counter()
        try:
            answer_text = await self.engine.generate(request, context)
        except ReasoningEngineError as error:
            LOGGER.exception("Reasoning engine failed for session %s", session_id)
            emit_exception(module=f"{__name__}.engine", error=error, session_id=session_id)
            self.store.add_messages(
                session_id, user_message, Message(role=MessageRole.MODEL, content=ERROR_MESSAGE)
            )
            emit_inference_result(
                req_id=req_id,
                session_id=session_id,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                engine=self.engine.name,
                answer_preview=ERROR_MESSAGE,
                citations=0,
                fallback=True,
            )
            raise

        answer = Message(role=MessageRole.MODEL, content=answer_text)
        self.store.add_messages(session_id, user_message, answer)
        spans = render_citations(
            answer_text,
            session.documents,
            resolver=self.resolver,
            active_document_id=active_document_id,
            session_id=session_id,
        )
        result = AnswerResult(
            session_id=session_id,
            question=question,
            message=answer,
            spans=spans,
            engine=self.engine.name,
        )
        emit_inference_result(
            req_id=req_id,
            session_id=session_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            engine=self.engine.name,
            answer_preview=answer_text,
            citations=len(result.citations),
            fallback=not self.engine.available,
        )
        return result

    def message_citations(
        self, session_id: str, message_id: str, *, active_document_id: Optional[str] = None
    ) -> Optional[list[BoundSpan]]:
        """Recompute the citation spans of a stored message, or ``None`` if it does not exist."""

        session = self.store.get(session_id)
        message = session.get_message(message_id)
        if message is None:
            return None
        return render_citations(
            message.content,
            session.documents,
            resolver=self.resolver,
            active_document_id=active_document_id,
            session_id=session_id,
        )

    async def speak(self, session_id: str, message_id: str) -> Optional[SpeechResult]:
        """Synthesize a stored message as 16-bit PCM, or ``None`` if the message does not exist.

        Without a synthesizer, or when synthesis or decoding fails, the result
        carries no audio and the caller reads the text with platform speech.
        """

        message = self.store.get(session_id).get_message(message_id)
        if message is None:
            return None
        sample_rate = self.settings.audio_sample_rate
        audio_base64: Optional[str] = None
        if self.synthesizer is not None:
            audio_base64 = await asyncio.to_thread(self.synthesizer.synthesize, message.content) or None
        samples = 0
        if audio_base64:
            try:
                samples = int(decode_base64_pcm(audio_base64).size)
            except AudioDecodeError as error:
                LOGGER.info("Discarding synthesized audio for message %s: %s", message_id, error)
                audio_base64 = None
        emit_playback_event(
            "audio.synthesis.complete", source="pcm" if audio_base64 else "speech", samples=samples
        )
        return SpeechResult(
            message_id=message_id,
            text=message.content,
            audio_base64=audio_base64,
            samples=samples,
            sample_rate=sample_rate,
        )

    def resolve(self, session_id: str, document_id: str, unit_index: int) -> NavigationTarget:
        document = self.store.get(session_id).get_document(document_id)
        return self.resolver.resolve(document, unit_index)

    def view(self, session_id: str, document_id: str) -> DocumentView:
        document = self.store.get(session_id).get_document(document_id)
        if document.raw_binary is not None and document.format_kind is FormatKind.PDF:
            return DocumentView(document=document, native=True)
        return DocumentView(document=document, native=False, segments=degraded_view(document))

    def raw(self, session_id: str, document_id: str) -> Optional[RawBinaryHandle]:
        return self.store.get(session_id).get_document(document_id).raw_binary

    def get_session(self, session_id: str) -> Session:
        return self.store.get(session_id)

    def list_sessions(self) -> list[Session]:
        return self.store.list_sessions()

    def delete_session(self, session_id: str) -> None:
        self.store.delete(session_id)

    def export_snapshot(self, session_id: str) -> SessionSnapshot:
        return self.store.export_snapshot(session_id)

    def import_snapshot(self, snapshot: SessionSnapshot) -> Session:
        return self.store.import_snapshot(snapshot)

    def _audit(self, session_id: str, records: list[DocumentRecord]) -> None:
        self._audit_logger.info(
            {
                "event": "ingest",
                "session_id": session_id,
                "documents": [
                    {
                        "id": record.id,
                        "file_name": record.name,
                        "format_kind": record.format_kind.value,
                        "unit_count": record.unit_count,
                    }
                    for record in records
                ],
            }
        )


@lru_cache(maxsize=1)
def get_document_service() -> DocumentService:
    """FastAPI dependency returning the shared :class:`DocumentService` instance."""

    return DocumentService()


__all__ = ["AnswerResult", "DocumentService", "DocumentView", "SpeechResult", "get_document_service"]
