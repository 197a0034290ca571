"""API router exposing sessions, documents, answers and citation navigation."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel, Field

from readanything.citations import BoundCitation, BoundSpan
from readanything.documents.anchors import NavigationTarget, RendererTarget
from readanything.documents.model import DocumentRecord
from readanything.errors import (
    AnchorResolutionError,
    DocumentInvariantError,
    DocumentNotFoundError,
    ExtractionError,
    ReasoningEngineError,
    SessionConflictError,
    SessionNotFoundError,
)
from readanything.ingest.models import SourceFile
from readanything.services.documents import DocumentService, get_document_service
from readanything.sessions import Message, Session, SessionSnapshot

router = APIRouter(prefix="/sessions", tags=["sessions"])


class DocumentSummary(BaseModel):
    id: str
    name: str
    format_kind: str
    unit_count: int
    language: Optional[str] = None
    media_type: Optional[str] = None
    size_bytes: Optional[int] = None
    has_raw_binary: bool
    has_visual_payload: bool
    created_at: datetime


class MessageModel(BaseModel):
    id: str
    role: str
    content: str
    timestamp: datetime


class SessionSummary(BaseModel):
    id: str
    title: str
    created_at: datetime
    document_count: int
    message_count: int


class SessionDetail(BaseModel):
    id: str
    title: str
    created_at: datetime
    documents: list[DocumentSummary]
    messages: list[MessageModel]


class DocumentBatchResponse(BaseModel):
    session_id: str
    documents: list[DocumentSummary]


class NavigationTargetModel(BaseModel):
    type: Literal["renderer", "text_offset"]
    document_id: str
    unit_index: int
    locator: Optional[str] = None
    media_type: Optional[str] = None
    offset: Optional[int] = None
    element_id: Optional[str] = None
    kind: Optional[str] = None
    label: Optional[str] = None


class SpanModel(BaseModel):
    type: Literal["text", "citation"]
    text: str
    start: int
    end: int
    unit_word: Optional[str] = None
    unit_index: Optional[int] = None
    label: Optional[str] = None
    file_hint: Optional[str] = None
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    resolved: Optional[bool] = None
    reason: Optional[str] = None
    target: Optional[NavigationTargetModel] = None


class AskRequest(BaseModel):
    """Request body accepted by the messages endpoint."""

    question: str = Field(..., min_length=1, description="Question about the session's documents.")
    active_document_id: Optional[str] = Field(
        None, description="Document used for citations that do not name a file."
    )


class AskResponse(BaseModel):
    session_id: str
    question: str
    engine: str
    message: MessageModel
    spans: list[SpanModel]


class SpeechResponse(BaseModel):
    message_id: str
    text: str
    audio_base64: Optional[str] = Field(
        None, description="Mono 16-bit little-endian PCM; absent when platform speech should read the text."
    )
    samples: int
    sample_rate: int
    fallback: bool


class ViewSegmentModel(BaseModel):
    unit_index: int
    element_id: str
    kind: str
    label: str
    header: str
    offset: int
    body: str


class DocumentViewResponse(BaseModel):
    document_id: str
    mode: Literal["native", "text"]
    raw_url: Optional[str] = None
    segments: list[ViewSegmentModel] = Field(default_factory=list)


def _serialise_document(document: DocumentRecord) -> DocumentSummary:
    return DocumentSummary(
        id=document.id,
        name=document.name,
        format_kind=document.format_kind.value,
        unit_count=document.unit_count,
        language=document.language,
        media_type=document.media_type,
        size_bytes=document.size_bytes,
        has_raw_binary=document.has_raw_binary,
        has_visual_payload=document.visual_payload is not None,
        created_at=document.created_at,
    )


def _serialise_message(message: Message) -> MessageModel:
    return MessageModel(id=message.id, role=message.role.value, content=message.content, timestamp=message.timestamp)


def _serialise_session(session: Session) -> SessionDetail:
    return SessionDetail(
        id=session.id,
        title=session.title,
        created_at=session.created_at,
        documents=[_serialise_document(document) for document in session.documents],
        messages=[_serialise_message(message) for message in session.messages],
    )


def _serialise_target(target: NavigationTarget) -> NavigationTargetModel:
    if isinstance(target, RendererTarget):
        return NavigationTargetModel(
            type="renderer",
            document_id=target.document_id,
            unit_index=target.unit_index,
            locator=target.locator,
            media_type=target.media_type,
        )
    return NavigationTargetModel(
        type="text_offset",
        document_id=target.document_id,
        unit_index=target.unit_index,
        offset=target.offset,
        element_id=target.element_id,
        kind=target.kind.value,
        label=target.label,
    )


def _serialise_spans(spans: list[BoundSpan]) -> list[SpanModel]:
    serialised: list[SpanModel] = []
    for span in spans:
        if isinstance(span, BoundCitation):
            citation = span.span
            serialised.append(
                SpanModel(
                    type="citation",
                    text=citation.literal,
                    start=citation.start,
                    end=citation.end,
                    unit_word=citation.unit_word,
                    unit_index=citation.unit_index,
                    label=citation.display_label,
                    file_hint=citation.file_hint,
                    document_id=span.document_id,
                    document_name=span.document_name,
                    resolved=span.resolved,
                    reason=span.reason,
                    target=_serialise_target(span.target) if span.target is not None else None,
                )
            )
        else:
            serialised.append(SpanModel(type="text", text=span.text, start=span.start, end=span.end))
    return serialised


async def _read_uploads(files: list[UploadFile]) -> list[SourceFile]:
    sources: list[SourceFile] = []
    for upload in files:
        data = await upload.read()
        sources.append(SourceFile(name=upload.filename or "upload", data=data, media_type=upload.content_type))
    return sources


def _extraction_failed(error: ExtractionError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={
            "format_kind": error.format_kind.value,
            "file_name": error.file_name,
            "cause": error.cause,
        },
    )


def _not_found(error: KeyError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(error))


@router.post("", response_model=SessionDetail, status_code=201)
async def create_session(
    files: list[UploadFile] = File(...),
    service: DocumentService = Depends(get_document_service),
) -> SessionDetail:
    """Ingest a batch of files into a new session. The batch is all-or-nothing."""

    if not files:
        raise HTTPException(status_code=400, detail="At least one file must be provided")
    try:
        session = await service.create_session(await _read_uploads(files))
    except ExtractionError as exc:
        raise _extraction_failed(exc) from exc
    return _serialise_session(session)


@router.get("", response_model=list[SessionSummary])
def list_sessions(service: DocumentService = Depends(get_document_service)) -> list[SessionSummary]:
    return [
        SessionSummary(
            id=session.id,
            title=session.title,
            created_at=session.created_at,
            document_count=len(session.documents),
            message_count=len(session.messages),
        )
        for session in service.list_sessions()
    ]


@router.post("/import", response_model=SessionDetail, status_code=201)
def import_session(
    snapshot: SessionSnapshot,
    service: DocumentService = Depends(get_document_service),
) -> SessionDetail:
    try:
        session = service.import_snapshot(snapshot)
    except DocumentInvariantError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SessionConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _serialise_session(session)


@router.get("/{session_id}", response_model=SessionDetail)
def get_session(session_id: str, service: DocumentService = Depends(get_document_service)) -> SessionDetail:
    try:
        return _serialise_session(service.get_session(session_id))
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, service: DocumentService = Depends(get_document_service)) -> Response:
    try:
        service.delete_session(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=204)


@router.get("/{session_id}/snapshot", response_model=SessionSnapshot)
def export_session(session_id: str, service: DocumentService = Depends(get_document_service)) -> SessionSnapshot:
    try:
        return service.export_snapshot(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post("/{session_id}/documents", response_model=DocumentBatchResponse)
async def add_documents(
    session_id: str,
    files: list[UploadFile] = File(...),
    service: DocumentService = Depends(get_document_service),
) -> DocumentBatchResponse:
    if not files:
        raise HTTPException(status_code=400, detail="At least one file must be provided")
    try:
        records = await service.add_documents(session_id, await _read_uploads(files))
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except ExtractionError as exc:
        raise _extraction_failed(exc) from exc
    return DocumentBatchResponse(session_id=session_id, documents=[_serialise_document(record) for record in records])


@router.post("/{session_id}/messages", response_model=AskResponse)
async def ask_question(
    session_id: str,
    request: AskRequest,
    service: DocumentService = Depends(get_document_service),
) -> AskResponse:
    """Ask a question; the answer comes back with its citations already resolved."""

    if not request.question.strip():
        raise HTTPException(status_code=422, detail="Question must not be empty")
    try:
        result = await service.ask(session_id, request.question, active_document_id=request.active_document_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except ReasoningEngineError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return AskResponse(
        session_id=result.session_id,
        question=result.question,
        engine=result.engine,
        message=_serialise_message(result.message),
        spans=_serialise_spans(result.spans),
    )


@router.get("/{session_id}/messages/{message_id}/citations", response_model=list[SpanModel])
def message_citations(
    session_id: str,
    message_id: str,
    active_document_id: Optional[str] = Query(None),
    service: DocumentService = Depends(get_document_service),
) -> list[SpanModel]:
    try:
        spans = service.message_citations(session_id, message_id, active_document_id=active_document_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    if spans is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return _serialise_spans(spans)


@router.post("/{session_id}/messages/{message_id}/speech", response_model=SpeechResponse)
async def message_speech(
    session_id: str,
    message_id: str,
    service: DocumentService = Depends(get_document_service),
) -> SpeechResponse:
    """Synthesize a message for read-aloud playback."""

    try:
        speech = await service.speak(session_id, message_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    if speech is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return SpeechResponse(
        message_id=speech.message_id,
        text=speech.text,
        audio_base64=speech.audio_base64,
        samples=speech.samples,
        sample_rate=speech.sample_rate,
        fallback=speech.fallback,
    )


@router.get("/{session_id}/documents/{document_id}/units/{unit_index}", response_model=NavigationTargetModel)
def resolve_unit(
    session_id: str,
    document_id: str,
    unit_index: int,
    service: DocumentService = Depends(get_document_service),
) -> NavigationTargetModel:
    try:
        target = service.resolve(session_id, document_id, unit_index)
    except (SessionNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    except AnchorResolutionError as exc:
        raise HTTPException(
            status_code=404, detail={"unit_index": exc.unit_index, "reason": exc.reason}
        ) from exc
    return _serialise_target(target)


@router.get("/{session_id}/documents/{document_id}/view", response_model=DocumentViewResponse)
def view_document(
    session_id: str,
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> DocumentViewResponse:
    try:
        view = service.view(session_id, document_id)
    except (SessionNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    if view.native:
        return DocumentViewResponse(
            document_id=document_id,
            mode="native",
            raw_url=f"/sessions/{session_id}/documents/{document_id}/raw",
        )
    return DocumentViewResponse(
        document_id=document_id,
        mode="text",
        segments=[
            ViewSegmentModel(
                unit_index=segment.unit_index,
                element_id=segment.element_id,
                kind=segment.kind.value,
                label=segment.label,
                header=segment.header,
                offset=segment.offset,
                body=segment.body,
            )
            for segment in view.segments
        ],
    )


@router.get("/{session_id}/documents/{document_id}/raw")
def raw_document(
    session_id: str,
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> Response:
    try:
        raw = service.raw(session_id, document_id)
    except (SessionNotFoundError, DocumentNotFoundError) as exc:
        raise _not_found(exc) from exc
    if raw is None:
        raise HTTPException(status_code=404, detail="Original file is not available in this session")
    return Response(content=raw.data, media_type=raw.media_type or "application/octet-stream")
