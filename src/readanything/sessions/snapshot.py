"""JSON snapshot format for persisted sessions.

Snapshots never contain the original upload bytes. Image payloads are
kept so image questions still work after a reload.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from readanything.documents.model import DocumentRecord, build_document_record
from readanything.ingest.format_detection import FormatKind
from readanything.ingest.models import VisualPayload

from .models import Message, MessageRole, Session

SNAPSHOT_VERSION = 1


class VisualPayloadSnapshot(BaseModel):
    data: str
    media_type: str


class DocumentSnapshot(BaseModel):
    id: str
    name: str
    format_kind: FormatKind
    normalized_text: str
    unit_count: int = Field(..., ge=0)
    visual_payload: Optional[VisualPayloadSnapshot] = None
    language: Optional[str] = None
    media_type: Optional[str] = None
    size_bytes: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentSnapshot":
        payload = record.visual_payload
        return cls(
            id=record.id,
            name=record.name,
            format_kind=record.format_kind,
            normalized_text=record.normalized_text,
            unit_count=record.unit_count,
            visual_payload=(
                VisualPayloadSnapshot(data=payload.data, media_type=payload.media_type) if payload else None
            ),
            language=record.language,
            media_type=record.media_type,
            size_bytes=record.size_bytes,
            created_at=record.created_at,
        )

    def to_record(self) -> DocumentRecord:
        """Rebuild the record, re-checking the unit header invariant."""

        payload = self.visual_payload
        return build_document_record(
            document_id=self.id,
            name=self.name,
            format_kind=self.format_kind,
            normalized_text=self.normalized_text,
            unit_count=self.unit_count,
            raw_binary=None,
            visual_payload=VisualPayload(data=payload.data, media_type=payload.media_type) if payload else None,
            language=self.language,
            media_type=self.media_type,
            size_bytes=self.size_bytes,
            created_at=self.created_at,
        )


class MessageSnapshot(BaseModel):
    id: str
    role: MessageRole
    content: str
    timestamp: datetime


class SessionSnapshot(BaseModel):
    id: str
    created_at: datetime
    documents: list[DocumentSnapshot] = Field(default_factory=list)
    messages: list[MessageSnapshot] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: Session) -> "SessionSnapshot":
        return cls(
            id=session.id,
            created_at=session.created_at,
            documents=[DocumentSnapshot.from_record(document) for document in session.documents],
            messages=[
                MessageSnapshot(id=message.id, role=message.role, content=message.content, timestamp=message.timestamp)
                for message in session.messages
            ],
        )

    def to_session(self) -> Session:
        return Session(
            id=self.id,
            created_at=self.created_at,
            documents=[document.to_record() for document in self.documents],
            messages=[
                Message(id=message.id, role=message.role, content=message.content, timestamp=message.timestamp)
                for message in self.messages
            ],
        )


class SnapshotFile(BaseModel):
    """Top-level document written to ``SESSIONS_PATH``."""

    version: int = SNAPSHOT_VERSION
    sessions: list[SessionSnapshot] = Field(default_factory=list)


__all__ = [
    "DocumentSnapshot",
    "MessageSnapshot",
    "SNAPSHOT_VERSION",
    "SessionSnapshot",
    "SnapshotFile",
    "VisualPayloadSnapshot",
]
