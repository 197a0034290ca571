"""In-memory session and message records."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from readanything.documents.model import DocumentRecord
from readanything.errors import DocumentNotFoundError
from readanything.ingest.format_detection import FormatKind

ERROR_MESSAGE = "Something went wrong while thinking. Check your connection."
UNTITLED_SESSION = "Untitled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    USER = "user"
    MODEL = "model"


@dataclass(slots=True)
class Message:
    role: MessageRole
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Session:
    """Documents from one or more committed batches plus the conversation about them."""

    id: str
    documents: list[DocumentRecord] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def title(self) -> str:
        return self.documents[0].name if self.documents else UNTITLED_SESSION

    def get_document(self, document_id: str) -> DocumentRecord:
        for document in self.documents:
            if document.id == document_id:
                return document
        raise DocumentNotFoundError(document_id)

    def get_message(self, message_id: str) -> Optional[Message]:
        return next((message for message in self.messages if message.id == message_id), None)


def greeting_message(documents: list[DocumentRecord]) -> Message:
    """The model's first message after a batch has been processed."""

    has_images = any(document.format_kind is FormatKind.IMAGE for document in documents)
    follow_up = (
        "I'm ready to answer questions about the visuals and text."
        if has_images
        else "What would you like to know?"
    )
    return Message(
        role=MessageRole.MODEL,
        content=f"Analysis complete! I've processed {len(documents)} file(s). {follow_up}",
    )


__all__ = [
    "ERROR_MESSAGE",
    "Message",
    "MessageRole",
    "Session",
    "UNTITLED_SESSION",
    "greeting_message",
]
