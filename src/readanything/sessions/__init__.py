"""Sessions owning document records and their message transcripts."""

from .models import ERROR_MESSAGE, Message, MessageRole, Session, greeting_message
from .snapshot import SessionSnapshot, SnapshotFile
from .store import SessionStore

__all__ = [
    "ERROR_MESSAGE",
    "Message",
    "MessageRole",
    "Session",
    "SessionSnapshot",
    "SessionStore",
    "SnapshotFile",
    "greeting_message",
]
