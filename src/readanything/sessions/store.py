"""Session store with optional JSON file persistence."""
from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from readanything.documents.model import DocumentRecord
from readanything.errors import DocumentError, SessionConflictError, SessionNotFoundError

from .models import Message, Session, greeting_message
from .snapshot import SessionSnapshot, SnapshotFile

LOGGER = logging.getLogger(__name__)


class SessionStore:
    """Keeps sessions in memory and mirrors them to ``path`` after every change."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else None
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()
        if self.path is not None:
            self._load()

    def create(self, documents: list[DocumentRecord]) -> Session:
        """Create a session from a committed batch, greeting the user."""

        session = Session(id=uuid.uuid4().hex, documents=list(documents))
        session.messages.append(greeting_message(documents))
        with self._lock:
            self._sessions[session.id] = session
            self._save()
        LOGGER.info("Created session %s with %s documents", session.id, len(documents))
        return session

    def append_documents(self, session_id: str, documents: list[DocumentRecord]) -> Session:
        with self._lock:
            session = self.get(session_id)
            session.documents.extend(documents)
            self._save()
        return session

    def add_messages(self, session_id: str, *messages: Message) -> Session:
        with self._lock:
            session = self.get(session_id)
            session.messages.extend(messages)
            self._save()
        return session

    def get(self, session_id: str) -> Session:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFoundError(session_id) from None

    def list_sessions(self) -> list[Session]:
        """All sessions, newest first."""

        with self._lock:
            ordered = sorted(
                enumerate(self._sessions.values()),
                key=lambda item: (item[1].created_at, item[0]),
                reverse=True,
            )
            return [session for _, session in ordered]

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(session_id)
            self._save()
        LOGGER.info("Deleted session %s", session_id)

    def export_snapshot(self, session_id: str) -> SessionSnapshot:
        return SessionSnapshot.from_session(self.get(session_id))

    def import_snapshot(self, snapshot: SessionSnapshot) -> Session:
        """Restore a session; its documents come back without their original bytes.

        Raises :class:`~readanything.errors.DocumentInvariantError` when a
        document's text no longer matches its unit count, and
        :class:`~readanything.errors.SessionConflictError` when a session with
        the same id is already loaded; a live session keeps its original bytes.
        """

        session = snapshot.to_session()
        with self._lock:
            if session.id in self._sessions:
                raise SessionConflictError(session.id)
            self._sessions[session.id] = session
            self._save()
        LOGGER.info("Imported session %s with %s documents", session.id, len(session.documents))
        return session

    def _load(self) -> None:
        assert self.path is not None
        if not self.path.exists():
            return
        try:
            snapshot_file = SnapshotFile.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as error:
            LOGGER.error("Could not read sessions from %s: %s", self.path, error)
            return
        for snapshot in snapshot_file.sessions:
            try:
                session = snapshot.to_session()
            except DocumentError as error:
                LOGGER.warning("Skipping persisted session %s: %s", snapshot.id, error)
                continue
            self._sessions[session.id] = session
        LOGGER.info("Loaded %s sessions from %s", len(self._sessions), self.path)

    def _save(self) -> None:
        if self.path is None:
            return
        snapshot_file = SnapshotFile(
            sessions=[SessionSnapshot.from_session(session) for session in self._sessions.values()]
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(snapshot_file.model_dump_json(), encoding="utf-8")
        tmp_path.replace(self.path)


__all__ = ["SessionStore"]
