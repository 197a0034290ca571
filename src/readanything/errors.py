"""Exceptions raised by the ingestion, addressing and playback layers."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from readanything.ingest.format_detection import FormatKind


class DocumentError(RuntimeError):
    """Base class for failures scoped to a single document or citation."""


class ExtractionError(DocumentError):
    """Raised when a file cannot be turned into unit-segmented text.

    Covers both a missing decoder capability and malformed bytes. No partial
    output is ever attached to the error.
    """

    def __init__(
        self,
        format_kind: "FormatKind",
        cause: str,
        *,
        file_name: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.format_kind = format_kind
        self.cause = cause
        self.file_name = file_name
        label = f"{file_name} ({format_kind.value})" if file_name else format_kind.value
        super().__init__(f"Failed to extract {label}: {cause}")
        self.__cause__ = error

    def with_file_name(self, file_name: str) -> "ExtractionError":
        """Return a copy of the error that names the failing file."""

        if self.file_name == file_name:
            return self
        return ExtractionError(
            self.format_kind,
            self.cause,
            file_name=file_name,
            error=self.__cause__ if isinstance(self.__cause__, BaseException) else None,
        )


class DocumentInvariantError(DocumentError):
    """Raised when normalized text and its declared unit count disagree."""


class AnchorResolutionError(DocumentError):
    """Raised when a unit index cannot be mapped to a navigation target."""

    def __init__(self, unit_index: int, reason: str) -> None:
        self.unit_index = unit_index
        self.reason = reason
        super().__init__(f"Cannot resolve unit {unit_index}: {reason}")


class AudioDecodeError(ValueError):
    """Raised when a synthesized PCM payload is malformed."""


class ReasoningEngineError(RuntimeError):
    """Raised when the reasoning engine fails to produce an answer."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class SessionNotFoundError(KeyError):
    """Raised when a session identifier is unknown."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session {self.session_id} not found"


class SessionConflictError(RuntimeError):
    """Raised when an imported session would replace a live one."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} already exists")
        self.session_id = session_id


class DocumentNotFoundError(KeyError):
    """Raised when a document identifier is unknown within a session."""

    def __init__(self, document_id: str) -> None:
        super().__init__(document_id)
        self.document_id = document_id

    def __str__(self) -> str:
        return f"Document {self.document_id} not found"


__all__ = [
    "AnchorResolutionError",
    "AudioDecodeError",
    "DocumentError",
    "DocumentInvariantError",
    "DocumentNotFoundError",
    "ExtractionError",
    "ReasoningEngineError",
    "SessionConflictError",
    "SessionNotFoundError",
]
