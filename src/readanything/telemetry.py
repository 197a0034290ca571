"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

LOGGER = logging.getLogger("readanything.telemetry")


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_ingest_event(
    step: str,
    *,
    file_name: str,
    format_kind: str,
    session_id: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    units: int | None = None,
    language: str | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_name,
        "format_kind": format_kind,
        "size_bytes": size_bytes,
        "units": units,
        "language": language,
    }
    level = "error" if error else "info"
    log_event(
        LOGGER,
        step,
        level=level,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_batch_event(
    step: str,
    *,
    files: Iterable[str],
    session_id: str | None = None,
    duration_ms: float | None = None,
    error: BaseException | None = None,
) -> None:
    details = {"files": list(files)}
    level = "error" if error else "info"
    log_event(
        LOGGER,
        step,
        level=level,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_citation_event(
    *,
    session_id: str | None,
    document_id: str | None,
    unit_index: int,
    resolved: bool,
    reason: str | None = None,
) -> None:
    details = {
        "document_id": document_id,
        "unit_index": unit_index,
        "resolved": resolved,
        "reason": reason,
    }
    log_event(LOGGER, "citation.resolve", session_id=session_id, details=details)


def emit_inference_request(
    *,
    req_id: str,
    session_id: str,
    engine: str,
    question_preview: str,
    context_chars: int,
    truncated: bool,
    images: int,
    history: int,
) -> None:
    details = {
        "engine": engine,
        "question_preview": question_preview[:120],
        "context_chars": context_chars,
        "truncated": truncated,
        "images": images,
        "history": history,
    }
    log_event(LOGGER, "inference.request", req_id=req_id, session_id=session_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    session_id: str,
    duration_ms: float,
    engine: str,
    answer_preview: str,
    citations: int,
    fallback: bool,
) -> None:
    details = {
        "engine": engine,
        "answer_preview": answer_preview[:120],
        "citations": citations,
        "fallback": fallback,
    }
    log_event(
        LOGGER,
        "inference.result",
        req_id=req_id,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_playback_event(step: str, *, source: str, samples: int | None = None) -> None:
    log_event(LOGGER, step, details={"source": source, "samples": samples})


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_batch_event",
    "emit_citation_event",
    "emit_exception",
    "emit_inference_request",
    "emit_inference_result",
    "emit_ingest_event",
    "emit_playback_event",
    "log_event",
    "traced_duration",
]
