import asyncio
import json
import logging

from readanything.ingest.models import SourceFile
from readanything.logging_config import (
    AUDIT_LOGGER_NAME,
    MinimalJSONFormatter,
    configure_logging,
    get_ingest_audit_logger,
)
from readanything.services.documents import DocumentService


def _record(msg, **extra) -> logging.LogRecord:
    record = logging.LogRecord("readanything.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_merges_dict_messages() -> None:
    payload = json.loads(MinimalJSONFormatter().format(_record({"event": "ingest", "units": 3})))

    assert payload["event"] == "ingest"
    assert payload["units"] == 3
    assert payload["level"] == "INFO"
    assert payload["module"] == "readanything.test"
    assert "message" not in payload
    assert payload["timestamp"].endswith("Z")


def test_formatter_keeps_extra_fields() -> None:
    payload = json.loads(MinimalJSONFormatter().format(_record("hello %s", session_id="abc")))

    assert payload["message"] == "hello %s"
    assert payload["session_id"] == "abc"


def test_audit_logger_writes_one_line_per_batch(tmp_path, document_service: DocumentService) -> None:
    configure_logging(tmp_path)
    document_service._audit_logger = get_ingest_audit_logger()

    session = asyncio.run(
        document_service.create_session(
            [
                SourceFile(name="notes.txt", data=b"hello", media_type="text/plain"),
                SourceFile(name="paper.pdf", data=b"%PDF", media_type="application/pdf"),
            ]
        )
    )
    for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
        handler.flush()

    lines = (tmp_path / "ingest_audit.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["event"] == "ingest"
    assert entry["session_id"] == session.id
    assert [doc["file_name"] for doc in entry["documents"]] == ["notes.txt", "paper.pdf"]
    assert [doc["unit_count"] for doc in entry["documents"]] == [1, 2]


def test_chatty_client_loggers_are_raised_to_warning(tmp_path) -> None:
    configure_logging(tmp_path, "DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("pypdf").level == logging.WARNING
