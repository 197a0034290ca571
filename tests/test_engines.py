from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import make_pipeline
from readanything.config import Settings
from readanything.documents.model import build_document_record
from readanything.errors import ReasoningEngineError
from readanything.ingest.format_detection import FormatKind
from readanything.ingest.models import SourceFile, VisualPayload
from readanything.llm.context import HistoryTurn, PreparedContext, ReasoningRequest, build_context, truncate
from readanything.llm.engines import (
    LOCAL_FAILURE_MESSAGE,
    HttpReasoningEngine,
    LocalReasoningEngine,
    MockReasoningEngine,
    UnavailableReasoningEngine,
    get_reasoning_engine,
)
from readanything.services.documents import DocumentService
from readanything.sessions import SessionStore


def _documents():
    notes = build_document_record(
        name="notes.txt",
        format_kind=FormatKind.PLAIN_TEXT,
        normalized_text="--- Text File ---\nThe launch is on Friday.",
        unit_count=1,
    )
    chart = build_document_record(
        name="chart.png",
        format_kind=FormatKind.IMAGE,
        normalized_text="--- Image OCR Result ---\nRevenue",
        unit_count=1,
        visual_payload=VisualPayload(data="aW1n", media_type="image/png"),
    )
    return [notes, chart]


def _request(question: str = "When is the launch?") -> ReasoningRequest:
    return ReasoningRequest(
        question=question,
        documents=_documents(),
        history=[HistoryTurn(role="model", content="Analysis complete!")],
    )


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://llm.test")


def test_truncate_cuts_from_the_end() -> None:
    assert truncate("abcdef", 4) == ("abcd", True)
    assert truncate("abc", 4) == ("abc", False)


def test_context_wraps_text_documents_and_collects_images() -> None:
    context = build_context(_documents(), budget=10_000)

    assert context.text == (
        "--- START OF FILE: notes.txt (plainText) ---\n"
        "--- Text File ---\nThe launch is on Friday.\n"
        "--- END OF FILE: notes.txt ---"
    )
    assert [image.name for image in context.images] == ["chart.png"]
    assert not context.truncated


def test_context_respects_budget() -> None:
    context = build_context(_documents(), budget=20)

    assert len(context.text) == 20
    assert context.truncated


def test_http_engine_sends_chat_completion_with_images() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": 'On Friday "notes.txt" [Page 1].'}}]})

    engine = HttpReasoningEngine(
        "http://llm.test", "vision-model", api_key="secret", client=_client(handler)
    )

    answer = asyncio.run(engine.generate(_request()))

    assert answer == 'On Friday "notes.txt" [Page 1].'
    assert captured["path"] == "/v1/chat/completions"
    assert captured["auth"] == "Bearer secret"
    body = captured["body"]
    assert body["model"] == "vision-model"
    messages = body["messages"]
    assert messages[0]["role"] == "system"
    assert '"Filename" [Page X]' in messages[0]["content"]
    assert "START OF FILE: notes.txt" in messages[0]["content"]
    assert messages[1] == {"role": "assistant", "content": "Analysis complete!"}
    parts = messages[-1]["content"]
    assert parts[0] == {"type": "text", "text": "When is the launch?"}
    assert parts[1]["image_url"]["url"] == "data:image/png;base64,aW1n"
    assert parts[2]["text"] == "(Attached Image: chart.png)"


def test_http_engine_wraps_http_errors() -> None:
    engine = HttpReasoningEngine(
        "http://llm.test", "m", client=_client(lambda request: httpx.Response(503, text="overloaded"))
    )

    with pytest.raises(ReasoningEngineError, match="503"):
        asyncio.run(engine.generate(_request()))


def test_http_engine_rejects_malformed_response() -> None:
    engine = HttpReasoningEngine(
        "http://llm.test", "m", client=_client(lambda request: httpx.Response(200, json={"choices": []}))
    )

    with pytest.raises(ReasoningEngineError, match="Malformed"):
        asyncio.run(engine.generate(_request()))


def test_local_engine_uses_text_prompt_and_small_budget() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Friday"}}]})

    engine = LocalReasoningEngine("http://llm.test", "small", client=_client(handler))

    assert engine.context_char_budget == 15_000
    assert asyncio.run(engine.generate(_request())) == "Friday"
    prompt = captured["body"]["messages"][1]["content"]
    assert prompt.startswith("DOCUMENTS:\n[FILE: notes.txt]\n")
    assert "[FILE: chart.png]" in prompt
    assert "HISTORY:\nmodel: Analysis complete!" in prompt
    assert prompt.endswith("User: When is the launch?\nAssistant:")


def test_mock_engine_cites_first_document() -> None:
    answer = asyncio.run(MockReasoningEngine().generate(_request("hi")))

    assert answer == 'MOCK_ANSWER: hi See "notes.txt" [Page 1].'


def test_unavailable_engine_explains_itself() -> None:
    engine = UnavailableReasoningEngine()

    assert not engine.available
    assert "REASONING_ENGINE" in asyncio.run(engine.generate(_request()))


def test_factory_follows_settings() -> None:
    assert isinstance(get_reasoning_engine(Settings(reasoning_engine="mock")), MockReasoningEngine)
    assert isinstance(get_reasoning_engine(Settings(reasoning_engine="http")), UnavailableReasoningEngine)
    local = get_reasoning_engine(
        Settings(reasoning_engine="local", reasoning_base_url="http://x", reasoning_model="m")
    )
    assert isinstance(local, LocalReasoningEngine)
    http = get_reasoning_engine(
        Settings(reasoning_engine="http", reasoning_base_url="http://x", reasoning_model="m", context_char_budget=99)
    )
    assert isinstance(http, HttpReasoningEngine)
    assert http.context_char_budget == 99


def test_local_engine_failure_becomes_an_answer() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="model crashed")

    engine = LocalReasoningEngine("http://llm.test", "small", client=_client(handler))

    assert asyncio.run(engine.generate(_request())) == LOCAL_FAILURE_MESSAGE


def test_http_engine_uses_supplied_context() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    engine = HttpReasoningEngine("http://llm.test", "vision", client=_client(handler))
    context = PreparedContext(text="PREBUILT CONTEXT", truncated=False, images=[])

    asyncio.run(engine.generate(_request(), context))

    messages = captured["body"]["messages"]
    assert "PREBUILT CONTEXT" in messages[0]["content"]
    assert messages[-1]["content"] == "When is the launch?"


class _CountingEngine(MockReasoningEngine):
    def __init__(self) -> None:
        super().__init__()
        self.prepared = 0

    def prepare(self, request: ReasoningRequest) -> PreparedContext:
        self.prepared += 1
        return super().prepare(request)


def test_service_builds_context_once_per_question() -> None:
    engine = _CountingEngine()
    service = DocumentService(pipeline=make_pipeline(), store=SessionStore(), engine=engine)
    session = asyncio.run(service.create_session([SourceFile(name="notes.txt", data=b"hello")]))

    asyncio.run(service.ask(session.id, "What does it say?"))

    assert engine.prepared == 1
