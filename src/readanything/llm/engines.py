"""Reasoning engines answering questions over session documents."""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from readanything.config import Settings, get_settings
from readanything.errors import ReasoningEngineError
from readanything.ingest.models import VisualPayload
from readanything.telemetry import traced_duration

from .context import (
    LOCAL_SYSTEM_PROMPT,
    PreparedContext,
    ReasoningRequest,
    build_context,
    build_text_only_context,
    local_prompt,
    system_instruction,
)

LOGGER = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "v1/chat/completions"
EMPTY_ANSWER_MESSAGE = "I couldn't generate an answer."
LOCAL_FAILURE_MESSAGE = "Local AI failed. Please try cloud mode for complex visual analysis."
UNAVAILABLE_MESSAGE = (
    "No reasoning engine is configured. Set REASONING_ENGINE and REASONING_BASE_URL to enable answers."
)


class ReasoningEngine(Protocol):
    name: str
    context_char_budget: int

    @property
    def available(self) -> bool:
        ...

    def prepare(self, request: ReasoningRequest) -> PreparedContext:
        ...

    async def generate(self, request: ReasoningRequest, context: Optional[PreparedContext] = None) -> str:
        """Answer ``request``; ``context`` is the result of :meth:`prepare` when the caller already has it."""
        ...


def _image_data_url(payload: VisualPayload) -> str:
    return f"data:{payload.media_type};base64,{payload.data}"


def _chat_role(role: str) -> str:
    return "assistant" if role == "model" else role


class HttpReasoningEngine:
    """Multimodal engine speaking the OpenAI-compatible chat-completions API."""

    name = "http"

    def __init__(
        self,
        base_url: Optional[str],
        model: Optional[str],
        *,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        context_char_budget: int = 500_000,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.context_char_budget = context_char_budget
        self._client = client

    @property
    def available(self) -> bool:
        return bool(self.base_url and self.model)

    def prepare(self, request: ReasoningRequest) -> PreparedContext:
        return build_context(request.documents, self.context_char_budget)

    def build_messages(self, request: ReasoningRequest, context: PreparedContext) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_instruction(context.text)}]
        messages.extend({"role": _chat_role(turn.role), "content": turn.content} for turn in request.history)
        if not context.images:
            messages.append({"role": "user", "content": request.question})
            return messages
        parts: list[dict[str, Any]] = [{"type": "text", "text": request.question}]
        for image in context.images:
            parts.append({"type": "image_url", "image_url": {"url": _image_data_url(image.payload)}})
            parts.append({"type": "text", "text": f"(Attached Image: {image.name})"})
        messages.append({"role": "user", "content": parts})
        return messages

    async def generate(self, request: ReasoningRequest, context: Optional[PreparedContext] = None) -> str:
        if context is None:
            context = self.prepare(request)
        if context.truncated:
            LOGGER.info("Context truncated to %s characters", self.context_char_budget)
        return await self._complete(self.build_messages(request, context))

    async def _complete(self, messages: list[dict[str, Any]]) -> str:
        if not self.available:
            raise ReasoningEngineError(f"{self.name} engine needs REASONING_BASE_URL and REASONING_MODEL")

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"model": self.model, "messages": messages}

        try:
            with traced_duration("llm.http.request", logger=LOGGER, engine=self.name, model=self.model):
                if self._client is not None:
                    response = await self._client.post(CHAT_COMPLETIONS_PATH, json=payload, headers=headers)
                else:
                    async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                        response = await client.post(CHAT_COMPLETIONS_PATH, json=payload, headers=headers)
                response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as error:
            raise ReasoningEngineError(
                f"LLM HTTP {error.response.status_code}: {error.response.text}", cause=error
            ) from error
        except (httpx.HTTPError, ValueError) as error:
            raise ReasoningEngineError(f"LLM HTTP error: {error}", cause=error) from error

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as error:
            raise ReasoningEngineError("Malformed chat completion response", cause=error) from error
        return content or EMPTY_ANSWER_MESSAGE


class LocalReasoningEngine(HttpReasoningEngine):
    """Small on-device model: text only, with a much smaller context budget."""

    name = "local"

    def __init__(
        self,
        base_url: Optional[str],
        model: Optional[str],
        *,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        context_char_budget: int = 15_000,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url,
            model,
            api_key=api_key,
            timeout=timeout,
            context_char_budget=context_char_budget,
            client=client,
        )

    def prepare(self, request: ReasoningRequest) -> PreparedContext:
        return build_text_only_context(request.documents, self.context_char_budget)

    async def generate(self, request: ReasoningRequest, context: Optional[PreparedContext] = None) -> str:
        """Answer with the small model; a failure becomes an answer suggesting the cloud engine."""

        try:
            return await super().generate(request, context)
        except ReasoningEngineError as error:
            LOGGER.warning("Local engine failed: %s", error)
            return LOCAL_FAILURE_MESSAGE

    def build_messages(self, request: ReasoningRequest, context: PreparedContext) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": LOCAL_SYSTEM_PROMPT},
            {"role": "user", "content": local_prompt(context.text, request.history, request.question)},
        ]


class MockReasoningEngine:
    """Deterministic engine that cites the first unit of the first document."""

    name = "mock"

    def __init__(self, context_char_budget: int = 500_000) -> None:
        self.context_char_budget = context_char_budget
        self.requests: list[ReasoningRequest] = []

    @property
    def available(self) -> bool:
        return True

    def prepare(self, request: ReasoningRequest) -> PreparedContext:
        return build_context(request.documents, self.context_char_budget)

    async def generate(self, request: ReasoningRequest, context: Optional[PreparedContext] = None) -> str:
        self.requests.append(request)
        answer = f"MOCK_ANSWER: {request.question[:100]}"
        cited = next((document for document in request.documents if document.unit_count > 0), None)
        if cited is None:
            return answer
        unit_word = {"slide": "Slide", "sheet": "Sheet"}.get(cited.anchor_kind.value, "Page")
        return f'{answer} See "{cited.name}" [{unit_word} 1].'


class UnavailableReasoningEngine:
    """Placeholder used when no engine is configured."""

    name = "unavailable"

    def __init__(self, reason: str = UNAVAILABLE_MESSAGE) -> None:
        self.reason = reason
        self.context_char_budget = 0

    @property
    def available(self) -> bool:
        return False

    def prepare(self, request: ReasoningRequest) -> PreparedContext:
        return PreparedContext(text="", truncated=False, images=[])

    async def generate(self, request: ReasoningRequest, context: Optional[PreparedContext] = None) -> str:
        return self.reason


def get_reasoning_engine(settings: Optional[Settings] = None) -> ReasoningEngine:
    """Build the engine selected by ``REASONING_ENGINE``."""

    settings = settings or get_settings()
    choice = settings.reasoning_engine
    if choice == "mock":
        return MockReasoningEngine(context_char_budget=settings.context_char_budget)
    if choice in {"http", "local"}:
        if not settings.reasoning_base_url or not settings.reasoning_model:
            LOGGER.warning("REASONING_ENGINE=%s needs REASONING_BASE_URL and REASONING_MODEL", choice)
            return UnavailableReasoningEngine()
        if choice == "local":
            return LocalReasoningEngine(
                settings.reasoning_base_url,
                settings.reasoning_model,
                api_key=settings.reasoning_api_key,
                timeout=settings.reasoning_timeout,
                context_char_budget=settings.local_context_char_budget,
            )
        return HttpReasoningEngine(
            settings.reasoning_base_url,
            settings.reasoning_model,
            api_key=settings.reasoning_api_key,
            timeout=settings.reasoning_timeout,
            context_char_budget=settings.context_char_budget,
        )
    return UnavailableReasoningEngine()


__all__ = [
    "EMPTY_ANSWER_MESSAGE",
    "HttpReasoningEngine",
    "LOCAL_FAILURE_MESSAGE",
    "LocalReasoningEngine",
    "MockReasoningEngine",
    "ReasoningEngine",
    "UNAVAILABLE_MESSAGE",
    "UnavailableReasoningEngine",
    "get_reasoning_engine",
]
