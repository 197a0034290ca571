"""Reasoning engine adapters and prompt context assembly."""

from .context import HistoryTurn, ReasoningRequest, build_context
from .engines import (
    HttpReasoningEngine,
    LocalReasoningEngine,
    MockReasoningEngine,
    ReasoningEngine,
    UnavailableReasoningEngine,
    get_reasoning_engine,
)

__all__ = [
    "HistoryTurn",
    "HttpReasoningEngine",
    "LocalReasoningEngine",
    "MockReasoningEngine",
    "ReasoningEngine",
    "ReasoningRequest",
    "UnavailableReasoningEngine",
    "build_context",
    "get_reasoning_engine",
]
