"""Environment driven configuration for the service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

_ENGINE_CHOICES = {"mock", "http", "local", "unavailable"}


def _str_from_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True, frozen=True)
class Settings:
    """Runtime settings resolved once per process."""

    ocr_language: str = "eng"
    reasoning_engine: str = "mock"
    reasoning_base_url: Optional[str] = None
    reasoning_model: Optional[str] = None
    reasoning_api_key: Optional[str] = None
    reasoning_timeout: float = 60.0
    context_char_budget: int = 500_000
    local_context_char_budget: int = 15_000
    sessions_path: Optional[Path] = None
    audio_sample_rate: int = 24_000
    speech_base_url: Optional[str] = None
    speech_model: Optional[str] = None
    speech_voice: str = "alloy"
    speech_api_key: Optional[str] = None
    log_dir: Path = Path("logs")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        engine = _str_from_env("REASONING_ENGINE", "mock").lower()
        if engine not in _ENGINE_CHOICES:
            LOGGER.warning("Unknown REASONING_ENGINE %s; using mock", engine)
            engine = "mock"
        sessions_path = os.getenv("SESSIONS_PATH")
        return cls(
            ocr_language=_str_from_env("OCR_LANG", "eng"),
            reasoning_engine=engine,
            reasoning_base_url=os.getenv("REASONING_BASE_URL") or None,
            reasoning_model=os.getenv("REASONING_MODEL") or None,
            reasoning_api_key=os.getenv("REASONING_API_KEY") or None,
            reasoning_timeout=_float_from_env("REASONING_TIMEOUT", 60.0),
            context_char_budget=_int_from_env("CONTEXT_CHAR_BUDGET", 500_000),
            local_context_char_budget=_int_from_env("LOCAL_CONTEXT_CHAR_BUDGET", 15_000),
            sessions_path=Path(sessions_path) if sessions_path else None,
            audio_sample_rate=_int_from_env("AUDIO_SAMPLE_RATE", 24_000),
            speech_base_url=os.getenv("SPEECH_BASE_URL") or os.getenv("REASONING_BASE_URL") or None,
            speech_model=os.getenv("SPEECH_MODEL") or None,
            speech_voice=_str_from_env("SPEECH_VOICE", "alloy"),
            speech_api_key=os.getenv("SPEECH_API_KEY") or os.getenv("REASONING_API_KEY") or None,
            log_dir=Path(_str_from_env("LOG_DIR", "logs")),
            log_level=_str_from_env("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached process settings."""

    return Settings.from_env()


__all__ = ["Settings", "get_settings"]
