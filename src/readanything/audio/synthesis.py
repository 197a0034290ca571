"""Cloud speech synthesis returning raw 16-bit PCM."""
from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx

from readanything.config import Settings, get_settings
from readanything.telemetry import traced_duration

LOGGER = logging.getLogger(__name__)

SPEECH_PATH = "v1/audio/speech"


class HttpSpeechSynthesizer:
    """Text-to-speech over the OpenAI-compatible ``audio/speech`` endpoint.

    The endpoint is asked for ``pcm`` output (mono 16-bit little-endian at
    the service sample rate). Any failure yields ``None`` so callers fall
    back to platform speech.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        voice: str = "alloy",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.voice = voice
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def synthesize(self, text: str) -> Optional[str]:
        if not text.strip():
            return None
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"model": self.model, "voice": self.voice, "input": text, "response_format": "pcm"}
        try:
            with traced_duration("audio.synthesis.request", logger=LOGGER, model=self.model, chars=len(text)):
                if self._client is not None:
                    response = self._client.post(SPEECH_PATH, json=payload, headers=headers)
                else:
                    with httpx.Client(base_url=self.base_url, timeout=self.timeout) as client:
                        response = client.post(SPEECH_PATH, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as error:
            LOGGER.warning("Speech synthesis failed: %s", error)
            return None
        if not response.content:
            LOGGER.info("Speech synthesis returned no audio")
            return None
        return base64.b64encode(response.content).decode("ascii")


def get_speech_synthesizer(settings: Optional[Settings] = None) -> Optional[HttpSpeechSynthesizer]:
    """Build the synthesizer when ``SPEECH_MODEL`` and a base URL are configured."""

    settings = settings or get_settings()
    if not settings.speech_base_url or not settings.speech_model:
        return None
    return HttpSpeechSynthesizer(
        settings.speech_base_url,
        settings.speech_model,
        voice=settings.speech_voice,
        api_key=settings.speech_api_key,
        timeout=settings.reasoning_timeout,
    )


__all__ = ["HttpSpeechSynthesizer", "SPEECH_PATH", "get_speech_synthesizer"]
