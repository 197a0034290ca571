"""Single-slot playback of synthesized speech with a platform speech fallback."""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Protocol

import numpy as np

from readanything.config import get_settings
from readanything.errors import AudioDecodeError
from readanything.telemetry import emit_playback_event

from .decode import decode_base64_pcm

LOGGER = logging.getLogger(__name__)

Callback = Callable[[], None]


class PlaybackState(str, Enum):
    IDLE = "idle"
    SYNTHESIZING = "synthesizing"
    PLAYING = "playing"


class PlaybackHandle(Protocol):
    def stop(self) -> None:
        ...


class PcmOutput(Protocol):
    """Speaker output for decoded float samples."""

    @property
    def available(self) -> bool:
        ...

    def start(self, samples: np.ndarray, sample_rate: int, on_finished: Callback) -> PlaybackHandle:
        ...


class SpeechFallback(Protocol):
    """Platform text-to-speech used when no synthesized audio can be played."""

    @property
    def available(self) -> bool:
        ...

    def speak(self, text: str, on_finished: Callback) -> PlaybackHandle:
        ...


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str) -> Optional[str]:
        """Return base64 encoded 16-bit PCM, or ``None`` when nothing was produced."""
        ...


class AudioPlaybackPipeline:
    """Owns the one playback slot.

    ``play`` always stops whatever is active first. Every playback gets a
    generation number; completion callbacks from superseded or stopped
    generations are dropped, so ``on_ended`` fires at most once and only
    for the current playback.
    """

    def __init__(
        self,
        output: Optional[PcmOutput] = None,
        speech: Optional[SpeechFallback] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        *,
        sample_rate: Optional[int] = None,
    ) -> None:
        self.output = output
        self.speech = speech
        self.synthesizer = synthesizer
        self.sample_rate = sample_rate or get_settings().audio_sample_rate
        self._lock = threading.RLock()
        self._generation = 0
        self._finished_generation = 0
        self._handle: Optional[PlaybackHandle] = None
        self._state = PlaybackState.IDLE

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        return self.state is not PlaybackState.IDLE

    def play(
        self,
        text: Optional[str] = None,
        audio_base64: Optional[str] = None,
        on_ended: Optional[Callback] = None,
    ) -> None:
        with self._lock:
            self._generation += 1
            self._release_locked()
            generation = self._generation
            finished = self._completion(generation, on_ended)
            self._state = PlaybackState.PLAYING
            started = self._start_pcm_locked(generation, audio_base64, finished)
            if not started:
                started = self._start_speech_locked(generation, text, finished)
            if not started:
                emit_playback_event("audio.playback.skipped", source="none")
        if not started:
            finished()

    def read_aloud(self, text: str, on_ended: Optional[Callback] = None) -> None:
        """Synthesize ``text`` and play it, falling back to platform speech."""

        with self._lock:
            self._generation += 1
            self._release_locked()
            generation = self._generation
            self._state = PlaybackState.SYNTHESIZING

        audio_base64: Optional[str] = None
        if self.synthesizer is not None:
            try:
                audio_base64 = self.synthesizer.synthesize(text)
            except Exception as error:
                LOGGER.warning("Speech synthesis failed; using platform speech (%s)", error)
                audio_base64 = None

        with self._lock:
            if generation != self._generation:
                LOGGER.debug("Synthesis result discarded; playback was stopped or superseded")
                return
        self.play(text=text, audio_base64=audio_base64, on_ended=on_ended)

    def stop(self) -> None:
        """Stop any playback. Safe to call when idle; never fires ``on_ended``."""

        with self._lock:
            self._generation += 1
            self._release_locked()

    def _start_pcm_locked(self, generation: int, audio_base64: Optional[str], finished: Callback) -> bool:
        if not audio_base64 or self.output is None or not self.output.available:
            return False
        try:
            samples = decode_base64_pcm(audio_base64)
        except AudioDecodeError as error:
            LOGGER.info("Synthesized audio could not be decoded; falling back (%s)", error)
            return False
        try:
            handle = self.output.start(samples, self.sample_rate, finished)
        except Exception as error:
            LOGGER.warning("PCM output failed to start; falling back (%s)", error)
            return False
        self._adopt_locked(generation, handle)
        emit_playback_event("audio.playback.start", source="pcm", samples=int(samples.size))
        return True

    def _start_speech_locked(self, generation: int, text: Optional[str], finished: Callback) -> bool:
        if not text or self.speech is None or not self.speech.available:
            return False
        try:
            handle = self.speech.speak(text, finished)
        except Exception as error:
            LOGGER.warning("Platform speech failed (%s)", error)
            return False
        self._adopt_locked(generation, handle)
        emit_playback_event("audio.playback.start", source="speech")
        return True

    def _adopt_locked(self, generation: int, handle: PlaybackHandle) -> None:
        # The output may already have reported completion synchronously.
        if generation == self._generation and self._finished_generation != generation:
            self._handle = handle

    def _completion(self, generation: int, on_ended: Optional[Callback]) -> Callback:
        def finished() -> None:
            with self._lock:
                if generation != self._generation or self._finished_generation == generation:
                    return
                self._finished_generation = generation
                self._handle = None
                self._state = PlaybackState.IDLE
            emit_playback_event("audio.playback.complete", source="playback")
            if on_ended is not None:
                on_ended()

        return finished

    def _release_locked(self) -> None:
        handle, self._handle = self._handle, None
        self._state = PlaybackState.IDLE
        if handle is None:
            return
        try:
            handle.stop()
        except Exception as error:
            LOGGER.debug("Ignoring error while stopping playback: %s", error)


__all__ = [
    "AudioPlaybackPipeline",
    "PcmOutput",
    "PlaybackHandle",
    "PlaybackState",
    "SpeechFallback",
    "SpeechSynthesizer",
]
