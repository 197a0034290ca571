"""Decode, synthesize and play speech."""

from .decode import decode_base64_pcm, decode_pcm16
from .playback import AudioPlaybackPipeline, PlaybackState
from .synthesis import HttpSpeechSynthesizer, get_speech_synthesizer

__all__ = [
    "AudioPlaybackPipeline",
    "HttpSpeechSynthesizer",
    "PlaybackState",
    "decode_base64_pcm",
    "decode_pcm16",
    "get_speech_synthesizer",
]
