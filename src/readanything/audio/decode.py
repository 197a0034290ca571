"""Decoding of synthesized speech payloads."""
from __future__ import annotations

import base64
import binascii

import numpy as np

from readanything.errors import AudioDecodeError

PCM16_SCALE = 32768.0
DEFAULT_SAMPLE_RATE = 24_000


def decode_pcm16(data: bytes) -> np.ndarray:
    """Decode mono 16-bit signed little-endian PCM into float32 samples in ``[-1.0, 1.0]``."""

    if len(data) % 2:
        raise AudioDecodeError(f"PCM payload has an odd length ({len(data)} bytes)")
    samples = np.frombuffer(data, dtype="<i2")
    return samples.astype(np.float32) / PCM16_SCALE


def decode_base64_pcm(payload: str) -> np.ndarray:
    """Decode a base64 string carrying 16-bit PCM."""

    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as error:
        raise AudioDecodeError(f"payload is not valid base64: {error}") from error
    return decode_pcm16(raw)


def duration_seconds(samples: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> float:
    return float(len(samples)) / float(sample_rate)


__all__ = ["DEFAULT_SAMPLE_RATE", "PCM16_SCALE", "decode_base64_pcm", "decode_pcm16", "duration_seconds"]
