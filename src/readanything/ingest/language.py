"""Language metadata for extracted documents."""
from __future__ import annotations

import logging
import re
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect

LOGGER = logging.getLogger(__name__)
DetectorFactory.seed = 0

_SAMPLE_CHARS = 5000
# Unit headers are English regardless of the document language.
_UNIT_HEADER_RE = re.compile(r"^--- .* ---$", re.MULTILINE)


class LanguageDetector:
    """Detects the language of normalized text, ignoring its unit headers."""

    def detect(self, text: str) -> Optional[str]:
        cleaned = _UNIT_HEADER_RE.sub("", text).strip()[:_SAMPLE_CHARS]
        if not cleaned:
            return None
        try:
            return detect(cleaned)
        except LangDetectException:
            LOGGER.info("Unable to determine language for text of length %s", len(cleaned))
            return None
