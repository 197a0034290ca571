"""Document ingestion: format classification, extraction and decoder capabilities.

The pipeline lives in :mod:`readanything.ingest.pipeline` and is imported
from there directly.
"""

from .format_detection import FormatClassifier, FormatKind
from .models import ExtractionResult, SourceFile, VisualPayload

__all__ = [
    "ExtractionResult",
    "FormatClassifier",
    "FormatKind",
    "SourceFile",
    "VisualPayload",
]
