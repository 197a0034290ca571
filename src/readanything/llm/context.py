"""Prompt context assembled from a session's documents."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from readanything.documents.model import DocumentRecord
from readanything.ingest.format_detection import FormatKind
from readanything.ingest.models import VisualPayload

CITATION_INSTRUCTION = """
6. **CITATIONS**:
   - Always specify which file you are referring to if there are multiple.
   - Use the format "Filename" [Page X], "Filename" [Slide X] or "Filename" [Sheet X].
   - Use double quotes (") for file names instead of asterisks (*) or bold symbols (**).
   - Keep it concise.
"""

SYSTEM_INSTRUCTION_TEMPLATE = """You are a helpful teaching assistant.
You have access to MULTIPLE DOCUMENTS, including images.

VISUAL REASONING:
- For images, analyze colors, objects, layout, and spatial relationships.
- If a user asks about an image, the pixels have been provided to you.
- Combine visual details with any extracted text.

GUIDELINES:
1. Answer strictly based on the provided content.
2. If information exists in different files, synthesize the answer.
3. If the answer is missing, say so.
{citation_instruction}
TEXT CONTEXT:
{context}
"""

LOCAL_SYSTEM_PROMPT = (
    "You are a helpful teaching assistant. Answer based on the provided documents. "
    + CITATION_INSTRUCTION
)


@dataclass(slots=True, frozen=True)
class HistoryTurn:
    role: str
    content: str


@dataclass(slots=True, frozen=True)
class ImageInput:
    name: str
    payload: VisualPayload


@dataclass(slots=True)
class ReasoningRequest:
    """Everything an engine needs to answer one question."""

    question: str
    documents: Sequence[DocumentRecord]
    history: list[HistoryTurn] = field(default_factory=list)
    session_id: Optional[str] = None


@dataclass(slots=True, frozen=True)
class PreparedContext:
    text: str
    truncated: bool
    images: list[ImageInput]


def truncate(text: str, budget: int) -> tuple[str, bool]:
    """Keep the first ``budget`` characters."""

    if budget < 0 or len(text) <= budget:
        return text, False
    return text[:budget], True


def wrap_document(document: DocumentRecord) -> str:
    return (
        f"--- START OF FILE: {document.name} ({document.format_kind.value}) ---\n"
        f"{document.normalized_text}\n"
        f"--- END OF FILE: {document.name} ---"
    )


def collect_images(documents: Sequence[DocumentRecord]) -> list[ImageInput]:
    return [
        ImageInput(name=document.name, payload=document.visual_payload)
        for document in documents
        if document.format_kind is FormatKind.IMAGE and document.visual_payload is not None
    ]


def build_context(documents: Sequence[DocumentRecord], budget: int) -> PreparedContext:
    """Text context for multimodal engines.

    Image documents are sent as pixels, so their OCR text is left out of
    the text context.
    """

    joined = "\n\n".join(
        wrap_document(document) for document in documents if document.format_kind is not FormatKind.IMAGE
    )
    text, truncated = truncate(joined, budget)
    return PreparedContext(text=text, truncated=truncated, images=collect_images(documents))


def build_text_only_context(documents: Sequence[DocumentRecord], budget: int) -> PreparedContext:
    """Context for engines that cannot see images; OCR text stands in for the pixels."""

    joined = "\n\n".join(f"[FILE: {document.name}]\n{document.normalized_text}" for document in documents)
    text, truncated = truncate(joined, budget)
    return PreparedContext(text=text, truncated=truncated, images=[])


def system_instruction(context: str) -> str:
    return SYSTEM_INSTRUCTION_TEMPLATE.format(citation_instruction=CITATION_INSTRUCTION, context=context)


def local_prompt(context: str, history: Sequence[HistoryTurn], question: str) -> str:
    transcript = "\n".join(f"{turn.role}: {turn.content}" for turn in history)
    return f"DOCUMENTS:\n{context}\nHISTORY:\n{transcript}\nUser: {question}\nAssistant:"


__all__ = [
    "CITATION_INSTRUCTION",
    "HistoryTurn",
    "ImageInput",
    "LOCAL_SYSTEM_PROMPT",
    "PreparedContext",
    "ReasoningRequest",
    "build_context",
    "build_text_only_context",
    "collect_images",
    "local_prompt",
    "system_instruction",
    "truncate",
    "wrap_document",
]
