"""Typed failures raised by the extraction and generation pipeline."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class RejectionReason(str, Enum):
    """Why a piece of text was judged unusable for quiz generation."""

    TOO_SHORT = "too_short"
    METADATA_HEAVY = "metadata_heavy"
    IMAGE_BASED = "image_based"
    GIBBERISH = "gibberish"
    INSUFFICIENT_CONTENT = "insufficient_content"
    MODEL_REJECTED = "model_rejected"


_REJECTION_MESSAGES = {
    RejectionReason.TOO_SHORT: "Extracted text is too short for quiz generation.",
    RejectionReason.METADATA_HEAVY: (
        "The document contains mostly file metadata instead of educational content."
    ),
    RejectionReason.IMAGE_BASED: (
        "This document appears to be image-based or unreadable. "
        "Please use a document with selectable text or a clearer image."
    ),
    RejectionReason.GIBBERISH: "The extracted text appears to be corrupted or unreadable.",
    RejectionReason.INSUFFICIENT_CONTENT: "Insufficient educational content for quiz generation.",
    RejectionReason.MODEL_REJECTED: "The AI service judged the content unsuitable for quiz generation.",
}


class QuizPipelineError(Exception):
    """Base class for document-level failures surfaced to callers."""

    code = "pipeline_error"
    default_message = "Quiz generation failed."

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_message
        super().__init__(self.detail)

    @property
    def user_message(self) -> str:
        return self.default_message


class ParseFailure(QuizPipelineError):
    """No extraction strategy produced enough readable text."""

    code = "parse_failure"
    default_message = (
        "Could not extract text from this document. "
        "Please ensure it contains readable text or try a different file format."
    )


class InvalidContent(QuizPipelineError):
    """Extracted text is empty, gibberish, metadata-heavy or image-based."""

    code = "invalid_content"

    def __init__(self, reason: RejectionReason, detail: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(detail or _REJECTION_MESSAGES[reason])

    @property
    def user_message(self) -> str:
        return _REJECTION_MESSAGES[self.reason]


class QualityRejected(QuizPipelineError):
    """A batch of generated questions looks like metadata or malformed output."""

    code = "quality_rejected"
    default_message = (
        "Generated questions appear to be based on file metadata or poor content. "
        "Please try a different document."
    )


class GenerationFailure(QuizPipelineError):
    """The language model produced no usable questions."""

    code = "generation_failure"
    default_message = "AI service temporarily unavailable. Please try again in a few moments."


__all__ = [
    "GenerationFailure",
    "InvalidContent",
    "ParseFailure",
    "QualityRejected",
    "QuizPipelineError",
    "RejectionReason",
]
