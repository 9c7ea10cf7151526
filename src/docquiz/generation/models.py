"""Data models used by quiz generation."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

from docquiz.ingest.models import TextChunk

QUESTION_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "questions.docquiz")


class Difficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: "str | Difficulty | None") -> "Difficulty":
        """Return the matching difficulty; ``None`` and blanks mean ``NORMAL``."""

        if isinstance(value, Difficulty):
            return value
        normalized = (value or "").strip().lower()
        if not normalized:
            return cls.NORMAL
        try:
            return cls(normalized)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"difficulty must be one of: {allowed}") from exc


class GenerationState(str, Enum):
    PENDING = "pending"
    PER_CHUNK_LOOP = "per_chunk_loop"
    SUCCESS = "success"
    PARTIAL = "partial"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class Question:
    """A multiple-choice question with exactly four options."""

    id: str
    question: str
    options: Tuple[str, ...]
    correct_answer: str

    @classmethod
    def create(cls, question: str, options: Sequence[str], correct_answer: str) -> "Question":
        options = tuple(options)
        key = "\x1f".join((question, *options, correct_answer))
        return cls(
            id=str(uuid.uuid5(QUESTION_NAMESPACE, key)),
            question=question,
            options=options,
            correct_answer=correct_answer,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
        }


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    chunk: TextChunk
    questions_wanted: int
    difficulty: Difficulty


@dataclass(slots=True)
class QuizGenerationResult:
    questions: List[Question]
    requested: int
    state: GenerationState
    chunk_count: int = 0
    failed_chunks: int = 0
    quality_flags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def achieved(self) -> int:
        return len(self.questions)


__all__ = [
    "Difficulty",
    "GenerationRequest",
    "GenerationState",
    "Question",
    "QuizGenerationResult",
]
