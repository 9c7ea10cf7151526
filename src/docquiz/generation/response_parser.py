"""Parse model replies into validated questions and apply the quality gate."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Sequence

from docquiz import config
from docquiz.errors import InvalidContent, QualityRejected, RejectionReason

from .models import Question

LOGGER = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
_LETTER_RE = re.compile(r"^(?:option\s+)?([A-D])[.):]?$", re.IGNORECASE)
_QUALITY_METADATA_RE = re.compile(
    r"\b(?:pdf|creator|producer|adobe|creation date|software|version|metadata|document properties)\b",
    re.IGNORECASE,
)
_CORRECT_KEYS = ("correct", "correctAnswer", "answer")


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw or "").strip()


def _json_span(text: str) -> Optional[str]:
    starts = [position for position in (text.find("["), text.find("{")) if position != -1]
    end = max(text.rfind("]"), text.rfind("}"))
    if not starts or end == -1:
        return None
    start = min(starts)
    if end < start:
        return None
    return text[start : end + 1]


def _entries(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if isinstance(payload.get("questions"), list):
            return payload["questions"]
        if "question" in payload:
            return [payload]
    return []


def _resolve_correct(value: Any, options: Sequence[str]) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    answer = value.strip()
    if answer in options:
        return answer
    for option in options:
        if option.casefold() == answer.casefold():
            return option
    letter = _LETTER_RE.match(answer)
    if letter:
        return options["ABCD".index(letter.group(1).upper())]
    return None


def parse_entry(entry: Any) -> Optional[Question]:
    """Return a :class:`Question` for a well-formed entry, ``None`` otherwise."""

    if not isinstance(entry, dict):
        return None
    question = entry.get("question")
    if not isinstance(question, str) or not question.strip():
        return None

    options = entry.get("options")
    if not isinstance(options, list) or len(options) != 4:
        return None
    if not all(isinstance(option, str) and option.strip() for option in options):
        return None
    options = [option.strip() for option in options]
    if len({option.casefold() for option in options}) != 4:
        return None

    raw_correct = next((entry[key] for key in _CORRECT_KEYS if key in entry), None)
    correct = _resolve_correct(raw_correct, options)
    if correct is None:
        return None
    return Question.create(question.strip(), options, correct)


def is_quality_question(question: Question) -> bool:
    length = len(question.question)
    if not config.QUESTION_MIN_CHARS < length < config.QUESTION_MAX_CHARS:
        return False
    combined = " ".join((question.question, *question.options))
    return _QUALITY_METADATA_RE.search(combined) is None


def check_quality(questions: Sequence[Question]) -> None:
    """Raise :class:`QualityRejected` when too few questions look like real content."""

    if not questions:
        return
    good = sum(1 for question in questions if is_quality_question(question))
    share = good / len(questions)
    if share < config.QUALITY_MIN_GOOD_SHARE:
        raise QualityRejected(f"only {good} of {len(questions)} questions passed the quality gate")


def parse_response(raw: str) -> List[Question]:
    """Turn a raw model reply into questions.

    Raises :class:`InvalidContent` when the model answered with the
    ``INVALID_CONTENT`` sentinel and :class:`QualityRejected` when the batch is
    dominated by metadata-themed or malformed questions. Unparseable replies
    yield an empty list.
    """

    cleaned = strip_code_fences(raw)
    sentinel = config.INVALID_CONTENT_SENTINEL
    span = _json_span(cleaned)
    if cleaned.strip("\"' .") == sentinel or (sentinel in cleaned and span is None):
        raise InvalidContent(RejectionReason.MODEL_REJECTED)
    if span is None:
        LOGGER.warning("Model reply contained no JSON payload (%s chars)", len(cleaned))
        return []

    try:
        payload = json.loads(span)
    except json.JSONDecodeError as error:
        LOGGER.warning("Model reply is not valid JSON: %s", error)
        return []

    entries = _entries(payload)
    questions = _collect(entries)
    dropped = len(entries) - len(questions)
    if dropped:
        LOGGER.info("Dropped %s malformed question entries", dropped)
    check_quality(questions)
    return questions


def _collect(entries: Iterable[Any]) -> List[Question]:
    questions = []
    for entry in entries:
        question = parse_entry(entry)
        if question is not None:
            questions.append(question)
    return questions


__all__ = [
    "check_quality",
    "is_quality_question",
    "parse_entry",
    "parse_response",
    "strip_code_fences",
]
