"""Heuristics deciding whether extracted text is usable educational content.

Every check here is a pure function of its input. :func:`assess_content`
runs the checks in order and reports the first rejection, and
:func:`validate_content` turns a rejection into :class:`InvalidContent`.
Thresholds live in :mod:`docquiz.config`.
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from docquiz import config
from docquiz.errors import InvalidContent, RejectionReason

METADATA_KEYWORDS: Tuple[str, ...] = (
    "producer",
    "creator",
    "creationdate",
    "moddate",
    "pdf",
    "adobe",
    "version",
    "trapped",
    "keywords",
    "subject",
    "title",
    "author",
    "page",
    "identity",
    "ilovepdf",
)

_STRUCTURAL_MARKERS = (
    re.compile(r"%PDF-\d\.\d"),
    re.compile(r"/Producer"),
    re.compile(r"/Creator"),
    re.compile(r"/CreationDate"),
    re.compile(r"\bobj\b[\d\s]+\bobj\b"),
    re.compile(r"\bendstream\b"),
    re.compile(r"/Width\s+\d+"),
    re.compile(r"/Height\s+\d+"),
    re.compile(r"/Filter\s*/DCTDecode"),
    re.compile(r"/ColorSpace\s*/DeviceRGB"),
)

_METADATA_LINE_PATTERNS = (
    re.compile(r"^(Producer|Creator|CreationDate|ModDate|Keywords|Subject|Title|Author)\s*:", re.I),
    re.compile(r"^Page \d+ of \d+$", re.I),
    re.compile(r"^\d+\s+\d+\s+(obj|R)$"),
    re.compile(r"^<<.*>>$"),
    re.compile(r"adobe", re.I),
    re.compile(r"identity", re.I),
    re.compile(r"www\.ilovepdf\.com", re.I),
    re.compile(r"^\d{4}-\d{2}-\d{2}"),
)

_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[+-]\d{2}'?\d{2}'?|Z)?")
_PDF_DATE_RE = re.compile(r"D:\d{8,14}(?:[+-]\d{2}'\d{2}'|Z)?")
_URL_RE = re.compile(r"(?:https?://|www\.)\S+")
_ARTEFACT_WORDS_RE = re.compile(r"\b(?:Adobe|Identity|PDF|CRH|cJ|rJ9|USER)\b", re.I)
_HORIZONTAL_SPACE_RE = re.compile(r"[ \t]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_BRACKET_RUN_RE = re.compile(r"[{}<>\[\]\\/]{3,}")
_REPEATED_CHAR_RE = re.compile(r"(\S)\1{4,}")


class ValidationMode(str, Enum):
    """Which checks apply: whole documents get all of them, chunks skip the floors."""

    DOCUMENT = "document"
    CHUNK = "chunk"


@dataclass(frozen=True)
class ContentAssessment:
    text: str
    metadata_ratio: float
    structural_markers: int
    readable_sentences: int
    flags: Tuple[str, ...] = field(default_factory=tuple)
    rejection: Optional[RejectionReason] = None

    @property
    def usable(self) -> bool:
        return self.rejection is None


def metadata_ratio(text: str) -> float:
    """Share of whitespace tokens containing a metadata keyword."""

    words = text.lower().split()
    if not words:
        return 0.0
    hits = sum(1 for word in words if any(keyword in word for keyword in METADATA_KEYWORDS))
    return hits / len(words)


def is_metadata_line(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and any(pattern.search(stripped) for pattern in _METADATA_LINE_PATTERNS)


def aggressive_clean(text: str) -> str:
    """Drop metadata lines, timestamps, URLs and PDF artefact words."""

    kept = [line for line in text.split("\n") if not is_metadata_line(line)]
    cleaned = "\n".join(kept)
    cleaned = _TIMESTAMP_RE.sub(" ", cleaned)
    cleaned = _PDF_DATE_RE.sub(" ", cleaned)
    cleaned = _URL_RE.sub(" ", cleaned)
    cleaned = _ARTEFACT_WORDS_RE.sub(" ", cleaned)
    cleaned = _HORIZONTAL_SPACE_RE.sub(" ", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n"))
    return _BLANK_LINES_RE.sub("\n\n", cleaned).strip()


def special_char_ratio(text: str) -> float:
    if not text:
        return 0.0
    special = sum(1 for char in text if not (char.isalnum() or char.isspace()))
    return special / len(text)


def _has_non_printable_run(text: str, run: int = 3) -> bool:
    count = 0
    for char in text:
        if char.isspace() or unicodedata.category(char)[0] != "C":
            count = 0
            continue
        count += 1
        if count >= run:
            return True
    return False


def is_gibberish(fragment: str) -> bool:
    """Return ``True`` for fragments that look like binary or layout debris."""

    stripped = fragment.strip()
    if not stripped:
        return False
    if special_char_ratio(stripped) > config.GIBBERISH_SPECIAL_CHAR_RATIO:
        return True
    if _BRACKET_RUN_RE.search(stripped) or _REPEATED_CHAR_RE.search(stripped):
        return True
    return _has_non_printable_run(stripped)


def readable_ratio(text: str) -> float:
    """Share of characters that are letters, digits, whitespace or common punctuation."""

    if not text:
        return 0.0
    readable = sum(1 for char in text if char.isalnum() or char.isspace() or char in ".,!?;:'\"-()%")
    return readable / len(text)


def sentence_fragments(text: str) -> list[str]:
    return [fragment.strip() for fragment in _SENTENCE_SPLIT_RE.split(text) if fragment.strip()]


def count_readable_sentences(text: str) -> int:
    return sum(
        1
        for fragment in sentence_fragments(text)
        if len(fragment) > config.READABLE_SENTENCE_MIN_CHARS and not is_gibberish(fragment)
    )


def count_structural_markers(text: str) -> int:
    return sum(1 for pattern in _STRUCTURAL_MARKERS if pattern.search(text))


def is_likely_image_based(text: str) -> bool:
    """PDF object debris with almost no prose means the text layer was empty."""

    return (
        count_structural_markers(text) >= config.IMAGE_BASED_MIN_MARKERS
        and count_readable_sentences(text) < config.IMAGE_BASED_MIN_SENTENCES
    )


def is_gibberish_document(text: str) -> bool:
    if special_char_ratio(text) > config.GIBBERISH_SPECIAL_CHAR_RATIO:
        return True
    fragments = sentence_fragments(text)
    if not fragments:
        return False
    gibberish = sum(1 for fragment in fragments if is_gibberish(fragment))
    return gibberish / len(fragments) > config.GIBBERISH_SENTENCE_SHARE


def has_educational_substance(text: str) -> bool:
    if len(text) < config.MIN_TEXT_LENGTH:
        return False
    words = [word for word in text.split() if len(word) > config.SUBSTANTIAL_WORD_MIN_CHARS]
    sentences = [
        fragment for fragment in sentence_fragments(text) if len(fragment) > config.REAL_SENTENCE_MIN_CHARS
    ]
    return (
        len(words) >= config.MIN_SUBSTANTIAL_WORDS
        or len(set(words)) >= config.MIN_UNIQUE_SUBSTANTIAL_WORDS
        or len(sentences) >= config.MIN_REAL_SENTENCES
    )


def is_adequate_extraction(text: str, min_chars: int = config.MIN_TEXT_LENGTH) -> bool:
    """Local check used by extraction cascades before accepting a strategy result."""

    stripped = text.strip()
    if len(stripped) < min_chars:
        return False
    return (
        readable_ratio(stripped) > config.ADEQUATE_READABLE_RATIO
        and metadata_ratio(stripped) < config.ADEQUATE_MAX_METADATA_RATIO
    )


def count_readable_chars(text: str) -> int:
    return sum(1 for char in text if char.isalnum() or char in ".,!?;:'\"-()%" or char == " ")


def assess_content(text: str, mode: ValidationMode = ValidationMode.DOCUMENT) -> ContentAssessment:
    """Run the content checks in order and report the first rejection."""

    document_mode = mode is ValidationMode.DOCUMENT
    cleaned = (text or "").strip()
    flags: list[str] = []

    def _result(rejection: Optional[RejectionReason], ratio: float, markers: int, sentences: int) -> ContentAssessment:
        return ContentAssessment(
            text=cleaned,
            metadata_ratio=ratio,
            structural_markers=markers,
            readable_sentences=sentences,
            flags=tuple(flags),
            rejection=rejection,
        )

    if document_mode and len(cleaned) < config.MIN_TEXT_LENGTH:
        return _result(RejectionReason.TOO_SHORT, 0.0, 0, 0)

    ratio = metadata_ratio(cleaned)
    if ratio > config.METADATA_CLEANING_RATIO:
        flags.append("metadata_cleaned")
        cleaned = aggressive_clean(cleaned)
        ratio = metadata_ratio(cleaned)
        if ratio > config.METADATA_REJECT_RATIO:
            return _result(RejectionReason.METADATA_HEAVY, ratio, 0, 0)
        if document_mode and len(cleaned) < config.MIN_TEXT_LENGTH:
            return _result(RejectionReason.TOO_SHORT, ratio, 0, 0)

    markers = count_structural_markers(cleaned)
    sentences = count_readable_sentences(cleaned)
    if markers >= config.IMAGE_BASED_MIN_MARKERS and sentences < config.IMAGE_BASED_MIN_SENTENCES:
        return _result(RejectionReason.IMAGE_BASED, ratio, markers, sentences)

    if is_gibberish_document(cleaned):
        return _result(RejectionReason.GIBBERISH, ratio, markers, sentences)

    if document_mode and not has_educational_substance(cleaned):
        return _result(RejectionReason.INSUFFICIENT_CONTENT, ratio, markers, sentences)

    return _result(None, ratio, markers, sentences)


def validate_content(text: str, mode: ValidationMode = ValidationMode.DOCUMENT) -> ContentAssessment:
    """Return the passing assessment or raise :class:`InvalidContent`."""

    assessment = assess_content(text, mode)
    if assessment.rejection is not None:
        raise InvalidContent(assessment.rejection)
    return assessment


__all__ = [
    "ContentAssessment",
    "METADATA_KEYWORDS",
    "ValidationMode",
    "aggressive_clean",
    "assess_content",
    "count_readable_chars",
    "count_readable_sentences",
    "count_structural_markers",
    "has_educational_substance",
    "is_adequate_extraction",
    "is_gibberish",
    "is_likely_image_based",
    "is_metadata_line",
    "metadata_ratio",
    "readable_ratio",
    "validate_content",
]
