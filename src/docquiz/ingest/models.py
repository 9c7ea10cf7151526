"""Data models used by the extraction pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """Raw upload as received from the caller."""

    data: bytes
    filename: str
    mime_type: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ExtractedText:
    """Validated text recovered from a document."""

    content: str
    quality_flags: Tuple[str, ...] = ()
    format: Optional[str] = None
    strategy: Optional[str] = None
    language: Optional[str] = None

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class Chapter:
    """A named section of a document offered for chapter selection."""

    index: int
    title: str
    content: str


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A bounded window of text submitted to the model in one call."""

    content: str
    ordinal: int
    char_start: int
    char_end: int


@dataclass(slots=True)
class ChapterExtraction:
    """Chapters found in a document along with the text they were cut from."""

    chapters: list[Chapter]
    text: str
    fallback: bool = False
    quality_flags: Tuple[str, ...] = field(default_factory=tuple)
