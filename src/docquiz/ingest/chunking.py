"""Chunking utilities for breaking text into prompt-sized windows."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .models import TextChunk

_SENTENCE_END_RE = re.compile(r"[.!?][\"')\]]*\s")
LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ChunkingConfig:
    chunk_chars: int = 1500
    overlap_chars: int = 200


class TextChunker:
    """Split text into overlapping windows that end on natural boundaries.

    Every chunk is an exact slice ``text[char_start:char_end]`` and each chunk
    starts no later than the previous one ends, so the chunks cover the text
    with at most ``overlap_chars`` of overlap.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.chunk_chars <= 0:
            raise ValueError("chunk_chars must be positive")
        if not 0 <= self.config.overlap_chars < self.config.chunk_chars:
            raise ValueError("overlap_chars must be between 0 and chunk_chars")

    def chunk(self, text: str) -> List[TextChunk]:
        chunks = [
            TextChunk(content=text[start:end], ordinal=ordinal, char_start=start, char_end=end)
            for ordinal, (start, end) in enumerate(self._spans(text))
        ]
        LOGGER.debug("Split %s characters into %s chunks", len(text), len(chunks))
        return chunks

    def _spans(self, text: str) -> Iterator[tuple[int, int]]:
        text_length = len(text)
        start = 0
        while start < text_length:
            end = min(start + self.config.chunk_chars, text_length)
            if end < text_length:
                end = self._find_break(text, start, end)
            if text[start:end].strip():
                yield start, end
            if end >= text_length:
                break
            start = self._next_start(text, start, end)

    def _find_break(self, text: str, start: int, tentative_end: int) -> int:
        window = text[start:tentative_end]
        minimum = self.config.chunk_chars // 4

        for separator in ("\n\n", "\n"):
            position = window.rfind(separator)
            if position >= minimum:
                return start + position + len(separator)

        sentence_ends = [match.end() for match in _SENTENCE_END_RE.finditer(window)]
        if sentence_ends and sentence_ends[-1] >= minimum:
            return start + sentence_ends[-1]

        position = window.rfind(" ")
        if position >= minimum:
            return start + position + 1
        return tentative_end

    def _next_start(self, text: str, start: int, end: int) -> int:
        next_start = max(end - self.config.overlap_chars, 0)
        while 0 < next_start < end and not text[next_start - 1].isspace():
            next_start += 1
        if next_start <= start:
            return end
        return next_start


def questions_per_chunk(total_questions: int, chunk_count: int) -> int:
    """Questions to request from each chunk so that all chunks together cover the total."""

    if chunk_count <= 0:
        return max(1, total_questions)
    return max(1, math.ceil(total_questions / chunk_count))


__all__ = ["ChunkingConfig", "TextChunker", "questions_per_chunk"]
