"""Split extracted text into selectable chapters."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from docquiz import config

from .models import Chapter, ChapterExtraction
from .normalization import collapse_whitespace
from .validation import is_likely_image_based

LOGGER = logging.getLogger(__name__)

_TITLE_MAX_CHARS = 120


@dataclass(frozen=True, slots=True)
class HeadingFamily:
    name: str
    pattern: Pattern[str]


HEADING_FAMILIES: Tuple[HeadingFamily, ...] = (
    HeadingFamily(
        "chapter",
        re.compile(r"^[ \t]*(?:chapter|ch\.)[ \t]*(?:\d+|[ivxlc]+)\b[^\n]*$", re.IGNORECASE | re.MULTILINE),
    ),
    HeadingFamily(
        "unit",
        re.compile(r"^[ \t]*(?:unit|part)[ \t]+(?:\d+|[ivxlc]+)\b[^\n]*$", re.IGNORECASE | re.MULTILINE),
    ),
    HeadingFamily(
        "section",
        re.compile(r"^[ \t]*(?:section|sec\.)[ \t]*\d+(?:\.\d+)*\b[^\n]*$", re.IGNORECASE | re.MULTILINE),
    ),
    HeadingFamily(
        "numbered",
        re.compile(r"^[ \t]*\d+\.\d+(?:\.\d+)*[ \t]+[A-Z][^\n]*$", re.MULTILINE),
    ),
)


class ChapterSegmenter:
    """Find chapter-like headings, falling back to an even split of the text."""

    def __init__(self, families: Sequence[HeadingFamily] = HEADING_FAMILIES) -> None:
        self.families = tuple(families)

    def segment(self, text: str) -> ChapterExtraction:
        if is_likely_image_based(text):
            LOGGER.info("Text looks image-based; splitting into equal parts")
            return ChapterExtraction(chapters=self.quarter(text), text=text, fallback=True)

        for family in self.families:
            sections = list(self._sections(text, family))
            if sections:
                LOGGER.info("Found %s chapters using %s headings", len(sections), family.name)
                chapters = [
                    Chapter(index=index, title=title, content=content)
                    for index, (title, content) in enumerate(sections)
                ]
                return ChapterExtraction(chapters=chapters, text=text)

        LOGGER.info("No chapter headings found; splitting into equal parts")
        return ChapterExtraction(chapters=self.quarter(text), text=text, fallback=True)

    @staticmethod
    def _sections(text: str, family: HeadingFamily) -> Iterable[Tuple[str, str]]:
        matches = list(family.pattern.finditer(text))
        seen = set()
        for position, match in enumerate(matches):
            end = matches[position + 1].start() if position + 1 < len(matches) else len(text)
            content = text[match.start() : end].strip()
            if len(content) <= config.MIN_CHAPTER_CHARS:
                continue
            key = collapse_whitespace(content).lower()
            if key in seen:
                continue
            seen.add(key)
            yield collapse_whitespace(match.group(0))[:_TITLE_MAX_CHARS], content

    @staticmethod
    def quarter(text: str) -> List[Chapter]:
        """Cut ``text`` into contiguous, non-overlapping parts covering all of it."""

        if len(text) < config.QUARTER_MIN_TEXT_LENGTH:
            return [Chapter(index=0, title="Document Content", content=text)]

        size = math.ceil(len(text) / config.QUARTER_COUNT)
        chapters = []
        for index in range(config.QUARTER_COUNT):
            part = text[index * size : (index + 1) * size]
            if part:
                chapters.append(Chapter(index=len(chapters), title=f"Part {index + 1}", content=part))
        return chapters


def segment_chapters(text: str) -> ChapterExtraction:
    return ChapterSegmenter().segment(text)


def select_chapters(chapters: Sequence[Chapter], indexes: Optional[Iterable[int]], full_text: str) -> str:
    """Join the chosen chapters; fall back to ``full_text`` when the selection is too thin."""

    if indexes is None:
        return full_text
    by_index = {chapter.index: chapter for chapter in chapters}
    chosen: List[str] = []
    for index in indexes:
        chapter = by_index.get(index)
        if chapter is None:
            LOGGER.warning("Ignoring unknown chapter index %s", index)
            continue
        chosen.append(chapter.content.strip())
    selected = "\n\n".join(part for part in chosen if part)
    if len(selected) < config.MIN_SELECTED_CHAPTER_CHARS:
        LOGGER.info("Chapter selection too short (%s chars); using full text", len(selected))
        return full_text
    return selected


__all__ = ["ChapterSegmenter", "HEADING_FAMILIES", "HeadingFamily", "segment_chapters", "select_chapters"]
