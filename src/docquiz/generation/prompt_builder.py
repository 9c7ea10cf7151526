"""Utilities for constructing quiz generation prompts."""
from __future__ import annotations

from pathlib import Path
from typing import List

from docquiz import config

from .models import Difficulty

_PROMPT_DIR = Path(__file__).resolve().parents[1] / "prompts"
_QUIZ_PROMPT_PATH = _PROMPT_DIR / "quiz_generation.md"

DIFFICULTY_NOTES = {
    Difficulty.EASY: "Keep questions simple and clear, testing basic recall of facts stated in the text.",
    Difficulty.NORMAL: (
        "Mix straightforward recall questions with a few that check light comprehension of the main ideas."
    ),
    Difficulty.MEDIUM: "Make questions moderately challenging, testing comprehension rather than recall.",
    Difficulty.HARD: "Make questions analytical and complex, testing deep understanding and reasoning.",
}

_SAMPLE_METADATA_TERMS = ("producer", "creator", "creationdate", "pdf", "version", "adobe", "identity")


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


_QUIZ_TEMPLATE = _load_template(_QUIZ_PROMPT_PATH)


def _is_metadata_paragraph(paragraph: str) -> bool:
    lowered = paragraph.lower()
    return sum(1 for term in _SAMPLE_METADATA_TERMS if term in lowered) >= 2


def extract_content_sample(chunk: str, max_chars: int = config.PROMPT_SAMPLE_MAX_CHARS) -> str:
    """Keep the first substantial, non-metadata paragraphs of ``chunk``."""

    paragraphs: List[str] = []
    for paragraph in chunk.split("\n\n"):
        words = paragraph.split()
        if len(words) < 5 or len(set(words)) <= 3 or _is_metadata_paragraph(paragraph):
            continue
        paragraphs.append(paragraph.strip())
        if len(paragraphs) == config.PROMPT_SAMPLE_MAX_PARAGRAPHS:
            break

    sample = "\n\n".join(paragraphs)[:max_chars]
    if len(sample) > config.PROMPT_SAMPLE_MIN_CHARS:
        return sample
    return chunk[:max_chars]


def build_prompt(chunk: str, count: int, difficulty: Difficulty | str = Difficulty.NORMAL) -> str:
    """Compose the prompt asking for ``count`` questions about ``chunk``."""

    if chunk is None:
        raise ValueError("chunk must not be None")
    if count < 1:
        raise ValueError("count must be at least 1")

    level = Difficulty.parse(difficulty)
    return _QUIZ_TEMPLATE.format(
        count=count,
        difficulty=level.value,
        difficulty_note=DIFFICULTY_NOTES[level],
        content=extract_content_sample(chunk).strip(),
        sentinel=config.INVALID_CONTENT_SENTINEL,
    )


__all__ = ["DIFFICULTY_NOTES", "build_prompt", "extract_content_sample"]
