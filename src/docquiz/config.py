"""Runtime configuration and heuristic thresholds for the quiz pipeline."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

LOGGER = logging.getLogger(__name__)

# Extracted text shorter than this is never usable for generation.
MIN_TEXT_LENGTH = 100

# Adequacy check applied to each cascade strategy result.
ADEQUATE_READABLE_RATIO = 0.5
ADEQUATE_MAX_METADATA_RATIO = 0.6

# Metadata vocabulary ratios (share of whitespace tokens).
METADATA_CLEANING_RATIO = 0.3
METADATA_REJECT_RATIO = 0.2

# Image-based document heuristic.
IMAGE_BASED_MIN_MARKERS = 3
IMAGE_BASED_MIN_SENTENCES = 3
READABLE_SENTENCE_MIN_CHARS = 15

# Gibberish detection.
GIBBERISH_SPECIAL_CHAR_RATIO = 0.4
GIBBERISH_SENTENCE_SHARE = 0.5

# Educational substance floor.
SUBSTANTIAL_WORD_MIN_CHARS = 3
MIN_SUBSTANTIAL_WORDS = 50
MIN_UNIQUE_SUBSTANTIAL_WORDS = 20
MIN_REAL_SENTENCES = 2
REAL_SENTENCE_MIN_CHARS = 10

# OCR acceptance floor (tesseract mean word confidence, 0-100).
OCR_MIN_CONFIDENCE = 10.0
OCR_MIN_TEXT_LENGTH = 10

# Chapter segmentation.
MIN_CHAPTER_CHARS = 100
QUARTER_COUNT = 4
QUARTER_MIN_TEXT_LENGTH = QUARTER_COUNT * MIN_TEXT_LENGTH
MIN_SELECTED_CHAPTER_CHARS = 50

# Prompt content sample.
PROMPT_SAMPLE_MAX_CHARS = 2500
PROMPT_SAMPLE_MAX_PARAGRAPHS = 10
PROMPT_SAMPLE_MIN_CHARS = 100

# Quality gate over parsed LLM questions.
QUESTION_MIN_CHARS = 15
QUESTION_MAX_CHARS = 250
QUALITY_MIN_GOOD_SHARE = 0.4

INVALID_CONTENT_SENTINEL = "INVALID_CONTENT"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(frozen=True)
class Settings:
    llm_api_endpoint: Optional[str]
    llm_api_key: Optional[str]
    llm_model: str
    llm_temperature: float
    llm_max_tokens: int
    llm_timeout_seconds: float
    ocr_language: str
    ocr_dpi: int
    ocr_max_pages: int
    antiword_path: str
    chunk_chars: int
    overlap_chars: int
    max_consecutive_failures: int
    quality_rejection_fatal: bool
    log_level: str

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_endpoint and self.llm_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from environment variables (cached for the process)."""

    return Settings(
        llm_api_endpoint=os.getenv("LLM_API_ENDPOINT") or None,
        llm_api_key=os.getenv("LLM_API_KEY") or None,
        llm_model=os.getenv("LLM_MODEL", "mistral-large-latest").strip() or "mistral-large-latest",
        llm_temperature=_float_from_env("LLM_TEMPERATURE", 0.3),
        llm_max_tokens=max(1, _int_from_env("LLM_MAX_TOKENS", 4000)),
        llm_timeout_seconds=max(1.0, _float_from_env("LLM_TIMEOUT_SECONDS", 60.0)),
        ocr_language=os.getenv("OCR_LANG", "eng").strip() or "eng",
        ocr_dpi=max(72, _int_from_env("OCR_DPI", 200)),
        ocr_max_pages=max(1, _int_from_env("OCR_MAX_PAGES", 20)),
        antiword_path=os.getenv("ANTIWORD_PATH", "antiword").strip() or "antiword",
        chunk_chars=max(200, _int_from_env("CHUNK_CHARS", 1500)),
        overlap_chars=max(0, _int_from_env("CHUNK_OVERLAP_CHARS", 200)),
        max_consecutive_failures=max(1, _int_from_env("LLM_MAX_CONSECUTIVE_FAILURES", 5)),
        quality_rejection_fatal=_env_flag("QUALITY_REJECTION_FATAL", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


__all__ = ["Settings", "get_settings"]
