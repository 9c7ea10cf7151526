"""Text normalisation utilities."""
from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"[ \t\f\v\u00a0]+")
_MULTIPLE_NEWLINES_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r" *\n *")


def strip_control_characters(text: str) -> str:
    """Replace control, private-use and replacement characters with spaces."""

    return "".join(
        char
        if char in "\n\t" or (unicodedata.category(char)[0] != "C" and char != "\ufffd")
        else " "
        for char in text
    )


def normalize_text(text: str) -> str:
    """Normalise whitespace and Unicode representation, keeping line structure."""

    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = strip_control_characters(normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _TRAILING_SPACE_RE.sub("\n", normalized)
    normalized = _MULTIPLE_NEWLINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()
