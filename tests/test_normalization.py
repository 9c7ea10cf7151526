from __future__ import annotations

from docquiz.ingest.normalization import collapse_whitespace, normalize_text


def test_normalize_text_keeps_paragraphs_and_collapses_spaces() -> None:
    raw = "First  line  here\r\n\r\n\r\n\r\nSecond\tparagraph \x00 text  \n"

    assert normalize_text(raw) == "First line here\n\nSecond paragraph text"


def test_normalize_text_composes_unicode_and_drops_replacement_characters() -> None:
    assert normalize_text("Café � menu") == "Café menu"


def test_collapse_whitespace() -> None:
    assert collapse_whitespace("  a\n\n b\tc ") == "a b c"
