from __future__ import annotations

import pytest

from docquiz.ingest.format_detection import DocumentFormat, DocumentFormatDetector


@pytest.mark.parametrize(
    ("file_name", "expected"),
    [
        ("notes.pdf", DocumentFormat.PDF),
        ("Lecture.DOCX", DocumentFormat.DOCX),
        ("legacy.doc", DocumentFormat.DOC),
        ("slides.pptx", DocumentFormat.PPTX),
        ("grades.xlsx", DocumentFormat.XLSX),
        ("old-slides.ppt", DocumentFormat.PPT),
        ("old-grades.xls", DocumentFormat.XLS),
        ("novel.epub", DocumentFormat.EPUB),
        ("page.htm", DocumentFormat.HTML),
        ("table.csv", DocumentFormat.CSV),
        ("readme.md", DocumentFormat.TXT),
        ("scan.jpeg", DocumentFormat.IMAGE),
    ],
)
def test_detect_by_suffix(file_name: str, expected: DocumentFormat) -> None:
    assert DocumentFormatDetector.detect(file_name) is expected


def test_suffix_wins_over_generic_mime_type() -> None:
    assert DocumentFormatDetector.detect("notes.pdf", "application/octet-stream") is DocumentFormat.PDF


def test_mime_type_used_when_suffix_missing() -> None:
    assert DocumentFormatDetector.detect("upload", "text/csv; charset=utf-8") is DocumentFormat.CSV


def test_unknown_format_is_reported_not_raised() -> None:
    assert DocumentFormatDetector.detect("archive.xyz") is DocumentFormat.UNKNOWN
    assert DocumentFormatDetector.detect("") is DocumentFormat.UNKNOWN


def test_legacy_office_mime_types_are_not_ooxml() -> None:
    assert DocumentFormatDetector.detect("upload", "application/vnd.ms-powerpoint") is DocumentFormat.PPT
    assert DocumentFormatDetector.detect("upload", "application/vnd.ms-excel") is DocumentFormat.XLS
