"""Utilities for detecting the format of uploaded documents."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Optional


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    DOCX = "docx"
    DOC = "doc"
    PPTX = "pptx"
    PPT = "ppt"
    XLSX = "xlsx"
    XLS = "xls"
    EPUB = "epub"
    HTML = "html"
    CSV = "csv"
    TXT = "txt"
    IMAGE = "image"
    UNKNOWN = "unknown"


_SUFFIX_MAP = {
    "pdf": DocumentFormat.PDF,
    "docx": DocumentFormat.DOCX,
    "doc": DocumentFormat.DOC,
    "pptx": DocumentFormat.PPTX,
    "ppt": DocumentFormat.PPT,
    "xlsx": DocumentFormat.XLSX,
    "xls": DocumentFormat.XLS,
    "epub": DocumentFormat.EPUB,
    "html": DocumentFormat.HTML,
    "htm": DocumentFormat.HTML,
    "csv": DocumentFormat.CSV,
    "txt": DocumentFormat.TXT,
    "text": DocumentFormat.TXT,
    "md": DocumentFormat.TXT,
    "png": DocumentFormat.IMAGE,
    "jpg": DocumentFormat.IMAGE,
    "jpeg": DocumentFormat.IMAGE,
    "gif": DocumentFormat.IMAGE,
}


class DocumentFormatDetector:
    """Detects the document format based on file name and optional MIME type."""

    _MIME_MAP = {
        "application/pdf": DocumentFormat.PDF,
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
        "application/msword": DocumentFormat.DOC,
        "application/vnd.openxmlformats-officedocument.presentationml.presentation": DocumentFormat.PPTX,
        "application/vnd.ms-powerpoint": DocumentFormat.PPT,
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": DocumentFormat.XLSX,
        "application/vnd.ms-excel": DocumentFormat.XLS,
        "application/epub+zip": DocumentFormat.EPUB,
        "text/html": DocumentFormat.HTML,
        "text/csv": DocumentFormat.CSV,
        "text/plain": DocumentFormat.TXT,
        "image/png": DocumentFormat.IMAGE,
        "image/jpeg": DocumentFormat.IMAGE,
        "image/gif": DocumentFormat.IMAGE,
    }

    @classmethod
    def detect(cls, file_name: str, mime_type: Optional[str] = None) -> DocumentFormat:
        """Return the detected document format.

        The file suffix wins when it is recognised, because browsers often send
        generic MIME types such as ``application/octet-stream``. Otherwise the
        explicit MIME type is used, then ``mimetypes.guess_type``. Anything
        else is reported as :attr:`DocumentFormat.UNKNOWN`.
        """

        suffix = Path(file_name or "").suffix.lower().lstrip(".")
        if suffix in _SUFFIX_MAP:
            return _SUFFIX_MAP[suffix]

        if mime_type:
            normalized = mime_type.split(";", 1)[0].strip().lower()
            if normalized in cls._MIME_MAP:
                return cls._MIME_MAP[normalized]

        guessed_type, _ = mimetypes.guess_type(file_name or "")
        if guessed_type and guessed_type in cls._MIME_MAP:
            return cls._MIME_MAP[guessed_type]

        return DocumentFormat.UNKNOWN
