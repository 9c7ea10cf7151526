"""Extraction strategies for supported document types.

Each ``build_*_parser`` function returns a :class:`CascadeParser` whose
strategy order is the order in which recovery is attempted.
"""
from __future__ import annotations

import csv
import io
import logging
import posixpath
import re
import shutil
import subprocess
import tempfile
import zipfile
import zlib
import xml.etree.ElementTree as ET
from html.parser import HTMLParser
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from docx import Document as DocxDocument
from openpyxl import load_workbook
from pdfminer.high_level import extract_text as pdfminer_extract_text
from pptx import Presentation
from PyPDF2 import PdfReader

from docquiz import config
from docquiz.config import Settings, get_settings
from docquiz.errors import InvalidContent, RejectionReason

from .cascade import CascadeParser, ExtractionStrategy
from .format_detection import DocumentFormat
from .ocr import OCREngine, OCRResult
from .validation import count_readable_chars, readable_ratio

LOGGER = logging.getLogger(__name__)

_WORD_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
_PRINTABLE_RUN_RE = re.compile(r"[\x20-\x7E\u00A0-\u024F\t\r\n]{4,}")
_HAS_LETTER_RE = re.compile(r"[A-Za-z\u00C0-\u024F]")


def decode_text(data: bytes) -> str:
    """Decode plain text, trying UTF-8, then UTF-16 (BOM only), then latin-1."""

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    if data[:2] in (b"\xff\xfe", b"\xfe\xff"):
        try:
            return data.decode("utf-16")
        except UnicodeDecodeError:
            pass
    return data.decode("latin-1")


def _ocr_text_or_reject(result: OCRResult) -> str:
    text = result.text.strip()
    if result.confidence < config.OCR_MIN_CONFIDENCE or len(text) < config.OCR_MIN_TEXT_LENGTH:
        raise InvalidContent(
            RejectionReason.IMAGE_BASED,
            f"OCR confidence {result.confidence:.1f} with {len(text)} characters",
        )
    return text


def _printable_runs(text: str, min_run: int) -> str:
    runs = [
        run.strip()
        for run in _PRINTABLE_RUN_RE.findall(text)
        if len(run.strip()) >= min_run and _HAS_LETTER_RE.search(run)
    ]
    return "\n".join(runs)


def _score(text: str) -> float:
    return count_readable_chars(text) * readable_ratio(text)


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


class PdfMinerStrategy(ExtractionStrategy):
    name = "pdfminer"

    def extract(self, data: bytes, file_name: str) -> str:
        return pdfminer_extract_text(io.BytesIO(data)) or ""


class PyPDF2Strategy(ExtractionStrategy):
    name = "pypdf2"

    def extract(self, data: bytes, file_name: str) -> str:
        reader = PdfReader(io.BytesIO(data))
        pages: List[str] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                pages.append(page.extract_text() or "")
            except Exception as error:  # pragma: no cover - depends on the PDF
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
        return "\n\n".join(page for page in pages if page.strip())


_STREAM_RE = re.compile(rb"stream\r?\n(.*?)endstream", re.DOTALL)
_TEXT_OPERATOR_RE = re.compile(
    r"\[(?P<array>(?:\\.|[^\]\\])*)\]\s*TJ"
    r"|(?P<literal>\((?:\\.|[^\\)])*\))\s*(?P<lit_op>Tj|'|\")"
    r"|<(?P<hex>[0-9A-Fa-f\s]*)>\s*(?P<hex_op>Tj|'|\")"
    r"|(?P<newline>\bT\*|\bT[dD]\b|\bET\b)",
    re.DOTALL,
)
_ARRAY_ITEM_RE = re.compile(r"\((?:\\.|[^\\)])*\)|<[0-9A-Fa-f\s]*>|-?\d+(?:\.\d+)?")
_OCTAL_RE = re.compile(r"\\([0-7]{1,3})")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f", "(": "(", ")": ")", "\\": "\\"}

# Kerning adjustments wider than this (in thousandths of an em) are treated as word gaps.
_TJ_SPACE_THRESHOLD = 200


def _unescape_literal(literal: str) -> bytes:
    """Decode a PDF literal string (including its parentheses) to raw bytes."""

    body = literal[1:-1]
    out: List[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\":
            out.append(char)
            index += 1
            continue
        octal = _OCTAL_RE.match(body, index)
        if octal:
            out.append(chr(int(octal.group(1), 8) & 0xFF))
            index = octal.end()
            continue
        following = body[index + 1 : index + 2]
        if following in ("\n", "\r"):
            index += 2
            if following == "\r" and body[index : index + 1] == "\n":
                index += 1
            continue
        out.append(_ESCAPES.get(following, following))
        index += 2
    return "".join(out).encode("latin-1", errors="ignore")


def _unhex(value: str) -> bytes:
    digits = re.sub(r"\s+", "", value)
    if len(digits) % 2:
        digits += "0"
    return bytes.fromhex(digits)


def _inflate(raw: bytes) -> bytes:
    payload = raw.rstrip(b"\r\n")
    try:
        return zlib.decompress(payload)
    except zlib.error:
        pass
    try:
        return zlib.decompressobj().decompress(payload)
    except zlib.error:
        return payload


class PdfStreamRecoveryStrategy(ExtractionStrategy):
    """Harvest text-showing operands straight out of the PDF content streams."""

    name = "stream_recovery"
    encodings: Sequence[str] = ("latin-1", "utf-8", "cp1252", "utf-16-be")

    def extract(self, data: bytes, file_name: str) -> str:
        segments: List[Optional[bytes]] = []
        for match in _STREAM_RE.finditer(data):
            segments.extend(self._harvest(_inflate(match.group(1)).decode("latin-1")))

        if not any(segments):
            return ""

        best_text, best_score = "", -1.0
        for encoding in self.encodings:
            text = self._render(segments, encoding)
            score = _score(text)
            LOGGER.debug("stream recovery with %s scored %.1f", encoding, score)
            if score > best_score:
                best_text, best_score = text, score
        return best_text

    def _harvest(self, content: str) -> Iterable[Optional[bytes]]:
        """Yield operand bytes in reading order; ``None`` marks a line break."""

        for match in _TEXT_OPERATOR_RE.finditer(content):
            if match.group("newline"):
                yield None
            elif match.group("array") is not None:
                yield self._join_array(match.group("array"))
            elif match.group("literal") is not None:
                if match.group("lit_op") in ("'", '"'):
                    yield None
                yield _unescape_literal(match.group("literal"))
            elif match.group("hex") is not None:
                if match.group("hex_op") in ("'", '"'):
                    yield None
                yield _unhex(match.group("hex"))

    @staticmethod
    def _join_array(array: str) -> bytes:
        parts: List[bytes] = []
        for item in _ARRAY_ITEM_RE.findall(array):
            if item.startswith("("):
                parts.append(_unescape_literal(item))
            elif item.startswith("<"):
                parts.append(_unhex(item[1:-1]))
            elif float(item) < -_TJ_SPACE_THRESHOLD:
                parts.append(b" ")
        return b"".join(parts)

    @staticmethod
    def _render(segments: Sequence[Optional[bytes]], encoding: str) -> str:
        lines: List[str] = []
        current: List[str] = []
        for segment in segments:
            if segment is None:
                if current:
                    lines.append("".join(current).strip())
                    current = []
                continue
            current.append(segment.decode(encoding, errors="ignore"))
        if current:
            lines.append("".join(current).strip())
        text = "\n".join(line for line in lines if line)
        return "".join(char for char in text if char.isprintable() or char in "\n\t")


class PdfOcrStrategy(ExtractionStrategy):
    name = "ocr"

    def __init__(self, engine: OCREngine) -> None:
        self.engine = engine

    def extract(self, data: bytes, file_name: str) -> str:
        return _ocr_text_or_reject(self.engine.recognize_pdf(data))


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class ImageOcrStrategy(ExtractionStrategy):
    name = "ocr"

    def __init__(self, engine: OCREngine) -> None:
        self.engine = engine

    def extract(self, data: bytes, file_name: str) -> str:
        return _ocr_text_or_reject(self.engine.recognize_bytes(data))


# ---------------------------------------------------------------------------
# Word documents
# ---------------------------------------------------------------------------


class PythonDocxStrategy(ExtractionStrategy):
    name = "python-docx"

    def extract(self, data: bytes, file_name: str) -> str:
        document = DocxDocument(io.BytesIO(data))
        parts = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))
        return "\n\n".join(parts)


class DocxXmlStrategy(ExtractionStrategy):
    """Read ``word/document.xml`` directly when python-docx cannot open the package."""

    name = "ooxml"

    def extract(self, data: bytes, file_name: str) -> str:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            xml_bytes = archive.read("word/document.xml")
        root = ET.fromstring(xml_bytes)
        paragraphs = []
        for paragraph in root.iter(f"{_WORD_NS}p"):
            text = "".join(node.text or "" for node in paragraph.iter(f"{_WORD_NS}t"))
            if text.strip():
                paragraphs.append(text)
        return "\n\n".join(paragraphs)


class AntiwordStrategy(ExtractionStrategy):
    name = "antiword"

    def __init__(self, binary: str = "antiword", timeout: float = 60.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def extract(self, data: bytes, file_name: str) -> str:
        executable = shutil.which(self.binary)
        if executable is None:
            raise RuntimeError(f"{self.binary} is not installed")

        with tempfile.NamedTemporaryFile(suffix=".doc") as src:
            src.write(data)
            src.flush()
            cmd = [executable, "-w", "0", src.name]
            LOGGER.debug("Running antiword command: %s", " ".join(cmd))
            try:
                completed = subprocess.run(
                    cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=self.timeout
                )
            except subprocess.CalledProcessError as exc:
                raise RuntimeError(f"antiword failed: {exc.stderr.decode(errors='ignore')}") from exc
        return completed.stdout.decode("utf-8", errors="ignore")


class BinaryTextRecoveryStrategy(ExtractionStrategy):
    """Recover printable runs from binary files (UTF-16LE and cp1252 views)."""

    name = "binary_recovery"

    def extract(self, data: bytes, file_name: str) -> str:
        candidates = [
            _printable_runs(data.decode("utf-16-le", errors="ignore"), min_run=4),
            _printable_runs(data.decode("cp1252", errors="ignore"), min_run=8),
        ]
        return max(candidates, key=_score)


# ---------------------------------------------------------------------------
# Single-pass formats
# ---------------------------------------------------------------------------


class PlainTextStrategy(ExtractionStrategy):
    name = "plain_text"

    def extract(self, data: bytes, file_name: str) -> str:
        return decode_text(data)


class RawUtf8Strategy(ExtractionStrategy):
    name = "raw_utf8"

    def extract(self, data: bytes, file_name: str) -> str:
        return data.decode("utf-8", errors="ignore")


class CsvStrategy(ExtractionStrategy):
    name = "csv"

    def extract(self, data: bytes, file_name: str) -> str:
        reader = csv.reader(io.StringIO(decode_text(data)))
        rows = [" ".join(cell.strip() for cell in row if cell.strip()) for row in reader]
        return "\n".join(row for row in rows if row)


class _VisibleTextParser(HTMLParser):
    _SKIPPED = {"script", "style", "head", "title", "noscript", "template"}
    _BLOCKS = {"p", "div", "br", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "section", "article"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: List[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in self._SKIPPED:
            self._skip_depth += 1
        elif tag in self._BLOCKS:
            self._parts.append("\n")

    def handle_endtag(self, tag):
        if tag in self._SKIPPED and self._skip_depth:
            self._skip_depth -= 1
        elif tag in self._BLOCKS:
            self._parts.append("\n")

    def handle_data(self, data):
        if not self._skip_depth:
            self._parts.append(data)

    def text(self) -> str:
        joined = "".join(self._parts)
        lines = (" ".join(line.split()) for line in joined.split("\n"))
        return "\n".join(line for line in lines if line)


def html_to_text(markup: str) -> str:
    parser = _VisibleTextParser()
    parser.feed(markup)
    parser.close()
    return parser.text()


class HtmlStrategy(ExtractionStrategy):
    name = "html"

    def extract(self, data: bytes, file_name: str) -> str:
        return html_to_text(decode_text(data))


class XlsxStrategy(ExtractionStrategy):
    name = "openpyxl"

    def extract(self, data: bytes, file_name: str) -> str:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            sheets: List[str] = []
            for sheet in workbook.worksheets:
                rows = []
                for row in sheet.iter_rows(values_only=True):
                    cells = [str(value).strip() for value in row if value is not None and str(value).strip()]
                    if cells:
                        rows.append(" ".join(cells))
                if rows:
                    sheets.append("\n".join(rows))
        finally:
            workbook.close()
        return "\n\n".join(sheets)


class PptxStrategy(ExtractionStrategy):
    name = "python-pptx"

    def extract(self, data: bytes, file_name: str) -> str:
        presentation = Presentation(io.BytesIO(data))
        slides: List[str] = []
        for slide in presentation.slides:
            texts = []
            for shape in slide.shapes:
                if getattr(shape, "has_text_frame", False) and shape.text_frame.text.strip():
                    texts.append(shape.text_frame.text.strip())
                elif getattr(shape, "has_table", False):
                    for row in shape.table.rows:
                        cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                        if cells:
                            texts.append(" | ".join(cells))
            if texts:
                slides.append("\n".join(texts))
        return "\n\n".join(slides)


class EpubStrategy(ExtractionStrategy):
    """Read XHTML documents in spine order as declared by the OPF package file."""

    name = "epub"

    def extract(self, data: bytes, file_name: str) -> str:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            documents = self._spine_documents(archive)
            chapters = []
            for path in documents:
                try:
                    markup = decode_text(archive.read(path))
                except KeyError:
                    LOGGER.warning("EPUB spine entry %s missing from archive", path)
                    continue
                text = html_to_text(markup)
                if text:
                    chapters.append(text)
        return "\n\n".join(chapters)

    @staticmethod
    def _spine_documents(archive: zipfile.ZipFile) -> List[str]:
        container = ET.fromstring(archive.read("META-INF/container.xml"))
        rootfile = next(
            (node.get("full-path") for node in container.iter() if node.tag.endswith("rootfile")), None
        )
        if not rootfile:
            raise ValueError("EPUB container does not declare a rootfile")

        package = ET.fromstring(archive.read(rootfile))
        base = posixpath.dirname(rootfile)
        manifest: Dict[str, str] = {}
        spine: List[str] = []
        for node in package.iter():
            if node.tag.endswith("}item") or node.tag == "item":
                if node.get("id") and node.get("href"):
                    manifest[node.get("id")] = posixpath.normpath(posixpath.join(base, node.get("href")))
            elif node.tag.endswith("}itemref") or node.tag == "itemref":
                if node.get("idref"):
                    spine.append(node.get("idref"))
        return [manifest[idref] for idref in spine if idref in manifest]


# ---------------------------------------------------------------------------
# Parser factories
# ---------------------------------------------------------------------------


def _ocr_engine(settings: Settings, engine: Optional[OCREngine]) -> OCREngine:
    if engine is not None:
        return engine
    return OCREngine(language=settings.ocr_language, dpi=settings.ocr_dpi, max_pages=settings.ocr_max_pages)


def build_pdf_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    settings = settings or get_settings()
    return CascadeParser(
        "pdf",
        [
            PdfMinerStrategy(),
            PyPDF2Strategy(),
            PdfStreamRecoveryStrategy(),
            PdfOcrStrategy(_ocr_engine(settings, ocr_engine)),
        ],
    )


def build_image_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    settings = settings or get_settings()
    return CascadeParser("image", [ImageOcrStrategy(_ocr_engine(settings, ocr_engine))])


def build_docx_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    return CascadeParser("docx", [PythonDocxStrategy(), DocxXmlStrategy()])


def build_doc_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    settings = settings or get_settings()
    return CascadeParser("doc", [AntiwordStrategy(settings.antiword_path), BinaryTextRecoveryStrategy()])


def build_ppt_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    # Legacy OLE decks; the python-pptx pass only succeeds for renamed .pptx files.
    return CascadeParser("ppt", [PptxStrategy(), BinaryTextRecoveryStrategy()])


def build_xls_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    return CascadeParser("xls", [XlsxStrategy(), BinaryTextRecoveryStrategy()])


def _single_pass(name: str, strategy: ExtractionStrategy) -> Callable[..., CascadeParser]:
    def factory(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
        return CascadeParser(name, [strategy, RawUtf8Strategy()])

    factory.__name__ = f"build_{name}_parser"
    return factory


build_csv_parser = _single_pass("csv", CsvStrategy())
build_html_parser = _single_pass("html", HtmlStrategy())
build_txt_parser = _single_pass("txt", PlainTextStrategy())
build_xlsx_parser = _single_pass("xlsx", XlsxStrategy())
build_pptx_parser = _single_pass("pptx", PptxStrategy())
build_epub_parser = _single_pass("epub", EpubStrategy())


def build_unknown_parser(settings: Optional[Settings] = None, ocr_engine: Optional[OCREngine] = None) -> CascadeParser:
    return CascadeParser("unknown", [PlainTextStrategy(), BinaryTextRecoveryStrategy()])


PARSER_FACTORIES: Dict[DocumentFormat, Callable[..., CascadeParser]] = {
    DocumentFormat.PDF: build_pdf_parser,
    DocumentFormat.DOCX: build_docx_parser,
    DocumentFormat.DOC: build_doc_parser,
    DocumentFormat.PPTX: build_pptx_parser,
    DocumentFormat.PPT: build_ppt_parser,
    DocumentFormat.XLSX: build_xlsx_parser,
    DocumentFormat.XLS: build_xls_parser,
    DocumentFormat.EPUB: build_epub_parser,
    DocumentFormat.HTML: build_html_parser,
    DocumentFormat.CSV: build_csv_parser,
    DocumentFormat.TXT: build_txt_parser,
    DocumentFormat.IMAGE: build_image_parser,
    DocumentFormat.UNKNOWN: build_unknown_parser,
}


def build_parser(
    document_format: DocumentFormat,
    settings: Optional[Settings] = None,
    ocr_engine: Optional[OCREngine] = None,
) -> CascadeParser:
    """Return the cascade parser registered for ``document_format``."""

    factory = PARSER_FACTORIES.get(document_format, build_unknown_parser)
    return factory(settings=settings, ocr_engine=ocr_engine)


__all__ = [
    "AntiwordStrategy",
    "BinaryTextRecoveryStrategy",
    "CsvStrategy",
    "DocxXmlStrategy",
    "EpubStrategy",
    "HtmlStrategy",
    "ImageOcrStrategy",
    "PARSER_FACTORIES",
    "PdfMinerStrategy",
    "PdfOcrStrategy",
    "PdfStreamRecoveryStrategy",
    "PlainTextStrategy",
    "PptxStrategy",
    "PyPDF2Strategy",
    "PythonDocxStrategy",
    "RawUtf8Strategy",
    "XlsxStrategy",
    "build_parser",
    "decode_text",
    "html_to_text",
]
