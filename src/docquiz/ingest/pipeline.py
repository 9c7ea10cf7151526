"""High level extraction pipeline entry point."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from docquiz import config
from docquiz.config import Settings, get_settings
from docquiz.errors import ParseFailure
from docquiz.telemetry import LoggerLike, log_event, traced_duration

from .cascade import CascadeParser
from .extractors import build_parser
from .format_detection import DocumentFormat, DocumentFormatDetector
from .language import LanguageDetector
from .models import ExtractedText, SourceDocument
from .normalization import normalize_text
from .ocr import OCREngine
from .validation import ValidationMode, is_adequate_extraction, validate_content

LOGGER = logging.getLogger(__name__)

ParserFactory = Callable[..., CascadeParser]


@dataclass(slots=True)
class RecoveredText:
    """Normalised parser output before content validation."""

    text: str
    format: DocumentFormat
    strategy: Optional[str]
    adequate: bool
    ocr_fallback: bool = False


class ExtractionPipeline:
    """Detect the format, run its cascade, normalise and validate the text."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ocr_engine: Optional[OCREngine] = None,
        language_detector: Optional[LanguageDetector] = None,
        parser_factory: ParserFactory = build_parser,
    ) -> None:
        self.settings = settings or get_settings()
        self.ocr_engine = ocr_engine or OCREngine(
            language=self.settings.ocr_language,
            dpi=self.settings.ocr_dpi,
            max_pages=self.settings.ocr_max_pages,
        )
        self.language_detector = language_detector or LanguageDetector()
        self.parser_factory = parser_factory

    def extract(self, document: SourceDocument, logger: Optional[LoggerLike] = None) -> ExtractedText:
        """Return validated text or raise ``ParseFailure`` / ``InvalidContent``."""

        log = logger or LOGGER
        return self.finish(self.recover(document, log), document.filename, log)

    def finish(
        self, recovered: RecoveredText, file_name: str, logger: Optional[LoggerLike] = None
    ) -> ExtractedText:
        """Validate recovered text and tag its language."""

        log = logger or LOGGER
        with traced_duration("extraction.validate", logger=log, file_name=file_name):
            assessment = validate_content(recovered.text, ValidationMode.DOCUMENT)

        flags = list(assessment.flags)
        if not recovered.adequate:
            flags.append("best_effort")
        if recovered.ocr_fallback:
            flags.append("ocr_fallback")

        language = self.language_detector.detect(assessment.text)
        log_event(
            log,
            "extraction.complete",
            details={
                "file_name": file_name,
                "format": recovered.format.value,
                "strategy": recovered.strategy,
                "length": len(assessment.text),
                "flags": flags,
                "language": language,
            },
        )
        return ExtractedText(
            content=assessment.text,
            quality_flags=tuple(flags),
            format=recovered.format.value,
            strategy=recovered.strategy,
            language=language,
        )

    def recover(self, document: SourceDocument, logger: Optional[LoggerLike] = None) -> RecoveredText:
        """Run the format cascade and the final OCR fallback without validating."""

        log = logger or LOGGER
        if not document.data:
            raise ParseFailure(f"{document.filename or 'upload'} is empty")

        document_format = DocumentFormatDetector.detect(document.filename, document.mime_type)
        LOGGER.info("Processing file %s (%s, %s bytes)", document.filename, document_format, len(document.data))
        parser = self.parser_factory(document_format, settings=self.settings, ocr_engine=self.ocr_engine)

        try:
            with traced_duration(
                "extraction.parse", logger=log, file_name=document.filename, format=document_format.value
            ):
                outcome = parser.parse(document.data, document.filename, logger=log)
        except ParseFailure:
            fallback = self._ocr_fallback(document, document_format, log)
            if fallback is None:
                raise
            return self._fallback_text(fallback, document_format)

        if not outcome.adequate:
            fallback = self._ocr_fallback(document, document_format, log)
            if fallback is not None:
                return self._fallback_text(fallback, document_format)

        return RecoveredText(
            text=normalize_text(outcome.text),
            format=document_format,
            strategy=outcome.strategy,
            adequate=outcome.adequate,
        )

    @staticmethod
    def _fallback_text(text: str, document_format: DocumentFormat) -> RecoveredText:
        return RecoveredText(
            text=normalize_text(text),
            format=document_format,
            strategy="ocr_fallback",
            adequate=True,
            ocr_fallback=True,
        )

    def _ocr_fallback(
        self, document: SourceDocument, document_format: DocumentFormat, log: LoggerLike
    ) -> Optional[str]:
        # PDF and image cascades already end with OCR.
        if document_format in (DocumentFormat.PDF, DocumentFormat.IMAGE):
            return None

        recognize, source = self._ocr_route(document.data)
        if recognize is None:
            return None
        try:
            result = recognize(document.data)
        except Exception as error:
            log_event(log, "extraction.ocr_fallback", level="warning", exc=error, details={"source": source})
            return None

        text = result.text.strip()
        log_event(
            log,
            "extraction.ocr_fallback",
            details={"source": source, "length": len(text), "confidence": round(result.confidence, 1)},
        )
        if result.confidence < config.OCR_MIN_CONFIDENCE or not is_adequate_extraction(text):
            return None
        return text

    def _ocr_route(self, data: bytes) -> Tuple[Optional[Callable], str]:
        if data.lstrip()[:5] == b"%PDF-":
            return self.ocr_engine.recognize_pdf, "pdf"
        if self.ocr_engine.is_image(data):
            return self.ocr_engine.recognize_bytes, "image"
        return None, "none"


__all__ = ["ExtractionPipeline", "RecoveredText"]
