from __future__ import annotations

import dataclasses
import logging
import time
from typing import Optional, Sequence

from docquiz.config import Settings, get_settings
from docquiz.errors import GenerationFailure, QuizPipelineError
from docquiz.generation.models import Difficulty, QuizGenerationResult
from docquiz.generation.orchestrator import QuizGenerator, build_generator
from docquiz.ingest.chapters import ChapterSegmenter, select_chapters
from docquiz.ingest.format_detection import DocumentFormat
from docquiz.ingest.models import ChapterExtraction, ExtractedText, SourceDocument
from docquiz.ingest.normalization import normalize_text
from docquiz.ingest.pipeline import ExtractionPipeline, RecoveredText
from docquiz.llm.adapter import LLMAdapter, LLMStub, get_llm
from docquiz.telemetry import LoggerLike, emit_exception, log_event, request_logger

LOGGER = logging.getLogger(__name__)


class QuizService:
    """High level orchestration: document bytes in, validated questions out."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        pipeline: ExtractionPipeline | None = None,
        llm: LLMAdapter | None = None,
        generator: QuizGenerator | None = None,
        segmenter: ChapterSegmenter | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.pipeline = pipeline or ExtractionPipeline(self.settings)
        self.llm = llm or (generator.llm if generator is not None else get_llm(self.settings))
        self.generator = generator or build_generator(self.llm, self.settings)
        self.segmenter = segmenter or ChapterSegmenter()

    @property
    def llm_ready(self) -> bool:
        return self.llm.ready and not isinstance(self.llm, LLMStub)

    def generate(
        self,
        data: bytes,
        filename: str,
        num_questions: int,
        difficulty: Difficulty | str = Difficulty.NORMAL,
        mime_type: Optional[str] = None,
        chapter_indexes: Optional[Sequence[int]] = None,
        request_id: Optional[str] = None,
    ) -> QuizGenerationResult:
        """Extract, validate and quiz a document.

        Raises ``ParseFailure``, ``InvalidContent``, ``QualityRejected`` or
        ``GenerationFailure``; fewer questions than requested are returned with
        ``state`` set to ``PARTIAL`` or ``ABORTED``.
        """

        log = request_logger("docquiz.services.quiz", request_id, file_name=filename)
        level = self._check_request(num_questions, difficulty)
        started = time.perf_counter()

        try:
            recovered = self.pipeline.recover(SourceDocument(data, filename, mime_type), log)
            if chapter_indexes is not None:
                extraction = self.segmenter.segment(recovered.text)
                selected = select_chapters(extraction.chapters, chapter_indexes, recovered.text)
                recovered = dataclasses.replace(recovered, text=selected)
            extracted = self.pipeline.finish(recovered, filename, log)
            result = self._generate(extracted, num_questions, level, log)
        except QuizPipelineError as error:
            emit_exception(log, module="services.quiz", error=error, code=error.code)
            raise

        log_event(
            log,
            "quiz.generate",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            details={"requested": num_questions, "achieved": result.achieved, "state": result.state.value},
        )
        return result

    def generate_from_text(
        self,
        text: str,
        num_questions: int,
        difficulty: Difficulty | str = Difficulty.NORMAL,
        request_id: Optional[str] = None,
    ) -> QuizGenerationResult:
        """Quiz pasted text; it goes through the same normalisation and validation as documents."""

        log = request_logger("docquiz.services.quiz", request_id, source="text")
        level = self._check_request(num_questions, difficulty)
        recovered = RecoveredText(
            text=normalize_text(text or ""), format=DocumentFormat.TXT, strategy="pasted_text", adequate=True
        )
        try:
            extracted = self.pipeline.finish(recovered, "pasted-text", log)
            return self._generate(extracted, num_questions, level, log)
        except QuizPipelineError as error:
            emit_exception(log, module="services.quiz", error=error, code=error.code)
            raise

    def extract_chapters(
        self,
        data: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ChapterExtraction:
        """Return the chapters offered for selection before generation."""

        log = request_logger("docquiz.services.quiz", request_id, file_name=filename)
        recovered = self.pipeline.recover(SourceDocument(data, filename, mime_type), log)
        extraction = self.segmenter.segment(recovered.text)
        log_event(
            log,
            "quiz.chapters",
            details={"chapters": len(extraction.chapters), "fallback": extraction.fallback},
        )
        return extraction

    def _check_request(self, num_questions: int, difficulty: Difficulty | str) -> Difficulty:
        if num_questions < 1:
            raise ValueError("num_questions must be at least 1")
        level = Difficulty.parse(difficulty)
        if not self.llm_ready:
            raise GenerationFailure("LLM endpoint is not configured")
        return level

    def _generate(
        self, extracted: ExtractedText, num_questions: int, difficulty: Difficulty, log: LoggerLike
    ) -> QuizGenerationResult:
        result = self.generator.generate(extracted.content, num_questions, difficulty, logger=log)
        result.quality_flags = extracted.quality_flags
        return result


_quiz_service: QuizService | None = None


def get_quiz_service() -> QuizService:
    """FastAPI dependency returning the shared :class:`QuizService` instance."""

    global _quiz_service
    if _quiz_service is None:
        _quiz_service = QuizService()
    return _quiz_service


__all__ = ["QuizService", "get_quiz_service"]
