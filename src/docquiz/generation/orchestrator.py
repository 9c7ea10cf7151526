"""Chunk-by-chunk quiz generation with partial-failure tolerance."""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Set

from docquiz import config
from docquiz.errors import GenerationFailure, QualityRejected
from docquiz.ingest.chunking import ChunkingConfig, TextChunker, questions_per_chunk
from docquiz.ingest.normalization import collapse_whitespace
from docquiz.ingest.validation import ValidationMode, validate_content
from docquiz.llm.adapter import LLMAdapter, LLMError
from docquiz.telemetry import LoggerLike, emit_chunk_event, emit_generation_summary, log_event

from .models import Difficulty, GenerationRequest, GenerationState, Question, QuizGenerationResult
from .prompt_builder import build_prompt
from .response_parser import parse_response

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CONSECUTIVE_FAILURES = 5


class QuizGenerator:
    """Drive the per-chunk prompt → model → parse loop and aggregate questions.

    Model failures (:class:`LLMError`) and empty batches count against a
    consecutive-failure ceiling; any success resets the counter. Chunk
    validation failures and the model's ``INVALID_CONTENT`` answer end the
    run immediately.
    """

    def __init__(
        self,
        llm: LLMAdapter,
        chunker: Optional[TextChunker] = None,
        *,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        quality_rejection_fatal: bool = True,
        prompt_builder: Callable[[str, int, Difficulty], str] = build_prompt,
        response_parser: Callable[[str], List[Question]] = parse_response,
    ) -> None:
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be at least 1")
        self.llm = llm
        self.chunker = chunker or TextChunker(ChunkingConfig())
        self.max_consecutive_failures = max_consecutive_failures
        self.quality_rejection_fatal = quality_rejection_fatal
        self.prompt_builder = prompt_builder
        self.response_parser = response_parser

    def generate(
        self,
        text: str,
        num_questions: int,
        difficulty: Difficulty | str = Difficulty.NORMAL,
        logger: Optional[LoggerLike] = None,
    ) -> QuizGenerationResult:
        if num_questions < 1:
            raise ValueError("num_questions must be at least 1")
        log = logger or LOGGER
        level = Difficulty.parse(difficulty)
        started = time.perf_counter()
        state = GenerationState.PENDING

        chunks = self.chunker.chunk(text)
        if not chunks:
            raise GenerationFailure("there is no text to generate questions from")
        per_chunk = questions_per_chunk(num_questions, len(chunks))

        state = self._transition(state, GenerationState.PER_CHUNK_LOOP, log)
        accumulated: List[Question] = []
        seen: Set[str] = set()
        consecutive_failures = 0
        failed_chunks = 0

        for chunk in chunks:
            if len(accumulated) >= num_questions:
                break
            request = GenerationRequest(chunk=chunk, questions_wanted=per_chunk, difficulty=level)
            batch = self._run_chunk(request, log)

            if batch:
                consecutive_failures = 0
                added = self._merge(batch, accumulated, seen)
                emit_chunk_event(log, "success", ordinal=chunk.ordinal, received=len(batch), added=added)
                continue

            consecutive_failures += 1
            failed_chunks += 1
            if consecutive_failures >= self.max_consecutive_failures:
                state = self._transition(state, GenerationState.ABORTED, log)
                emit_chunk_event(
                    log, "abort", ordinal=chunk.ordinal, level="warning", consecutive_failures=consecutive_failures
                )
                break

        questions = accumulated[:num_questions]
        if state is GenerationState.PER_CHUNK_LOOP:
            final = GenerationState.SUCCESS if len(questions) == num_questions else GenerationState.PARTIAL
            state = self._transition(state, final, log)

        emit_generation_summary(
            log,
            state=state.value,
            requested=num_questions,
            achieved=len(questions),
            chunk_count=len(chunks),
            failed_chunks=failed_chunks,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        if not questions:
            raise GenerationFailure(
                f"no questions generated from {len(chunks)} chunks ({failed_chunks} failed, state {state.value})"
            )
        return QuizGenerationResult(
            questions=questions,
            requested=num_questions,
            state=state,
            chunk_count=len(chunks),
            failed_chunks=failed_chunks,
        )

    @staticmethod
    def _transition(current: GenerationState, target: GenerationState, log: LoggerLike) -> GenerationState:
        log_event(log, "generation.state", details={"from": current.value, "to": target.value})
        return target

    def _run_chunk(self, request: GenerationRequest, log: LoggerLike) -> List[Question]:
        """Return the parsed batch for one chunk; an empty list marks a failure."""

        chunk = request.chunk
        validate_content(chunk.content, ValidationMode.CHUNK)
        prompt = self.prompt_builder(chunk.content, request.questions_wanted, request.difficulty)
        try:
            raw = self.llm.complete(prompt)
            batch = self.response_parser(raw)
        except LLMError as error:
            emit_chunk_event(log, "llm_error", ordinal=chunk.ordinal, level="warning", exc=error)
            return []
        except QualityRejected as error:
            if self.quality_rejection_fatal:
                raise
            emit_chunk_event(log, "quality_rejected", ordinal=chunk.ordinal, level="warning", exc=error)
            return []

        if not batch:
            emit_chunk_event(log, "empty", ordinal=chunk.ordinal, level="warning")
        return batch

    @staticmethod
    def _merge(batch: List[Question], accumulated: List[Question], seen: Set[str]) -> int:
        added = 0
        for question in batch:
            key = collapse_whitespace(question.question).casefold()
            if key in seen:
                continue
            seen.add(key)
            accumulated.append(question)
            added += 1
        return added


def build_generator(llm: LLMAdapter, settings: Optional[config.Settings] = None) -> QuizGenerator:
    settings = settings or config.get_settings()
    overlap = min(settings.overlap_chars, settings.chunk_chars - 1)
    return QuizGenerator(
        llm,
        TextChunker(ChunkingConfig(chunk_chars=settings.chunk_chars, overlap_chars=overlap)),
        max_consecutive_failures=settings.max_consecutive_failures,
        quality_rejection_fatal=settings.quality_rejection_fatal,
    )


__all__ = ["DEFAULT_MAX_CONSECUTIVE_FAILURES", "QuizGenerator", "build_generator"]
