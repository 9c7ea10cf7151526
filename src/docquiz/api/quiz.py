"""API router exposing quiz generation and chapter extraction endpoints."""
from __future__ import annotations

import json
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from docquiz.errors import GenerationFailure, QuizPipelineError
from docquiz.generation.models import Difficulty, Question, QuizGenerationResult
from docquiz.ingest.models import ChapterExtraction
from docquiz.services.quiz import QuizService, get_quiz_service

router = APIRouter(prefix="/quiz", tags=["quiz"])

MAX_QUESTIONS = 100


class QuestionModel(BaseModel):
    """One multiple-choice question as returned to clients."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    question: str
    options: list[str]
    correct_answer: str = Field(..., alias="correctAnswer")


class GenerateResponse(BaseModel):
    ok: bool = True
    count: int
    requested: int
    achieved: int
    state: str
    quality_flags: list[str] = Field(default_factory=list)
    questions: list[QuestionModel]


class ChapterModel(BaseModel):
    index: int
    title: str
    length: int
    preview: str


class ChaptersResponse(BaseModel):
    ok: bool = True
    fallback: bool
    chapters: list[ChapterModel]


def _serialise_question(question: Question) -> QuestionModel:
    return QuestionModel(
        id=question.id,
        question=question.question,
        options=list(question.options),
        correct_answer=question.correct_answer,
    )


def _serialise_result(result: QuizGenerationResult) -> GenerateResponse:
    return GenerateResponse(
        count=result.achieved,
        requested=result.requested,
        achieved=result.achieved,
        state=result.state.value,
        quality_flags=list(result.quality_flags),
        questions=[_serialise_question(question) for question in result.questions],
    )


def _serialise_chapters(extraction: ChapterExtraction) -> ChaptersResponse:
    return ChaptersResponse(
        fallback=extraction.fallback,
        chapters=[
            ChapterModel(
                index=chapter.index,
                title=chapter.title,
                length=len(chapter.content),
                preview=chapter.content[:200],
            )
            for chapter in extraction.chapters
        ],
    )


def _parse_chapter_indexes(raw: Optional[str]) -> Optional[List[int]]:
    if raw is None or not raw.strip():
        return None
    try:
        value: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="selectedChapterIndexes must be a JSON list") from exc
    if not isinstance(value, list) or not all(isinstance(item, int) and not isinstance(item, bool) for item in value):
        raise HTTPException(status_code=400, detail="selectedChapterIndexes must be a list of integers")
    return value


def _http_error(error: QuizPipelineError) -> HTTPException:
    status_code = 503 if isinstance(error, GenerationFailure) else 422
    return HTTPException(status_code=status_code, detail={"code": error.code, "message": error.user_message})


@router.post("/generate", response_model=GenerateResponse, response_model_by_alias=True)
def generate_quiz(
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    num_questions: int = Form(10, alias="numQuestions", ge=1, le=MAX_QUESTIONS),
    difficulty: str = Form(Difficulty.NORMAL.value),
    selected_chapter_indexes: Optional[str] = Form(None, alias="selectedChapterIndexes"),
    quiz_service: QuizService = Depends(get_quiz_service),
) -> GenerateResponse:
    """Generate multiple-choice questions from an uploaded file or pasted text."""

    try:
        level = Difficulty.parse(difficulty)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    chapter_indexes = _parse_chapter_indexes(selected_chapter_indexes)

    try:
        if file is not None and file.filename:
            data = file.file.read()
            result = quiz_service.generate(
                data,
                file.filename,
                num_questions,
                level,
                mime_type=file.content_type,
                chapter_indexes=chapter_indexes,
            )
        elif text and text.strip():
            result = quiz_service.generate_from_text(text, num_questions, level)
        else:
            raise HTTPException(status_code=400, detail="Provide either a file or text")
    except QuizPipelineError as error:
        raise _http_error(error) from error
    return _serialise_result(result)


@router.post("/chapters", response_model=ChaptersResponse)
def extract_chapters(
    file: UploadFile = File(...),
    quiz_service: QuizService = Depends(get_quiz_service),
) -> ChaptersResponse:
    """Return the chapters detected in an uploaded document."""

    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        extraction = quiz_service.extract_chapters(file.file.read(), file.filename, mime_type=file.content_type)
    except QuizPipelineError as error:
        raise _http_error(error) from error
    return _serialise_chapters(extraction)
