"""Prompting, response parsing and orchestration of quiz generation."""

from .models import Difficulty, GenerationRequest, GenerationState, Question, QuizGenerationResult
from .orchestrator import QuizGenerator, build_generator
from .prompt_builder import build_prompt, extract_content_sample
from .response_parser import parse_response

__all__ = [
    "Difficulty",
    "GenerationRequest",
    "GenerationState",
    "Question",
    "QuizGenerationResult",
    "QuizGenerator",
    "build_generator",
    "build_prompt",
    "extract_content_sample",
    "parse_response",
]
