import logging

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse

from docquiz.api.quiz import router as quiz_router
from docquiz.config import get_settings
from docquiz.logging_config import configure_logging
from docquiz.services.quiz import QuizService, get_quiz_service

configure_logging(get_settings().log_level)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="DocQuiz API")
app.include_router(quiz_router)


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz")
def healthcheck(quiz_service: QuizService = Depends(get_quiz_service)) -> dict[str, object]:
    """Liveness probe reporting whether quiz generation can reach a model."""

    settings = quiz_service.settings
    return {
        "status": "ok",
        "llm_configured": quiz_service.llm_ready,
        "llm_model": settings.llm_model,
    }
