"""Structured lifecycle logging helpers for the extraction and generation pipeline."""

from __future__ import annotations

import logging
import time
import traceback
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from docquiz.logging_config import AUDIT_LOGGER_NAME

LOGGER = logging.getLogger("docquiz.telemetry")
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


def request_logger(
    name: str = "docquiz", request_id: str | None = None, **fields: Any
) -> logging.LoggerAdapter:
    """Return a logger adapter that stamps every record with a request id."""

    extra = {"request_id": request_id or uuid.uuid4().hex[:12]}
    extra.update(fields)
    return logging.LoggerAdapter(logging.getLogger(name), extra)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def _request_extra(logger: Optional[LoggerLike]) -> dict[str, Any]:
    extra = getattr(logger, "extra", None)
    return dict(extra) if isinstance(extra, dict) else {}


def log_event(
    logger: Optional[LoggerLike],
    step: str,
    *,
    level: str = "info",
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step}
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = str(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = exc

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_strategy_attempt(
    logger: Optional[LoggerLike],
    *,
    parser: str,
    strategy: str,
    outcome: str,
    length: int,
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    """Record one cascade strategy attempt in the audit trail and the request log."""

    details = {"parser": parser, "strategy": strategy, "outcome": outcome, "length": length}
    log_event(
        logger,
        "extraction.strategy",
        level="warning" if error is not None else "info",
        duration_ms=duration_ms,
        details=details,
        exc=str(error) if error is not None else None,
    )
    AUDIT_LOGGER.info(
        {
            "event": "extraction.strategy",
            "duration_ms": round(duration_ms, 3),
            "error": str(error) if error is not None else None,
            **details,
        },
        extra=_request_extra(logger),
    )


def emit_chunk_event(
    logger: Optional[LoggerLike],
    step: str,
    *,
    ordinal: int,
    level: str = "info",
    exc: BaseException | None = None,
    **fields: Any,
) -> None:
    log_event(logger, f"generation.chunk.{step}", level=level, exc=exc, details={"ordinal": ordinal, **fields})


def emit_generation_summary(
    logger: Optional[LoggerLike],
    *,
    state: str,
    requested: int,
    achieved: int,
    chunk_count: int,
    failed_chunks: int,
    duration_ms: float,
) -> None:
    details = {
        "state": state,
        "requested": requested,
        "achieved": achieved,
        "chunk_count": chunk_count,
        "failed_chunks": failed_chunks,
    }
    log_event(logger, "generation.complete", duration_ms=duration_ms, details=details)


def emit_exception(
    logger: Optional[LoggerLike], *, module: str, error: BaseException, **context: Any
) -> None:
    details = {"module": module, "type": error.__class__.__name__, "traceback": _format_exception(error)}
    details.update(context)
    log_event(logger, "exception", level="error", details=details, exc=str(error))


@contextmanager
def traced_duration(step: str, *, logger: Optional[LoggerLike] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="warning", details=fields, exc=str(error))
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "AUDIT_LOGGER",
    "LoggerLike",
    "emit_chunk_event",
    "emit_exception",
    "emit_generation_summary",
    "emit_strategy_attempt",
    "log_event",
    "request_logger",
    "traced_duration",
]
