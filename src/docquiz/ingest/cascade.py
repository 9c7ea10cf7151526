"""Ordered extraction strategy cascades.

A format parser is a :class:`CascadeParser` holding an ordered list of
:class:`ExtractionStrategy` objects. Strategies are tried one after another
until a result passes the adequacy check; reordering or adding strategies is
a change to that list only.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from docquiz import config
from docquiz.errors import InvalidContent, ParseFailure
from docquiz.ingest.validation import count_readable_chars, is_adequate_extraction
from docquiz.telemetry import LoggerLike, emit_strategy_attempt

LOGGER = logging.getLogger(__name__)


class ExtractionStrategy(ABC):
    """One way of turning document bytes into text."""

    name: str = "strategy"

    @abstractmethod
    def extract(self, data: bytes, file_name: str) -> str:
        """Return extracted text; raise on failure."""


class FunctionStrategy(ExtractionStrategy):
    """Adapter exposing a plain ``(data, file_name) -> str`` callable as a strategy."""

    def __init__(self, name: str, func: Callable[[bytes, str], str]) -> None:
        self.name = name
        self._func = func

    def extract(self, data: bytes, file_name: str) -> str:
        return self._func(data, file_name)


@dataclass(slots=True)
class StrategyAttempt:
    strategy: str
    outcome: str
    length: int
    error: Optional[str] = None


@dataclass(slots=True)
class ParseOutcome:
    text: str
    strategy: Optional[str]
    adequate: bool
    attempts: List[StrategyAttempt] = field(default_factory=list)


class CascadeParser:
    """Run strategies in order and keep the first adequate result."""

    def __init__(
        self,
        name: str,
        strategies: Sequence[ExtractionStrategy],
        *,
        min_chars: int = config.MIN_TEXT_LENGTH,
        logger: Optional[LoggerLike] = None,
    ) -> None:
        if not strategies:
            raise ValueError("a cascade needs at least one strategy")
        self.name = name
        self.strategies = list(strategies)
        self.min_chars = min_chars
        self.logger = logger or LOGGER

    def extract(self, data: bytes, file_name: str) -> str:
        """Return the best text this parser can recover (see :meth:`parse`)."""

        return self.parse(data, file_name).text

    def parse(self, data: bytes, file_name: str, logger: Optional[LoggerLike] = None) -> ParseOutcome:
        """Try each strategy; fall back to the longest readable candidate.

        Raises :class:`InvalidContent` when a strategy rejected the document and
        nothing readable was found, and :class:`ParseFailure` when no strategy
        yielded ``min_chars`` readable characters.
        """

        log = logger or self.logger
        attempts: List[StrategyAttempt] = []
        best_text = ""
        best_strategy: Optional[str] = None
        rejection: Optional[InvalidContent] = None

        for strategy in self.strategies:
            started = time.perf_counter()
            try:
                text = (strategy.extract(data, file_name) or "").strip()
            except InvalidContent as error:
                rejection = error
                self._record(log, attempts, strategy, "rejected", 0, started, error)
                continue
            except Exception as error:
                self._record(log, attempts, strategy, "error", 0, started, error)
                continue

            if is_adequate_extraction(text, self.min_chars):
                self._record(log, attempts, strategy, "accepted", len(text), started)
                return ParseOutcome(text=text, strategy=strategy.name, adequate=True, attempts=attempts)

            self._record(log, attempts, strategy, "inadequate", len(text), started)
            if count_readable_chars(text) >= self.min_chars and len(text) > len(best_text):
                best_text, best_strategy = text, strategy.name

        if best_text:
            log.info(
                "%s parser returning best-effort text from %s (%s chars)",
                self.name,
                best_strategy,
                len(best_text),
            )
            return ParseOutcome(text=best_text, strategy=best_strategy, adequate=False, attempts=attempts)

        if rejection is not None:
            raise rejection
        raise ParseFailure(
            f"{self.name} parser: no strategy produced {self.min_chars} readable characters "
            f"(tried {', '.join(attempt.strategy for attempt in attempts)})"
        )

    def _record(
        self,
        log: LoggerLike,
        attempts: List[StrategyAttempt],
        strategy: ExtractionStrategy,
        outcome: str,
        length: int,
        started: float,
        error: Optional[BaseException] = None,
    ) -> None:
        attempts.append(
            StrategyAttempt(strategy=strategy.name, outcome=outcome, length=length, error=str(error) if error else None)
        )
        emit_strategy_attempt(
            log,
            parser=self.name,
            strategy=strategy.name,
            outcome=outcome,
            length=length,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
        )


__all__ = [
    "CascadeParser",
    "ExtractionStrategy",
    "FunctionStrategy",
    "ParseOutcome",
    "StrategyAttempt",
]
