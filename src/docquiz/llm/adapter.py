"""Adapter abstractions for the quiz-generation language model."""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Iterable, Optional, Union

import httpx

from docquiz.config import Settings, get_settings

LOGGER = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Base exception raised for language model call failures."""


class LLMHTTPError(LLMError):
    """Raised when the endpoint answers with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"LLM endpoint returned HTTP {status_code}: {message}")


class LLMRateLimitError(LLMHTTPError):
    """Raised on HTTP 429 responses."""

    def __init__(self, message: str, retry_after: Optional[str] = None) -> None:
        self.retry_after = retry_after
        super().__init__(429, message)


class LLMConnectionError(LLMError):
    """Raised when the endpoint cannot be reached or times out."""


class LLMResponseError(LLMError):
    """Raised when a response envelope has no completion text."""


class LLMAdapter(ABC):
    """Common contract: one prompt in, the raw completion text out."""

    name = "llm"

    @property
    def ready(self) -> bool:
        return True

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the model completion for ``prompt`` or raise :class:`LLMError`."""


class ChatCompletionAdapter(LLMAdapter):
    """Call an OpenAI-compatible ``/chat/completions`` endpoint with httpx."""

    name = "chat-completions"

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "ChatCompletionAdapter":
        return cls(
            settings.llm_api_endpoint,
            settings.llm_api_key,
            settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds,
            client=client,
        )

    def complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        started = time.perf_counter()
        try:
            response = self._client.post(self.endpoint, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise LLMConnectionError(f"LLM request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise LLMConnectionError(f"LLM request failed: {exc}") from exc

        LOGGER.debug(
            "LLM call returned %s in %.1f ms", response.status_code, (time.perf_counter() - started) * 1000.0
        )
        if response.status_code == 429:
            raise LLMRateLimitError(response.text[:200], retry_after=response.headers.get("retry-after"))
        if not response.is_success:
            raise LLMHTTPError(response.status_code, response.text[:200])

        try:
            body = response.json()
        except ValueError as exc:
            raise LLMResponseError("LLM response is not JSON") from exc
        return self._completion_text(body)

    @staticmethod
    def _completion_text(body: object) -> str:
        try:
            choice = body["choices"][0]  # type: ignore[index]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError("LLM response has no choices") from exc

        message = choice.get("message") if isinstance(choice, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if content is None and isinstance(choice, dict):
            content = choice.get("content")
        if not isinstance(content, str):
            raise LLMResponseError("LLM response has no completion text")
        return content

    def close(self) -> None:
        self._client.close()


class LLMStub(LLMAdapter):
    """Fallback used when no endpoint is configured."""

    name = "stub"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or "LLM_API_ENDPOINT / LLM_API_KEY are not set."

    @property
    def ready(self) -> bool:
        return False

    def complete(self, prompt: str) -> str:
        raise LLMError(self.reason)


Scripted = Union[str, BaseException]


class MockLLMAdapter(LLMAdapter):
    """Adapter replaying scripted replies; exceptions in the script are raised.

    ``responder`` may be given instead of a script to compute replies from the
    prompt. Every prompt received is kept in :attr:`prompts`.
    """

    name = "mock"

    def __init__(
        self,
        responses: Iterable[Scripted] = (),
        *,
        responder: Optional[Callable[[str], str]] = None,
        default: Optional[Scripted] = None,
    ) -> None:
        self._responses = deque(responses)
        self._responder = responder
        self._default = default
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._responses:
            reply: Optional[Scripted] = self._responses.popleft()
        elif self._responder is not None:
            return self._responder(prompt)
        else:
            reply = self._default
        if reply is None:
            raise LLMError("MockLLMAdapter script exhausted")
        if isinstance(reply, BaseException):
            raise reply
        return reply

    @property
    def calls(self) -> int:
        return len(self.prompts)


def get_llm(settings: Optional[Settings] = None) -> LLMAdapter:
    """Return the configured adapter, or :class:`LLMStub` when nothing is configured."""

    settings = settings or get_settings()
    if not settings.llm_configured:
        LOGGER.warning("LLM endpoint is not configured; using stub adapter")
        return LLMStub()
    LOGGER.info("Using chat completion endpoint %s with model %s", settings.llm_api_endpoint, settings.llm_model)
    return ChatCompletionAdapter.from_settings(settings)


__all__ = [
    "ChatCompletionAdapter",
    "LLMAdapter",
    "LLMConnectionError",
    "LLMError",
    "LLMHTTPError",
    "LLMRateLimitError",
    "LLMResponseError",
    "LLMStub",
    "MockLLMAdapter",
    "get_llm",
]
