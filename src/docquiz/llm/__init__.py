"""Language model boundary."""

from .adapter import (
    ChatCompletionAdapter,
    LLMAdapter,
    LLMConnectionError,
    LLMError,
    LLMHTTPError,
    LLMRateLimitError,
    LLMResponseError,
    LLMStub,
    MockLLMAdapter,
    get_llm,
)

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
