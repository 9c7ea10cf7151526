"""Unit tests for LLM adapter implementations."""
from __future__ import annotations

import dataclasses
import json

import httpx
import pytest

from docquiz.llm import (
    ChatCompletionAdapter,
    LLMConnectionError,
    LLMError,
    LLMHTTPError,
    LLMRateLimitError,
    LLMResponseError,
    LLMStub,
    MockLLMAdapter,
    get_llm,
)

ENDPOINT = "https://llm.example.test/v1/chat/completions"


def _adapter(handler) -> ChatCompletionAdapter:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ChatCompletionAdapter(ENDPOINT, "secret", "test-model", temperature=0.2, max_tokens=500, client=client)


def test_chat_completion_posts_prompt_and_returns_content() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "[]"}}]})

    assert _adapter(handler).complete("Write questions") == "[]"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"] == [{"role": "user", "content": "Write questions"}]
    assert seen["body"]["temperature"] == 0.2
    assert seen["body"]["max_tokens"] == 500


def test_choice_level_content_is_accepted() -> None:
    adapter = _adapter(lambda request: httpx.Response(200, json={"choices": [{"content": "plain"}]}))

    assert adapter.complete("prompt") == "plain"


def test_rate_limit_is_reported() -> None:
    adapter = _adapter(lambda request: httpx.Response(429, text="slow down", headers={"Retry-After": "3"}))

    with pytest.raises(LLMRateLimitError) as excinfo:
        adapter.complete("prompt")

    assert excinfo.value.status_code == 429
    assert excinfo.value.retry_after == "3"


def test_server_error_is_reported() -> None:
    adapter = _adapter(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(LLMHTTPError) as excinfo:
        adapter.complete("prompt")

    assert excinfo.value.status_code == 500
    assert not isinstance(excinfo.value, LLMRateLimitError)


def test_connection_failure_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LLMConnectionError):
        _adapter(handler).complete("prompt")


def test_timeout_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(LLMConnectionError):
        _adapter(handler).complete("prompt")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"choices": [{"message": {"content": None}}]}),
        httpx.Response(200, json={"error": "nope"}),
    ],
)
def test_malformed_envelope_is_reported(response: httpx.Response) -> None:
    with pytest.raises(LLMResponseError):
        _adapter(lambda request: response).complete("prompt")


def test_stub_is_not_ready() -> None:
    stub = LLMStub()

    assert not stub.ready
    with pytest.raises(LLMError):
        stub.complete("prompt")


def test_mock_adapter_replays_script() -> None:
    adapter = MockLLMAdapter(["first", LLMConnectionError("down")], default="later")

    assert adapter.complete("a") == "first"
    with pytest.raises(LLMConnectionError):
        adapter.complete("b")
    assert adapter.complete("c") == "later"
    assert adapter.prompts == ["a", "b", "c"]
    assert adapter.calls == 3


def test_mock_adapter_without_script_fails() -> None:
    with pytest.raises(LLMError):
        MockLLMAdapter().complete("prompt")


def test_get_llm_selects_adapter(settings) -> None:
    adapter = get_llm(settings)
    assert isinstance(adapter, ChatCompletionAdapter)
    assert adapter.ready
    adapter.close()

    unconfigured = dataclasses.replace(settings, llm_api_key=None)
    assert isinstance(get_llm(unconfigured), LLMStub)
