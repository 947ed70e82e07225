"""LLM output parsing and provider backends."""

from __future__ import annotations

import json

import httpx
import pytest

from mealpilot.llm.interface import (
    GeminiLLM,
    LLMError,
    OpenAICompatibleLLM,
    build_planner_llm,
    chat_completion,
)
from mealpilot.llm.parsing import extract_json_blob, loads_lenient, sanitize_json, strip_code_fences
from mealpilot.models.preferences import UserPreferences


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("  plain  ") == "plain"


def test_extract_json_blob_trims_chatter():
    text = 'Here is your plan:\n[{"dishId": "1"}]\nEnjoy!'
    assert extract_json_blob(text) == '[{"dishId": "1"}]'


def test_sanitize_json_quotes_bare_keys():
    assert json.loads(sanitize_json('{score: 80, summary: "ok"}')) == {"score": 80, "summary": "ok"}


def test_loads_lenient_raises_value_error():
    with pytest.raises(ValueError):
        loads_lenient("nothing to see")


def test_chat_completion_posts_bearer_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

    body = chat_completion(
        base_url="https://llm.test/v1/",
        api_key="sk-test",
        model="local-model",
        messages=[{"role": "user", "content": "hello"}],
        transport=httpx.MockTransport(handler),
    )

    assert body["choices"][0]["message"]["content"] == "hi"
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "local-model"


def test_openai_compatible_empty_reply_is_an_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
    llm = OpenAICompatibleLLM(base_url="https://llm.test/v1", api_key="k", transport=transport)

    assert llm.model_name == "Custom Model"
    with pytest.raises(LLMError):
        llm.generate("plan please")


def test_gemini_uses_header_key_and_json_mode():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"candidates": [{"content": {"parts": [{"text": "[]"}]}}]}
        )

    llm = GeminiLLM(
        api_key="g-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )

    assert llm.generate("prompt") == "[]"
    assert seen["path"] == "/v1beta/models/gemini-test:generateContent"
    assert seen["key"] == "g-key"
    assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"


def test_provider_http_error_is_wrapped():
    transport = httpx.MockTransport(lambda request: httpx.Response(429, text="slow down"))
    llm = GeminiLLM(api_key="g-key", transport=transport)

    with pytest.raises(LLMError, match="429"):
        llm.generate("prompt")


def test_build_planner_llm_by_provider():
    with pytest.raises(LLMError):
        build_planner_llm(UserPreferences())

    custom = build_planner_llm(
        UserPreferences(
            ai_provider="custom",
            custom_ai_base_url="https://llm.test/v1",
            custom_ai_api_key="k",
            custom_ai_model="qwen",
        )
    )
    assert isinstance(custom, OpenAICompatibleLLM)
    assert custom.model_name == "qwen"
    assert isinstance(build_planner_llm(UserPreferences(gemini_api_key="g")), GeminiLLM)
