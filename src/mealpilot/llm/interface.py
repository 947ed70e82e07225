"""LLM runtime abstraction layer."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

import httpx

from mealpilot.config import Settings, get_settings
from mealpilot.models.preferences import UserPreferences

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when a provider call fails or yields no content."""


class PlannerLLM(Protocol):
    """Protocol for language model backends used by planning and analysis."""

    model_name: str

    def generate(self, prompt: str) -> str:
        """Return generated text for the supplied prompt."""


def chat_completion(
    *,
    base_url: str,
    api_key: str,
    messages: Sequence[dict[str, Any]],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> dict[str, Any]:
    """POST to an OpenAI-compatible ``/chat/completions`` endpoint and return its JSON."""

    settings = get_settings()
    endpoint = base_url.rstrip("/")
    if not endpoint.endswith("/chat/completions"):
        endpoint = f"{endpoint}/chat/completions"
    payload = {
        "model": model or settings.custom_llm_default_model,
        "messages": list(messages),
        "temperature": settings.llm_temperature if temperature is None else temperature,
    }

    try:
        with httpx.Client(
            timeout=timeout if timeout is not None else settings.llm_timeout,
            transport=transport,
        ) as client:
            response = client.post(
                endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
    except httpx.HTTPError as exc:
        raise LLMError(f"AI provider request failed: {exc}") from exc

    if response.is_error:
        raise LLMError(f"AI provider returned {response.status_code}: {response.text[:200]}")
    try:
        return response.json()
    except ValueError as exc:
        raise LLMError("AI provider returned a non-JSON body") from exc


def _completion_text(body: dict[str, Any]) -> str:
    choices = body.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return (message.get("content") or "").strip()


class OpenAICompatibleLLM:
    """Any endpoint speaking the OpenAI chat-completions protocol."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url
        self._api_key = api_key
        self._model = model or settings.custom_llm_default_model
        self._temperature = settings.llm_temperature if temperature is None else temperature
        self._timeout = timeout
        self._transport = transport
        self.model_name = model or "Custom Model"

    def generate(self, prompt: str) -> str:
        body = chat_completion(
            base_url=self._base_url,
            api_key=self._api_key,
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self._temperature,
            timeout=self._timeout,
            transport=self._transport,
        )
        content = _completion_text(body)
        if not content:
            raise LLMError("Empty response from AI")
        return content


class GeminiLLM:
    """Hosted Gemini model via the REST ``generateContent`` call in JSON mode."""

    def __init__(
        self,
        *,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key
        self._base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._temperature = settings.llm_temperature if temperature is None else temperature
        self._timeout = timeout if timeout is not None else settings.llm_timeout
        self._transport = transport
        self.model_name = model or settings.gemini_model

    def generate(self, prompt: str) -> str:
        endpoint = f"{self._base_url}/models/{self.model_name}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self._temperature,
            },
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    endpoint,
                    json=payload,
                    headers={"x-goog-api-key": self._api_key},
                )
        except httpx.HTTPError as exc:
            raise LLMError(f"Gemini request failed: {exc}") from exc

        if response.is_error:
            raise LLMError(f"Gemini returned {response.status_code}: {response.text[:200]}")

        body = response.json()
        candidates = body.get("candidates") or []
        parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
        text = "".join(part.get("text") or "" for part in parts).strip()
        if not text:
            raise LLMError("Empty response from AI")
        return text


def build_planner_llm(
    prefs: UserPreferences,
    settings: Optional[Settings] = None,
) -> PlannerLLM:
    """Return the backend selected by ``prefs``; raise ``LLMError`` if it is not configured."""

    settings = settings or get_settings()
    if not prefs.ai_config_complete():
        raise LLMError(f"AI provider '{prefs.ai_provider}' is not fully configured")

    if prefs.ai_provider == "custom":
        return OpenAICompatibleLLM(
            base_url=prefs.custom_ai_base_url or "",
            api_key=prefs.custom_ai_api_key or "",
            model=prefs.custom_ai_model,
            timeout=settings.llm_timeout,
        )
    return GeminiLLM(
        api_key=prefs.gemini_api_key or "",
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.llm_timeout,
    )
