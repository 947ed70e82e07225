"""Lenient decoding of JSON emitted by language models."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_BARE_KEY_RE = re.compile(r"([{,]\s*)([a-zA-Z0-9_]+?)\s*:")


def strip_code_fences(text: str) -> str:
    """Return the body of the first Markdown code fence, or the text unchanged."""

    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def extract_json_blob(text: str) -> str:
    """Return the outermost JSON array or object substring from raw LLM text."""

    body = strip_code_fences(text)
    starts = [index for index in (body.find("["), body.find("{")) if index != -1]
    if not starts:
        return body
    start = min(starts)
    closer = "]" if body[start] == "[" else "}"
    end = body.rfind(closer)
    if end > start:
        return body[start : end + 1].strip()
    return body


def sanitize_json(text: str) -> str:
    """Quote bare object keys (``{name: 1}`` -> ``{"name": 1}``)."""

    return _BARE_KEY_RE.sub(r'\1"\2":', text.strip())


def loads_lenient(text: str) -> Any:
    """Decode strictly first, then retry after fence stripping and key quoting.

    Raises ``ValueError`` when neither pass yields JSON.
    """

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    blob = extract_json_blob(text)
    try:
        return json.loads(blob)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(sanitize_json(blob))
    except json.JSONDecodeError as exc:
        snippet = blob.replace("\n", " ")[:200]
        raise ValueError(f"LLM output is not valid JSON: {exc}; payload={snippet}") from exc
