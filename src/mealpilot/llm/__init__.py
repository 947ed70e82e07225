"""Language model backends and output parsing."""

from mealpilot.llm.interface import (
    GeminiLLM,
    LLMError,
    OpenAICompatibleLLM,
    PlannerLLM,
    build_planner_llm,
    chat_completion,
)
from mealpilot.llm.parsing import extract_json_blob, loads_lenient, sanitize_json

__all__ = [
    "GeminiLLM",
    "LLMError",
    "OpenAICompatibleLLM",
    "PlannerLLM",
    "build_planner_llm",
    "chat_completion",
    "extract_json_blob",
    "loads_lenient",
    "sanitize_json",
]
