"""LLM-backed diet analysis of recent orders."""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from mealpilot.llm.interface import LLMError, PlannerLLM, build_planner_llm
from mealpilot.llm.parsing import loads_lenient
from mealpilot.models.analysis import AnalysisResult
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import HistoricalOrder
from mealpilot.upstream.transform import history_to_wire

logger = logging.getLogger(__name__)

ANALYSIS_ORDER_LIMIT = 30

ANALYSIS_PROMPT_EN = """Analyze the following food order history.
Input: {history_json} (last {limit} orders)

Tasks:
1. Estimate calories for each meal (approximate, based on the dish name).
2. Analyze cuisine variety.
3. Give a health score (0-100).
4. Provide 3 specific improvements.

Output JSON schema:
{{
  "summary": "String paragraph",
  "score": Number,
  "suggestions": ["String", "String", "String"],
  "calorieTrend": [{{"date": "YYYY-MM-DD", "calories": Number}}],
  "cuisineDistribution": [{{"name": "String", "value": Number}}]
}}
Ensure STRICT JSON format. Keys must be double quoted.
"""

ANALYSIS_PROMPT_ZH = """分析以下饮食订单历史。
输入: {history_json} (最近{limit}个订单)

任务:
1. 估算每餐的卡路里（根据菜名估算）。
2. 分析菜系多样性。
3. 给出一个健康评分 (0-100)。
4. 提供3个具体的改进建议。

必须返回标准的 JSON 格式，KEY 必须用双引号包裹，不要返回 markdown 格式。

输出 JSON 格式示例:
{{
  "summary": "字符串段落",
  "score": 85,
  "suggestions": ["建议1", "建议2", "建议3"],
  "calorieTrend": [{{"date": "2023-01-01", "calories": 500}}],
  "cuisineDistribution": [{{"name": "菜系名", "value": 10}}]
}}
"""


def build_analysis_prompt(history: Sequence[HistoricalOrder], language: str = "en") -> str:
    recent = list(history)[-ANALYSIS_ORDER_LIMIT:]
    template = ANALYSIS_PROMPT_ZH if language == "zh" or language.startswith("zh-") else ANALYSIS_PROMPT_EN
    return template.format(
        history_json=json.dumps(history_to_wire(recent), ensure_ascii=False),
        limit=ANALYSIS_ORDER_LIMIT,
    )


def analyze_history(
    history: Sequence[HistoricalOrder],
    prefs: UserPreferences,
    *,
    language: str = "en",
    llm: Optional[PlannerLLM] = None,
) -> AnalysisResult:
    """Score the user's recent diet; raises ``ValueError`` for empty history and ``LLMError`` on provider failure."""

    if not history:
        raise ValueError("No history to analyze")

    backend = llm or build_planner_llm(prefs)
    raw = backend.generate(build_analysis_prompt(history, language))
    try:
        payload = loads_lenient(raw)
    except ValueError as exc:
        raise LLMError(str(exc)) from exc
    if not isinstance(payload, dict):
        raise LLMError("Analysis response was not a JSON object")

    payload["modelName"] = backend.model_name
    try:
        result = AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        raise LLMError(f"Analysis response failed validation: {exc}") from exc
    logger.info("Analyzed %d orders with %s (score=%s)", len(history), backend.model_name, result.score)
    return result
