"""Plan prompt construction and diet analysis."""

from __future__ import annotations

import json
from datetime import date, timedelta

import pytest

from factories import make_dish
from mealpilot.llm.interface import LLMError
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import EnrichedSlot, HistoricalOrder, MealTime
from mealpilot.planner.analysis import analyze_history, build_analysis_prompt
from mealpilot.planner.generator import LLMPlanGenerator, build_plan_prompt, history_payload


class CannedLLM:
    model_name = "canned-model"

    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


def _history(count: int) -> list[HistoricalOrder]:
    start = date(2024, 1, 1)
    return [
        HistoricalOrder(
            date=start + timedelta(days=index),
            meal_time=MealTime.LUNCH,
            dish_name=f"Dish {index}",
            restaurant_name="Canteen",
            price_in_cent=2000,
        )
        for index in range(count)
    ]


def _slots() -> list[EnrichedSlot]:
    return [
        EnrichedSlot(
            date=date(2024, 6, 10),
            meal_time=MealTime.LUNCH,
            tab_unique_id="tab-1",
            menu=[make_dish("55", "Mapo Tofu", "Sichuan House", 2800)],
        )
    ]


def test_plan_prompt_carries_constraints():
    prefs = UserPreferences(
        excluded_keywords="pork, peanut",
        vendor_weights={"Sichuan House": 2},
        planning_mode="health",
    )

    prompt = build_plan_prompt(_slots(), _history(2), prefs)

    assert "pork, peanut" in prompt
    assert '"Sichuan House": 2' in prompt
    assert "low calorie" in prompt
    assert '"tabId": "tab-1"' in prompt
    assert "Mapo Tofu" in prompt


def test_history_payload_keeps_most_recent_rows():
    rows = history_payload(_history(70))

    assert len(rows) == 60
    assert rows[-1]["dish"] == "Dish 69"


def test_generator_returns_raw_text_unvalidated():
    llm = CannedLLM('[{"date": "2024-06-10", "mealTime": "LUNCH", "dishId": "999"}]')
    generator = LLMPlanGenerator(llm)

    raw = generator(_slots(), [], UserPreferences())

    assert json.loads(raw)[0]["dishId"] == "999"
    assert len(llm.prompts) == 1


def test_generator_rejects_blank_reply():
    with pytest.raises(LLMError):
        LLMPlanGenerator(CannedLLM("   "))(_slots(), [], UserPreferences())


def test_analysis_prompt_language_and_window():
    prompt = build_analysis_prompt(_history(40), language="zh-CN")

    assert "分析以下饮食订单历史" in prompt
    assert "Dish 39" in prompt
    assert "Dish 9\"" not in prompt


def test_analyze_history_sets_model_name():
    reply = json.dumps(
        {
            "summary": "Mostly rice dishes.",
            "score": 72,
            "suggestions": ["More greens", "Less oil", "Drink water"],
            "calorieTrend": [{"date": "2024-01-01", "calories": 650}],
            "cuisineDistribution": [{"name": "Sichuan", "value": 4}],
        }
    )

    result = analyze_history(_history(3), UserPreferences(), llm=CannedLLM(reply))

    assert result.score == 72
    assert result.model_name == "canned-model"
    assert result.cuisine_distribution[0].name == "Sichuan"
    assert result.model_dump(by_alias=True)["modelName"] == "canned-model"


def test_analyze_history_rejects_empty_history():
    with pytest.raises(ValueError):
        analyze_history([], UserPreferences(), llm=CannedLLM("{}"))


def test_analyze_history_wraps_bad_output():
    with pytest.raises(LLMError):
        analyze_history(_history(1), UserPreferences(), llm=CannedLLM("no analysis today"))
