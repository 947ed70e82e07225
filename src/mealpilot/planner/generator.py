"""Weekly plan generation through a language model."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence, Union

from mealpilot.llm.interface import LLMError, PlannerLLM
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import EnrichedSlot, HistoricalOrder

logger = logging.getLogger(__name__)

HISTORY_PROMPT_LIMIT = 60

RawPlan = Union[str, list[Any]]
PlanGenerator = Callable[
    [Sequence[EnrichedSlot], Sequence[HistoricalOrder], UserPreferences],
    RawPlan,
]

MODE_GUIDANCE = {
    "health": "Prioritize low calorie, high protein, and balanced macros.",
    "preference": "Prioritize favorite restaurants and dishes similar to the history.",
    "balanced": "Balance between health and taste variety.",
}

PLAN_PROMPT = """You are an expert dietary planner with taste preference analysis capabilities.

## Step 1: Taste profile
Historical orders (past 4 weeks):
{history_json}

From this history identify frequently ordered dish types and ingredients,
favorite restaurants, cuisine preferences, typical price range and any
recurring patterns.

## Step 2: Choose ONE dish for each slot
Available slots and menus:
{slots_json}

Constraints:
1. Exclude dishes containing any of these keywords: [{exclusions}].
2. Vendor weights (higher is better, negative means banned): {weights}.
3. Mode: {mode}
4. Avoid repeating the same main ingredient twice in a row.
5. Prefer dishes that match the taste profile from Step 1.

## Output format
Return ONLY a JSON array. Keys must be double quoted.
[
  {{"date": "YYYY-MM-DD", "mealTime": "LUNCH" | "DINNER", "dishId": "id_from_options", "reason": "why this fits"}}
]
"""


def slots_payload(slots: Sequence[EnrichedSlot]) -> list[dict[str, Any]]:
    return [
        {
            "date": slot.date.isoformat(),
            "time": slot.meal_time.value,
            "tabId": slot.tab_unique_id,
            "options": [
                {
                    "id": dish.id,
                    "name": dish.name,
                    "restaurant": dish.restaurant_name,
                    "price": dish.price_in_cent,
                }
                for dish in slot.menu
            ],
        }
        for slot in slots
    ]


def history_payload(history: Sequence[HistoricalOrder]) -> list[dict[str, str]]:
    return [
        {"dish": order.dish_name, "restaurant": order.restaurant_name, "date": order.date.isoformat()}
        for order in list(history)[-HISTORY_PROMPT_LIMIT:]
    ]


def build_plan_prompt(
    slots: Sequence[EnrichedSlot],
    history: Sequence[HistoricalOrder],
    prefs: UserPreferences,
) -> str:
    return PLAN_PROMPT.format(
        history_json=json.dumps(history_payload(history), ensure_ascii=False),
        slots_json=json.dumps(slots_payload(slots), ensure_ascii=False),
        exclusions=", ".join(prefs.excluded_keywords),
        weights=json.dumps(prefs.vendor_weights, ensure_ascii=False),
        mode=MODE_GUIDANCE.get(prefs.planning_mode, MODE_GUIDANCE["balanced"]),
    )


class LLMPlanGenerator:
    """Ask an LLM for a weekly plan and hand back its raw, unvalidated text."""

    def __init__(self, llm: PlannerLLM) -> None:
        self._llm = llm

    @property
    def model_name(self) -> str:
        return self._llm.model_name

    def __call__(
        self,
        slots: Sequence[EnrichedSlot],
        history: Sequence[HistoricalOrder],
        prefs: UserPreferences,
    ) -> RawPlan:
        prompt = build_plan_prompt(slots, history, prefs)
        logger.info(
            "Requesting plan from %s for %d slots (history=%d)",
            self._llm.model_name,
            len(slots),
            len(history),
        )
        raw = self._llm.generate(prompt)
        if not raw or not raw.strip():
            raise LLMError("Empty response from AI")
        return raw
