"""Shared helpers for planner modules."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from mealpilot.client.base import MealGateway
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import Dish, MealTime, Slot, SlotStatus

logger = logging.getLogger(__name__)

TARGET_TIMES = {
    MealTime.BREAKFAST: "07:00",
    MealTime.LUNCH: "09:00",
    MealTime.DINNER: "12:00",
}

PLANNABLE_STATUSES = frozenset({SlotStatus.AVAILABLE, SlotStatus.NO_SERVICE})


def target_time_for(day: date, meal_time: MealTime) -> str:
    """Return the ``YYYY-MM-DD HH:MM`` target time the platform expects for a period."""
    return f"{day.isoformat()} {TARGET_TIMES[meal_time]}"


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def is_eligible(slot: Slot, prefs: UserPreferences) -> bool:
    """Whether the planner should try to fill ``slot``.

    Breakfast is never auto-planned, whatever ``enable_breakfast`` says.
    """
    if slot.meal_time is MealTime.BREAKFAST:
        return False
    if is_weekend(slot.date) and not prefs.enable_weekends:
        return False
    return slot.status in PLANNABLE_STATUSES


def eligible_slots(slots: Iterable[Slot], prefs: UserPreferences) -> list[Slot]:
    return [slot for slot in slots if is_eligible(slot, prefs)]


def load_menu(gateway: MealGateway, slot: Slot) -> list[Dish]:
    """Fetch what can be ordered for ``slot``; restaurants stand in for dishes at breakfast."""

    if not slot.tab_unique_id:
        return []
    target_time = target_time_for(slot.date, slot.meal_time)
    if slot.meal_time is MealTime.BREAKFAST:
        return gateway.fetch_restaurants(slot.tab_unique_id, target_time)
    return gateway.fetch_dishes(slot.tab_unique_id, target_time)
