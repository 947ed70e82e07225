"""Mock platform behaviour used for offline runs."""

from __future__ import annotations

from datetime import date

import pytest

from mealpilot.client.base import OrderError
from mealpilot.client.mock import MOCK_ADDRESS, MockGateway
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import MealTime, SlotStatus
from mealpilot.planner.orchestrator import PlanningSession, PlanningStep


def test_calendar_has_weekday_lunch_and_dinner_only():
    slots = MockGateway().fetch_calendar(date(2024, 6, 10), date(2024, 6, 16))

    assert len(slots) == 10
    assert {slot.meal_time for slot in slots} == {MealTime.LUNCH, MealTime.DINNER}
    assert all(slot.date.weekday() < 5 for slot in slots)
    assert slots[0].tab_unique_id == "tab-lunch-2024-06-10"


def test_placed_orders_show_on_calendar_and_can_be_deleted():
    gateway = MockGateway()
    dish = gateway.fetch_dishes("tab-lunch-2024-06-10", "2024-06-10 09:00")[0]

    receipt = gateway.place_order("tab-lunch-2024-06-10", dish.id, "2024-06-10 09:00", MOCK_ADDRESS.unique_id)
    slot = gateway.fetch_calendar(date(2024, 6, 10), date(2024, 6, 10))[0]

    assert receipt.order_unique_id == "mock-order-1"
    assert slot.status is SlotStatus.ORDERED
    assert slot.current_order == dish

    gateway.delete_order(receipt.order_unique_id)
    assert gateway.fetch_calendar(date(2024, 6, 10), date(2024, 6, 10))[0].status is SlotStatus.AVAILABLE


def test_unknown_dish_is_rejected():
    with pytest.raises(OrderError):
        MockGateway().place_order("tab-x", "nope", "2024-06-10 09:00", MOCK_ADDRESS.unique_id)


def test_history_is_deterministic():
    first = MockGateway().fetch_history(date(2024, 6, 1), date(2024, 6, 30))
    second = MockGateway().fetch_history(date(2024, 6, 1), date(2024, 6, 30))

    assert first == second
    assert len(first) == 20


def test_full_session_against_mock_platform():
    gateway = MockGateway()
    prefs = UserPreferences(use_mock_data=True, gemini_api_key="key")
    dish_id = gateway.fetch_dishes("", "")[3].id

    def generator(slots, history, prefs):
        return [{"date": slot.date.isoformat(), "mealTime": slot.meal_time.value, "dishId": dish_id} for slot in slots]

    session = PlanningSession.from_calendar(
        prefs,
        gateway,
        date(2024, 6, 10),
        date(2024, 6, 11),
        generator_factory=lambda _prefs: generator,
        today=date(2024, 6, 9),
    )

    assert session.start() is PlanningStep.REVIEW
    summary = session.confirm()

    assert summary.succeeded == 4
    refreshed = PlanningSession.from_calendar(prefs, gateway, date(2024, 6, 10), date(2024, 6, 11))
    assert refreshed.start() is PlanningStep.FULLY_PLANNED
