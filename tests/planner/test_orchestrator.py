"""Planning session state machine."""

from __future__ import annotations

import json
from datetime import date

import pytest

from factories import make_dish, make_slot
from mealpilot.client.base import GatewayError
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import MealTime, SlotStatus
from mealpilot.planner.orchestrator import (
    LOG_LIMIT,
    NO_MENUS_MESSAGE,
    NO_PLAN_MESSAGE,
    PlanningSession,
    PlanningStep,
    SessionStateError,
)

MONDAY = date(2024, 6, 10)
TUESDAY = date(2024, 6, 11)


class ScriptedGenerator:
    """Returns queued raw plans and records what it was shown."""

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.seen = []

    def __call__(self, slots, history, prefs):
        self.seen.append((list(slots), list(history)))
        return self.outputs.pop(0)


def _plan(*entries):
    return json.dumps(
        [{"date": day.isoformat(), "mealTime": meal.value, "dishId": dish} for day, meal, dish in entries]
    )


def _session(gateway, prefs, generator, **kwargs):
    return PlanningSession(
        prefs,
        gateway,
        gateway.slots,
        generator_factory=lambda _prefs: generator,
        today=date(2024, 6, 9),
        **kwargs,
    )


@pytest.fixture()
def stocked_gateway(fake_gateway, default_book):
    lunch = make_slot(MONDAY, MealTime.LUNCH)
    dinner = make_slot(TUESDAY, MealTime.DINNER)
    fake_gateway.slots = [lunch, dinner]
    fake_gateway.menus[lunch.tab_unique_id] = [make_dish("11"), make_dish("12")]
    fake_gateway.menus[dinner.tab_unique_id] = [make_dish("21")]
    fake_gateway.address_books["ns-1"] = default_book
    return fake_gateway


def test_fully_planned_week_makes_no_calls(fake_gateway):
    fake_gateway.slots = [
        make_slot(MONDAY, MealTime.LUNCH, SlotStatus.ORDERED),
        make_slot(MONDAY, MealTime.DINNER, SlotStatus.CLOSED),
    ]
    generator = ScriptedGenerator()
    session = _session(fake_gateway, UserPreferences(), generator)

    assert session.start() is PlanningStep.FULLY_PLANNED
    assert fake_gateway.calls == []
    assert generator.seen == []


def test_missing_ai_config_stops_before_fetching(stocked_gateway):
    session = _session(stocked_gateway, UserPreferences(), ScriptedGenerator())

    assert session.start() is PlanningStep.AI_CONFIG
    assert stocked_gateway.calls == []

    session.provide_ai_config(gemini_api_key="new-key")
    assert session.step is PlanningStep.IDLE
    assert session.prefs.gemini_api_key == "new-key"


def test_happy_path_reaches_review_then_completes(stocked_gateway, configured_prefs):
    generator = ScriptedGenerator(
        _plan((MONDAY, MealTime.LUNCH, "12"), (TUESDAY, MealTime.DINNER, "21"))
    )
    session = _session(stocked_gateway, configured_prefs, generator)

    assert session.start() is PlanningStep.REVIEW
    assert [p.dish.id for p in session.proposals] == ["12", "21"]
    history_calls = [call for call in stocked_gateway.calls if call[0] == "fetch_history"]
    assert history_calls == [("fetch_history", date(2024, 5, 12), date(2024, 6, 9))]

    summary = session.confirm()

    assert session.step is PlanningStep.COMPLETED
    assert summary.succeeded == 2
    assert summary.failed == 0
    assert [order["dish"] for order in stocked_gateway.placed] == ["12", "21"]


def test_remove_then_confirm_submits_only_remaining(stocked_gateway, configured_prefs):
    generator = ScriptedGenerator(
        _plan((MONDAY, MealTime.LUNCH, "11"), (TUESDAY, MealTime.DINNER, "21"))
    )
    session = _session(stocked_gateway, configured_prefs, generator)
    session.start()

    removed = session.remove_proposal(0)
    session.confirm()

    assert removed.dish.id == "11"
    assert [order["dish"] for order in stocked_gateway.placed] == ["21"]


def test_confirm_requires_proposals(stocked_gateway, configured_prefs):
    generator = ScriptedGenerator(_plan((MONDAY, MealTime.LUNCH, "11")))
    session = _session(stocked_gateway, configured_prefs, generator)
    session.start()
    session.remove_proposal(0)

    with pytest.raises(SessionStateError):
        session.confirm()


def test_unexpected_batch_crash_leaves_session_in_error(stocked_gateway, configured_prefs, monkeypatch):
    def crash(*args, **kwargs):
        raise RuntimeError("connection pool closed")

    monkeypatch.setattr("mealpilot.planner.orchestrator.execute_batch", crash)
    generator = ScriptedGenerator(_plan((MONDAY, MealTime.LUNCH, "11")))
    session = _session(stocked_gateway, configured_prefs, generator)
    session.start()

    with pytest.raises(RuntimeError):
        session.confirm()

    assert session.step is PlanningStep.ERROR
    assert session.error == "Submission stopped: connection pool closed"
    session.cancel()
    assert session.step is PlanningStep.CANCELLED


def test_history_failure_is_not_fatal(stocked_gateway, configured_prefs):
    stocked_gateway.history_error = GatewayError("history down")
    generator = ScriptedGenerator(_plan((MONDAY, MealTime.LUNCH, "11")))
    session = _session(stocked_gateway, configured_prefs, generator)

    assert session.start() is PlanningStep.REVIEW
    assert generator.seen[0][1] == []


def test_no_menus_is_an_error(fake_gateway, configured_prefs):
    fake_gateway.slots = [make_slot(MONDAY, MealTime.LUNCH)]
    session = _session(fake_gateway, configured_prefs, ScriptedGenerator())

    assert session.start() is PlanningStep.ERROR
    assert session.error == NO_MENUS_MESSAGE


def test_failed_menu_fetch_drops_only_that_slot(stocked_gateway, configured_prefs):
    real_fetch = stocked_gateway.fetch_dishes
    monday_tab = stocked_gateway.slots[0].tab_unique_id

    def flaky_fetch(tab_unique_id, target_time):
        if tab_unique_id == monday_tab:
            raise GatewayError("API Error: 500")
        return real_fetch(tab_unique_id, target_time)

    stocked_gateway.fetch_dishes = flaky_fetch
    generator = ScriptedGenerator(_plan((TUESDAY, MealTime.DINNER, "21")))
    session = _session(stocked_gateway, configured_prefs, generator)

    assert session.start() is PlanningStep.REVIEW
    shown_slots, _history = generator.seen[0]
    assert [slot.date for slot in shown_slots] == [TUESDAY]
    assert [(p.date, p.dish.id) for p in session.proposals] == [(TUESDAY, "21")]
    assert any("Menu fetch failed" in line for line in session.logs)


def test_unusable_plan_is_an_error_and_retry_returns_to_idle(stocked_gateway, configured_prefs):
    generator = ScriptedGenerator("not json at all", _plan((MONDAY, MealTime.LUNCH, "11")))
    session = _session(stocked_gateway, configured_prefs, generator)

    assert session.start() is PlanningStep.ERROR
    assert session.error == NO_PLAN_MESSAGE
    assert session.discarded

    assert session.retry() is PlanningStep.IDLE
    assert session.start() is PlanningStep.REVIEW


def test_regenerate_replaces_proposals(stocked_gateway, configured_prefs):
    generator = ScriptedGenerator(
        _plan((MONDAY, MealTime.LUNCH, "11")),
        _plan((MONDAY, MealTime.LUNCH, "12")),
    )
    session = _session(stocked_gateway, configured_prefs, generator)
    session.start()

    assert session.regenerate() is PlanningStep.REVIEW
    assert [p.dish.id for p in session.proposals] == ["12"]


def test_generator_exception_moves_to_error(stocked_gateway, configured_prefs):
    def exploding(slots, history, prefs):
        raise RuntimeError("provider offline")

    session = _session(stocked_gateway, configured_prefs, exploding)

    assert session.start() is PlanningStep.ERROR
    assert session.error == "provider offline"


def test_cancel_discards_proposals(stocked_gateway, configured_prefs):
    session = _session(
        stocked_gateway, configured_prefs, ScriptedGenerator(_plan((MONDAY, MealTime.LUNCH, "11")))
    )
    session.start()

    session.cancel()

    assert session.step is PlanningStep.CANCELLED
    assert session.proposals == []
    assert stocked_gateway.placed == []


def test_actions_outside_review_are_rejected(stocked_gateway, configured_prefs):
    session = _session(stocked_gateway, configured_prefs, ScriptedGenerator())

    with pytest.raises(SessionStateError):
        session.remove_proposal(0)
    with pytest.raises(SessionStateError):
        session.confirm()


def test_from_calendar_failure_starts_in_error(fake_gateway, configured_prefs):
    fake_gateway.calendar_error = GatewayError("API Error: 502")

    session = PlanningSession.from_calendar(configured_prefs, fake_gateway, MONDAY, TUESDAY)

    assert session.step is PlanningStep.ERROR
    assert "API Error: 502" in session.error


def test_log_is_bounded(fake_gateway, configured_prefs):
    session = _session(fake_gateway, configured_prefs, ScriptedGenerator())
    for index in range(LOG_LIMIT + 10):
        session._log(f"line {index}")

    assert len(session.logs) == LOG_LIMIT
    assert session.logs[-1] == f"line {LOG_LIMIT + 9}"
