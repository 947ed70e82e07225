"""Command-line interface tests against the mock platform."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from mealpilot import cli
from mealpilot.client.proxy import ProxyLoginResult
from mealpilot.config import get_settings
from mealpilot.models.preferences import UserPreferences

runner = CliRunner()


def _first_dish_plan(slots, history, prefs):
    return [
        {"date": slot.date.isoformat(), "mealTime": slot.meal_time.value, "dishId": slot.menu[0].id}
        for slot in slots
    ]


@pytest.fixture()
def planner_stub(monkeypatch):
    monkeypatch.setattr(
        "mealpilot.planner.orchestrator.default_generator_factory",
        lambda prefs: _first_dish_plan,
    )


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    monkeypatch.setenv("MEALPILOT_LOG_LEVEL", "ERROR")
    get_settings.cache_clear()


@pytest.fixture()
def configured():
    cli.save_preferences(UserPreferences(username="alice", gemini_api_key="g-key"))


def test_week_lists_mock_slots():
    result = runner.invoke(cli.app, ["week", "--mock", "--start", "2024-06-10", "--days", "1"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("2024-06-10 LUNCH")
    assert "AVAILABLE" in lines[0]


def test_week_json_output():
    result = runner.invoke(cli.app, ["week", "--mock", "--start", "2024-06-15", "--days", "2", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == []


def test_plan_submits_without_review(configured, planner_stub):
    result = runner.invoke(cli.app, ["plan", "--mock", "--start", "2024-06-10", "--days", "1", "--yes"])

    assert result.exit_code == 0, result.output
    assert "2 succeeded, 0 failed" in result.output
    refreshed = [line for line in result.output.splitlines() if line.startswith("2024-06-10 ")]
    assert len(refreshed) == 2
    assert all("ORDERED" in line for line in refreshed)


def test_plan_review_removes_then_confirms(configured, planner_stub):
    result = runner.invoke(
        cli.app,
        ["plan", "--mock", "--start", "2024-06-10", "--days", "1"],
        input="1\nc\n",
    )

    assert result.exit_code == 0, result.output
    assert "1 succeeded, 0 failed" in result.output


def test_plan_quit_discards(configured, planner_stub):
    result = runner.invoke(
        cli.app,
        ["plan", "--mock", "--start", "2024-06-10", "--days", "1"],
        input="q\n",
    )

    assert result.exit_code == 0, result.output
    assert "Plan discarded." in result.output


def test_plan_prompts_for_missing_ai_config(planner_stub):
    result = runner.invoke(
        cli.app,
        ["plan", "--mock", "--start", "2024-06-10", "--days", "1", "--yes"],
        input="gemini\nprompted-key\ny\n",
    )

    assert result.exit_code == 0, result.output
    assert "not configured" in result.output
    assert cli.load_preferences().gemini_api_key == "prompted-key"


def test_plan_on_weekend_is_already_planned(configured, planner_stub):
    result = runner.invoke(cli.app, ["plan", "--mock", "--start", "2024-06-15", "--days", "2", "--yes"])

    assert result.exit_code == 0, result.output
    assert "already has an order" in result.output


def test_order_places_mock_dish():
    result = runner.invoke(
        cli.app,
        ["order", "2024-06-10", "lunch", "mock-dish-Spicy Wok-2", "--mock"],
    )

    assert result.exit_code == 0, result.output
    assert "Ordered Spicy Tofu Rice (Spicy Wok)" in result.output


def test_order_rejects_unknown_dish():
    result = runner.invoke(cli.app, ["order", "2024-06-10", "dinner", "missing", "--mock"])

    assert result.exit_code == 1
    assert "not on the menu" in result.output


def test_cancel_without_order_fails():
    result = runner.invoke(cli.app, ["cancel-order", "2024-06-10", "LUNCH", "--mock"])

    assert result.exit_code == 1
    assert "no order to cancel" in result.output


def test_login_stores_session(monkeypatch):
    class FakeProxy:
        def __init__(self, base_url=None):
            self.base_url = base_url

        def login(self, username, password):
            assert password == "pw"
            return ProxyLoginResult(success=True, session_id="session_1_ab")

    monkeypatch.setattr(cli, "ProxyGateway", FakeProxy)

    result = runner.invoke(
        cli.app,
        ["login", "alice", "--proxy-url", "http://proxy.test"],
        input="pw\n",
    )

    assert result.exit_code == 0, result.output
    prefs = cli.load_preferences()
    assert prefs.session_id == "session_1_ab"
    assert prefs.proxy_url == "http://proxy.test"


def test_analyze_prints_result(configured, monkeypatch):
    class CannedLLM:
        model_name = "canned"

        def generate(self, prompt):
            return '{"summary": "Fine", "score": 80, "suggestions": []}'

    monkeypatch.setattr("mealpilot.planner.analysis.build_planner_llm", lambda prefs: CannedLLM())

    result = runner.invoke(cli.app, ["analyze", "--mock", "--days", "14"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["score"] == 80
    assert payload["modelName"] == "canned"
