"""Command-line interface for Mealpilot."""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from mealpilot.client.base import GatewayError, MealGateway, OrderError, build_gateway
from mealpilot.client.proxy import ProxyGateway
from mealpilot.config import get_settings
from mealpilot.llm.interface import LLMError
from mealpilot.logging_utils import configure_logging
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import MealTime, Slot
from mealpilot.planner.analysis import analyze_history
from mealpilot.planner.orchestrator import PlanningSession, PlanningStep, SessionStateError
from mealpilot.planner.slot_editor import (
    DeadlinePassedError,
    ReplaceOrderError,
    SlotEditor,
    is_modification_allowed,
)
from mealpilot.planner.utils import load_menu

app = typer.Typer(help="Mealpilot weekly meal-ordering commands.")

PrefsOption = typer.Option(None, "--prefs", help="Preferences JSON file (defaults to settings).")
MockOption = typer.Option(False, "--mock", help="Use the built-in mock platform.")


def _prefs_path(path: Optional[Path]) -> Path:
    return path or get_settings().preferences_path


def load_preferences(path: Optional[Path] = None) -> UserPreferences:
    target = _prefs_path(path)
    if not target.exists():
        return UserPreferences()
    try:
        with target.open("r", encoding="utf-8") as fh:
            return UserPreferences.model_validate(json.load(fh))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise typer.BadParameter(f"Unreadable preferences file {target}: {exc}") from exc


def save_preferences(prefs: UserPreferences, path: Optional[Path] = None) -> Path:
    target = _prefs_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as fh:
        json.dump(prefs.model_dump(mode="json"), fh, indent=2, ensure_ascii=False)
    return target


def _setup(prefs_file: Optional[Path], mock: bool) -> tuple[UserPreferences, MealGateway]:
    settings = get_settings()
    prefs = load_preferences(prefs_file)
    if mock:
        prefs = prefs.model_copy(update={"use_mock_data": True})
    configure_logging(settings.log_level, settings.log_format, prefs.secrets())
    return prefs, build_gateway(prefs)


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _window(start: Optional[str], days: int) -> tuple[date, date]:
    begin = date.fromisoformat(start) if start else date.today()
    return begin, begin + timedelta(days=max(1, days) - 1)


def _format_price(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _slot_line(slot: Slot) -> str:
    order = slot.current_order.name if slot.current_order else "-"
    lock = "" if is_modification_allowed(slot) else " [locked]"
    return (
        f"{slot.date.isoformat()} {slot.meal_time.value:<9} {slot.status.value:<10} "
        f"{order}{lock}"
    )


def _find_slot(gateway: MealGateway, day: date, meal: MealTime) -> Slot:
    slots = gateway.fetch_calendar(day, day)
    slot = next((entry for entry in slots if entry.meal_time is meal), None)
    if slot is None:
        _fail(f"No {meal.value} slot on {day.isoformat()}")
    return slot


@app.command()
def login(
    username: str = typer.Argument(..., help="Platform username."),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    proxy_url: Optional[str] = typer.Option(None, "--proxy-url", help="Proxy base URL."),
    prefs_file: Optional[Path] = PrefsOption,
) -> None:
    """Log in through the proxy and store the session id in the preferences file."""

    prefs = load_preferences(prefs_file)
    gateway = ProxyGateway(base_url=proxy_url or prefs.proxy_url)
    result = gateway.login(username, password)
    if not result.success:
        _fail(f"Login failed: {result.error}")

    updated = prefs.model_copy(
        update={
            "username": username,
            "session_id": result.session_id,
            "proxy_url": proxy_url or prefs.proxy_url,
        }
    )
    target = save_preferences(updated, prefs_file)
    typer.echo(f"Logged in as {username}; session saved to {target}")


@app.command()
def week(
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)."),
    days: int = typer.Option(7, "--days", min=1, max=31),
    as_json: bool = typer.Option(False, "--json", help="Emit slots as JSON."),
    prefs_file: Optional[Path] = PrefsOption,
    mock: bool = MockOption,
) -> None:
    """Show meal slots for a date range."""

    _, gateway = _setup(prefs_file, mock)
    begin, end = _window(start, days)
    try:
        slots = gateway.fetch_calendar(begin, end)
    except GatewayError as exc:
        _fail(f"Could not load calendar: {exc}")

    if as_json:
        typer.echo(json.dumps([slot.model_dump(mode="json") for slot in slots], indent=2))
        return
    for slot in slots:
        typer.echo(_slot_line(slot))


def _prompt_ai_config(session: PlanningSession) -> None:
    typer.echo("The AI provider is not configured.")
    provider = typer.prompt("Provider (gemini/custom)", default=session.prefs.ai_provider)
    if provider == "custom":
        fields = {
            "ai_provider": "custom",
            "custom_ai_base_url": typer.prompt("Base URL"),
            "custom_ai_api_key": typer.prompt("API key", hide_input=True),
            "custom_ai_model": typer.prompt("Model", default="") or None,
        }
    else:
        fields = {
            "ai_provider": "gemini",
            "gemini_api_key": typer.prompt("Gemini API key", hide_input=True),
        }
    session.provide_ai_config(**fields)


def _show_proposals(session: PlanningSession) -> None:
    for index, proposal in enumerate(session.proposals, start=1):
        typer.echo(
            f"{index:>2}. {proposal.date.isoformat()} {proposal.meal_time.value:<7} "
            f"{proposal.dish.name} ({proposal.dish.restaurant_name}, "
            f"{_format_price(proposal.dish.price_in_cent)})"
        )
        if proposal.reason:
            typer.echo(f"    {proposal.reason}")


@app.command()
def plan(
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)."),
    days: int = typer.Option(7, "--days", min=1, max=31),
    yes: bool = typer.Option(False, "--yes", "-y", help="Submit the plan without review."),
    prefs_file: Optional[Path] = PrefsOption,
    mock: bool = MockOption,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print the planning log."),
) -> None:
    """Plan open slots with the AI planner, review, then place the orders."""

    prefs, gateway = _setup(prefs_file, mock)
    begin, end = _window(start, days)
    session = PlanningSession.from_calendar(prefs, gateway, begin, end)
    if session.step is PlanningStep.ERROR:
        _fail(session.error or "Could not load calendar")

    step = session.start()
    if step is PlanningStep.AI_CONFIG:
        _prompt_ai_config(session)
        if typer.confirm("Save these AI settings?", default=True):
            save_preferences(session.prefs, prefs_file)
        step = session.start()

    if verbose:
        for line in session.logs:
            typer.echo(f"  {line}")

    if step is PlanningStep.FULLY_PLANNED:
        typer.echo("Every open slot in this range already has an order.")
        return
    if step is PlanningStep.AI_CONFIG:
        _fail("AI provider configuration is still incomplete.")
    if step is PlanningStep.ERROR:
        _fail(f"Planning failed: {session.error}")

    while not yes:
        _show_proposals(session)
        choice = typer.prompt(
            "Number to remove, [r]egenerate, [c]onfirm or [q]uit", default="c"
        ).strip().lower()
        if choice == "q":
            session.cancel()
            typer.echo("Plan discarded.")
            return
        if choice == "r":
            if session.regenerate() is not PlanningStep.REVIEW:
                _fail(f"Planning failed: {session.error}")
            continue
        if choice == "c":
            if not session.proposals:
                typer.echo("Nothing left to submit; remove fewer items or quit.")
                continue
            break
        if choice.isdigit():
            try:
                session.remove_proposal(int(choice) - 1)
            except IndexError as exc:
                typer.echo(str(exc))
            continue
        typer.echo(f"Unknown choice {choice!r}")

    try:
        summary = session.confirm()
    except SessionStateError as exc:
        _fail(str(exc))

    for result in summary.results:
        if result.success:
            typer.secho(f"OK    {result.date.isoformat()} {result.dish_name}", fg=typer.colors.GREEN)
        else:
            typer.secho(
                f"FAIL  {result.date.isoformat()} {result.dish_name}: {result.message}",
                fg=typer.colors.RED,
            )
    typer.echo(f"{summary.succeeded} succeeded, {summary.failed} failed")

    try:
        refreshed = gateway.fetch_calendar(begin, end)
    except GatewayError as exc:
        typer.secho(f"Could not refresh calendar: {exc}", fg=typer.colors.YELLOW)
        return
    typer.echo("")
    for slot in refreshed:
        typer.echo(_slot_line(slot))


@app.command()
def order(
    day: str = typer.Argument(..., help="Slot date (YYYY-MM-DD)."),
    meal: MealTime = typer.Argument(..., case_sensitive=False),
    dish_id: str = typer.Argument(..., help="Dish (or breakfast restaurant) id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the replace confirmation."),
    prefs_file: Optional[Path] = PrefsOption,
    mock: bool = MockOption,
) -> None:
    """Place an order for one slot, replacing any existing one."""

    prefs, gateway = _setup(prefs_file, mock)
    editor = SlotEditor(gateway, default_address_id=prefs.default_address_id)
    try:
        slot = _find_slot(gateway, date.fromisoformat(day), meal)
        menu = load_menu(gateway, slot)
    except GatewayError as exc:
        _fail(str(exc))

    dish = next((entry for entry in menu if entry.id == dish_id), None)
    if dish is None:
        _fail(f"Dish {dish_id} is not on the menu for {day} {meal.value}")

    try:
        if slot.order_unique_id:
            typer.secho(
                "Replacing deletes the current order first; if the new order fails "
                "the slot is left empty.",
                fg=typer.colors.YELLOW,
            )
            if not yes and not typer.confirm("Continue?"):
                raise typer.Exit(code=1)
            receipt = editor.replace(slot, dish)
        else:
            receipt = editor.place(slot, dish)
    except ReplaceOrderError as exc:
        _fail(f"{exc} The slot for {day} is now empty.")
    except (DeadlinePassedError, OrderError) as exc:
        _fail(str(exc))
    typer.echo(f"Ordered {dish.name} for {day} {meal.value} ({receipt.order_unique_id or 'no id'})")


@app.command("cancel-order")
def cancel_order(
    day: str = typer.Argument(..., help="Slot date (YYYY-MM-DD)."),
    meal: MealTime = typer.Argument(..., case_sensitive=False),
    prefs_file: Optional[Path] = PrefsOption,
    mock: bool = MockOption,
) -> None:
    """Cancel the order in one slot."""

    prefs, gateway = _setup(prefs_file, mock)
    editor = SlotEditor(gateway, default_address_id=prefs.default_address_id)
    try:
        slot = _find_slot(gateway, date.fromisoformat(day), meal)
        editor.delete(slot)
    except (DeadlinePassedError, GatewayError) as exc:
        _fail(str(exc))
    typer.echo(f"Cancelled {day} {meal.value}")


@app.command()
def analyze(
    days: int = typer.Option(30, "--days", min=1, max=365, help="History window in days."),
    language: str = typer.Option("en", "--language", help="Report language (en/zh)."),
    prefs_file: Optional[Path] = PrefsOption,
    mock: bool = MockOption,
) -> None:
    """Ask the AI for a health analysis of recent orders."""

    prefs, gateway = _setup(prefs_file, mock)
    today = date.today()
    try:
        history = gateway.fetch_history(today - timedelta(days=days), today)
        result = analyze_history(history, prefs, language=language)
    except (GatewayError, LLMError, ValueError) as exc:
        _fail(f"Analysis failed: {exc}")
    typer.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the ``mealpilot`` console script."""
    app(prog_name="mealpilot", args=argv)


if __name__ == "__main__":
    main()
