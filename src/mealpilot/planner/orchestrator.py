"""Planning session: open slots to reviewed proposals to placed orders."""

from __future__ import annotations

import logging
from collections import deque
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from mealpilot.client.base import MealGateway
from mealpilot.llm.interface import build_planner_llm
from mealpilot.models.plan import BatchSummary, DiscardedProposal, ExecutionResult, Proposal
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import EnrichedSlot, HistoricalOrder, Slot
from mealpilot.planner.attempt import attempt
from mealpilot.planner.batch import execute_batch
from mealpilot.planner.generator import LLMPlanGenerator, PlanGenerator
from mealpilot.planner.reconcile import reconcile
from mealpilot.planner.utils import eligible_slots, load_menu

logger = logging.getLogger(__name__)

LOG_LIMIT = 50
HISTORY_WINDOW_DAYS = 28
NO_MENUS_MESSAGE = "No usable menus found"
NO_PLAN_MESSAGE = "AI did not produce a usable plan"

GeneratorFactory = Callable[[UserPreferences], PlanGenerator]


class PlanningError(RuntimeError):
    """Fatal-to-session failure; the session moves to ERROR."""


class SessionStateError(RuntimeError):
    """Raised when an action is not allowed in the session's current step."""


class PlanningStep(str, Enum):
    IDLE = "idle"
    FULLY_PLANNED = "fully_planned"
    AI_CONFIG = "ai_config"
    FETCHING = "fetching"
    PLANNING = "planning"
    REVIEW = "review"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


_STARTABLE = frozenset(
    {
        PlanningStep.IDLE,
        PlanningStep.ERROR,
        PlanningStep.REVIEW,
        PlanningStep.FULLY_PLANNED,
        PlanningStep.COMPLETED,
    }
)


def default_generator_factory(prefs: UserPreferences) -> PlanGenerator:
    return LLMPlanGenerator(build_planner_llm(prefs))


class PlanningSession:
    """State for one planning run over a calendar window.

    ``prefs`` is treated as an immutable value; the proposal list and the
    learned address name are the only things the flow mutates.
    """

    def __init__(
        self,
        prefs: UserPreferences,
        gateway: MealGateway,
        slots: Sequence[Slot],
        *,
        generator_factory: Optional[GeneratorFactory] = None,
        today: Optional[date] = None,
    ) -> None:
        self.prefs = prefs
        self.slots: list[Slot] = list(slots)
        self.step = PlanningStep.IDLE
        self.proposals: list[Proposal] = []
        self.discarded: list[DiscardedProposal] = []
        self.results: list[ExecutionResult] = []
        self.history: list[HistoricalOrder] = []
        self.error: Optional[str] = None
        self._gateway = gateway
        self._generator_factory = generator_factory or default_generator_factory
        self._today = today
        self._logs: deque[str] = deque(maxlen=LOG_LIMIT)

    @classmethod
    def from_calendar(
        cls,
        prefs: UserPreferences,
        gateway: MealGateway,
        begin: date,
        end: date,
        **kwargs: Any,
    ) -> "PlanningSession":
        """Load the calendar for ``begin..end``; a failed load leaves the session in ERROR."""

        outcome = attempt("Calendar fetch", gateway.fetch_calendar, begin, end)
        session = cls(prefs, gateway, outcome.value or [], **kwargs)
        if not outcome.ok:
            session._fail(f"Could not load calendar: {outcome.message}")
        return session

    @property
    def logs(self) -> list[str]:
        return list(self._logs)

    @property
    def summary(self) -> BatchSummary:
        return BatchSummary(results=list(self.results))

    @property
    def today(self) -> date:
        return self._today or date.today()

    def _log(self, message: str) -> None:
        logger.info(message)
        self._logs.append(message)

    def _fail(self, message: str) -> PlanningStep:
        self.error = message
        self.step = PlanningStep.ERROR
        self._log(f"Error: {message}")
        return self.step

    def _require(self, *steps: PlanningStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(step.value for step in steps)
            raise SessionStateError(f"Cannot do that while {self.step.value} (allowed: {allowed})")

    # Planning

    def start(self) -> PlanningStep:
        """Run enrichment, history and generation; ends in REVIEW, or a terminal/config step."""

        if self.step not in _STARTABLE:
            raise SessionStateError(f"Cannot start planning while {self.step.value}")

        self._logs.clear()
        self.proposals = []
        self.discarded = []
        self.results = []
        self.error = None

        candidates = eligible_slots(self.slots, self.prefs)
        if not candidates:
            self._log("Every slot in range is already planned")
            self.step = PlanningStep.FULLY_PLANNED
            return self.step

        if not self.prefs.ai_config_complete():
            self._log("AI provider configuration is incomplete")
            self.step = PlanningStep.AI_CONFIG
            return self.step

        try:
            self._plan(candidates)
        except PlanningError as exc:
            return self._fail(str(exc))
        self.step = PlanningStep.REVIEW
        return self.step

    def _plan(self, candidates: Sequence[Slot]) -> None:
        self.step = PlanningStep.FETCHING
        enriched = self._enrich(candidates)
        if not enriched:
            raise PlanningError(NO_MENUS_MESSAGE)

        self.history = self._load_history()

        self.step = PlanningStep.PLANNING
        self._log("Generating plan")
        generator = attempt("Plan generator setup", self._generator_factory, self.prefs)
        if not generator.ok:
            raise PlanningError(generator.message)
        raw = attempt("Plan generation", generator.value, enriched, self.history, self.prefs)
        if not raw.ok:
            raise PlanningError(raw.message)

        reconciliation = reconcile(raw.value, enriched)
        self.discarded = list(reconciliation.discarded)
        for dropped in self.discarded:
            self._log(f"Ignored suggestion: {dropped.reason}")
        if not reconciliation.accepted:
            raise PlanningError(NO_PLAN_MESSAGE)
        self.proposals = list(reconciliation.accepted)
        self._log(f"Plan ready with {len(self.proposals)} proposals")

    def _enrich(self, candidates: Sequence[Slot]) -> list[EnrichedSlot]:
        enriched: list[EnrichedSlot] = []
        for slot in candidates:
            label = f"{slot.date.isoformat()} {slot.meal_time.value}"
            if not slot.tab_unique_id:
                self._log(f"Skipping {label}: no order channel")
                continue
            self._log(f"Fetching menu for {label}")
            outcome = attempt(f"Menu fetch for {label}", load_menu, self._gateway, slot)
            if not outcome.ok:
                self._log(f"Menu fetch failed for {label}: {outcome.message}")
                continue
            if not outcome.value:
                self._log(f"No menu found for {label}")
                continue
            enriched.append(EnrichedSlot.from_slot(slot, outcome.value))
        return enriched

    def _load_history(self) -> list[HistoricalOrder]:
        self._log("Fetching order history")
        end = self.today
        begin = end - timedelta(days=HISTORY_WINDOW_DAYS)
        outcome = attempt("History fetch", self._gateway.fetch_history, begin, end)
        if not outcome.ok:
            self._log("Order history unavailable; planning without it")
            return []
        history = list(outcome.value or [])
        self._log(f"Loaded {len(history)} past orders")
        return history

    def provide_ai_config(self, **fields: Any) -> UserPreferences:
        """Apply provider settings and return to IDLE so ``start`` can be called again."""

        self._require(PlanningStep.AI_CONFIG)
        self.prefs = self.prefs.model_copy(update=fields)
        self.step = PlanningStep.IDLE
        return self.prefs

    # Review

    def remove_proposal(self, index: int) -> Proposal:
        self._require(PlanningStep.REVIEW)
        if not 0 <= index < len(self.proposals):
            raise IndexError(f"No proposal at position {index}")
        removed = self.proposals.pop(index)
        self._log(f"Removed {removed.dish.name} on {removed.date.isoformat()}")
        return removed

    def regenerate(self) -> PlanningStep:
        self._require(PlanningStep.REVIEW)
        return self.start()

    def confirm(self) -> BatchSummary:
        """Submit every remaining proposal; always runs to completion."""

        self._require(PlanningStep.REVIEW)
        if not self.proposals:
            raise SessionStateError("No proposals left to submit")

        self.step = PlanningStep.SUBMITTING
        try:
            self.results = execute_batch(
                self._gateway,
                self.proposals,
                slots=self.slots,
                default_address_id=self.prefs.default_address_id,
                log=self._log,
            )
        except Exception as exc:
            self._fail(f"Submission stopped: {exc}")
            raise
        self.step = PlanningStep.COMPLETED
        summary = self.summary
        self._log(f"Done: {summary.succeeded} succeeded, {summary.failed} failed")
        return summary

    def cancel(self) -> None:
        if self.step is PlanningStep.SUBMITTING:
            raise SessionStateError("Orders are being submitted; cancel is not available")
        self.proposals = []
        self.discarded = []
        self.error = None
        self.step = PlanningStep.CANCELLED

    def retry(self) -> PlanningStep:
        self._require(PlanningStep.ERROR)
        self.error = None
        self.step = PlanningStep.IDLE
        return self.step
