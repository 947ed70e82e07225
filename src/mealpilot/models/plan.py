"""Weekly plan proposal and execution result models."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from mealpilot.models.slot import Dish, MealTime


class Proposal(BaseModel):
    """Planned (slot, dish) pairing awaiting user approval."""

    date: dt.date
    meal_time: MealTime
    dish: Dish
    reason: str = ""
    tab_unique_id: str
    user_address_unique_id: Optional[str] = None
    namespace: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class DiscardedProposal(BaseModel):
    """Generator output item rejected during reconciliation."""

    item: Any = None
    reason: str

    model_config = ConfigDict(frozen=True)


class Reconciliation(BaseModel):
    """Validated proposals plus the generator items that were dropped."""

    accepted: list[Proposal] = Field(default_factory=list)
    discarded: list[DiscardedProposal] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ExecutionResult(BaseModel):
    """Outcome of submitting one proposal."""

    date: dt.date
    dish_name: str
    success: bool
    message: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class BatchSummary(BaseModel):
    """Aggregate view over a finished batch."""

    results: list[ExecutionResult] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)
