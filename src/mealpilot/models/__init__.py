"""Pydantic models defining shared data contracts."""

from mealpilot.models.analysis import AnalysisResult, CalorieSample, CuisineShare
from mealpilot.models.plan import (
    BatchSummary,
    DiscardedProposal,
    ExecutionResult,
    Proposal,
    Reconciliation,
)
from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import (
    Address,
    AddressBook,
    Dish,
    EnrichedSlot,
    HistoricalOrder,
    MealTime,
    OrderReceipt,
    Slot,
    SlotStatus,
)

__all__ = [
    "AnalysisResult",
    "CalorieSample",
    "CuisineShare",
    "BatchSummary",
    "DiscardedProposal",
    "ExecutionResult",
    "Proposal",
    "Reconciliation",
    "UserPreferences",
    "Address",
    "AddressBook",
    "Dish",
    "EnrichedSlot",
    "HistoricalOrder",
    "MealTime",
    "OrderReceipt",
    "Slot",
    "SlotStatus",
]
