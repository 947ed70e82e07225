"""Match untrusted generator output against the slots that were offered."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from mealpilot import metrics
from mealpilot.llm.parsing import loads_lenient
from mealpilot.models.plan import DiscardedProposal, Proposal, Reconciliation
from mealpilot.models.slot import Dish, EnrichedSlot

logger = logging.getLogger(__name__)

_LIST_KEYS = ("plan", "plans", "orders", "items", "proposals")


def _loose_id(value: Any) -> Optional[str]:
    """String form of an identifier, treating ``55``, ``55.0`` and ``"55"`` alike."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def decode_plan(raw: Any) -> list[Any]:
    """Turn generator output into a list of candidate items.

    Raises ``ValueError`` when the output cannot be read as a list.
    """

    data = loads_lenient(raw) if isinstance(raw, str) else raw
    if isinstance(data, dict):
        for key in _LIST_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        raise ValueError("Generator returned an object without a plan list")
    if not isinstance(data, list):
        raise ValueError(f"Generator returned {type(data).__name__}, expected a list")
    return data


def _find_dish(menu: Iterable[Dish], dish_id: Optional[str]) -> Optional[Dish]:
    if dish_id is None:
        return None
    return next((dish for dish in menu if _loose_id(dish.id) == dish_id), None)


def reconcile(raw: Any, slots: Iterable[EnrichedSlot]) -> Reconciliation:
    """Keep items whose slot and dish exist; record why every other item was dropped."""

    by_key = {(slot.date.isoformat(), slot.meal_time.value): slot for slot in slots}

    try:
        items = decode_plan(raw)
    except ValueError as exc:
        logger.warning("Discarding unreadable generator output: %s", exc)
        metrics.PROPOSALS_RECONCILED.labels(verdict="discarded").inc()
        preview = raw[:200] if isinstance(raw, str) else raw
        return Reconciliation(discarded=[DiscardedProposal(item=preview, reason=str(exc))])

    accepted: list[Proposal] = []
    discarded: list[DiscardedProposal] = []
    seen: set[tuple[str, str]] = set()

    def _discard(item: Any, reason: str) -> None:
        logger.warning("Discarding generator item %s: %s", item, reason)
        discarded.append(DiscardedProposal(item=item, reason=reason))

    for item in items:
        if not isinstance(item, dict):
            _discard(item, "item is not an object")
            continue

        key = (
            str(item.get("date") or "").strip(),
            str(item.get("mealTime") or item.get("meal_time") or "").strip().upper(),
        )
        slot = by_key.get(key)
        if slot is None:
            _discard(item, f"no slot for {key[0]} {key[1]}")
            continue
        if key in seen:
            _discard(item, f"duplicate proposal for {key[0]} {key[1]}")
            continue

        dish_id = _loose_id(item.get("dishId", item.get("dish_id")))
        dish = _find_dish(slot.menu, dish_id)
        if dish is None:
            _discard(item, f"dish {dish_id} not on the menu for {key[0]} {key[1]}")
            continue

        seen.add(key)
        accepted.append(
            Proposal(
                date=slot.date,
                meal_time=slot.meal_time,
                dish=dish,
                reason=str(item.get("reason") or ""),
                tab_unique_id=slot.tab_unique_id,
                user_address_unique_id=slot.user_address_unique_id,
                namespace=slot.namespace,
            )
        )

    if accepted:
        metrics.PROPOSALS_RECONCILED.labels(verdict="accepted").inc(len(accepted))
    if discarded:
        metrics.PROPOSALS_RECONCILED.labels(verdict="discarded").inc(len(discarded))
    return Reconciliation(accepted=accepted, discarded=discarded)
