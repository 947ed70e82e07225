"""Manual place / replace / delete of a single slot's order."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from mealpilot.client.base import MealGateway, OrderError
from mealpilot.models.slot import Dish, OrderReceipt, Slot
from mealpilot.planner.batch import AddressResolver
from mealpilot.planner.utils import target_time_for

logger = logging.getLogger(__name__)

_DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S")
_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class DeadlinePassedError(RuntimeError):
    """The slot's modification deadline is over; it is read-only."""


class ReplaceOrderError(OrderError):
    """Placing the replacement failed after the previous order was deleted.

    The slot is now empty; the caller must tell the user.
    """

    previous_order_removed = True


def parse_close_time(slot: Slot) -> Optional[datetime]:
    """Return the slot's deadline as a naive local datetime, or None if absent/unreadable.

    ``close_time`` is either a bare time of day (combined with the slot's date)
    or a full date-time.
    """

    raw = (slot.close_time or "").strip()
    if not raw:
        return None
    if "-" in raw:
        for fmt in _DATETIME_FORMATS:
            try:
                return datetime.strptime(raw, fmt)
            except ValueError:
                continue
    else:
        for fmt in _TIME_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt).time()
            except ValueError:
                continue
            return datetime.combine(slot.date, parsed)
    logger.warning("Unreadable close time %r for %s", raw, slot.date)
    return None


def is_modification_allowed(slot: Slot, now: Optional[datetime] = None) -> bool:
    """A slot without a deadline stays editable; an unreadable deadline locks it."""

    if not (slot.close_time or "").strip():
        return True
    deadline = parse_close_time(slot)
    if deadline is None:
        return False
    return (now or datetime.now()) < deadline


class SlotEditor:
    """Single-slot edits sharing the batch path's deadline and address rules."""

    def __init__(
        self,
        gateway: MealGateway,
        *,
        default_address_id: Optional[str] = None,
    ) -> None:
        self._gateway = gateway
        self._default_address_id = default_address_id

    def _check_deadline(self, slot: Slot, now: Optional[datetime]) -> None:
        if not is_modification_allowed(slot, now):
            raise DeadlinePassedError(
                f"Ordering for {slot.date.isoformat()} {slot.meal_time.value} closed at {slot.close_time}"
            )

    def _address_for(self, slot: Slot) -> Optional[str]:
        if slot.user_address_unique_id:
            return slot.user_address_unique_id
        resolver = AddressResolver(self._gateway)
        book = resolver.book_for(slot.namespace)
        if self._default_address_id and book.find_by_id(self._default_address_id):
            return self._default_address_id
        if book.default_address_id:
            return book.default_address_id
        return book.addresses[0].unique_id if book.addresses else None

    def place(self, slot: Slot, dish: Dish, now: Optional[datetime] = None) -> OrderReceipt:
        self._check_deadline(slot, now)
        if not slot.tab_unique_id:
            raise OrderError(f"Slot {slot.date.isoformat()} has no order channel")
        address_id = self._address_for(slot)
        if not address_id:
            raise OrderError(
                f"No valid address found for namespace {slot.namespace or 'unknown'}"
            )
        return self._gateway.place_order(
            slot.tab_unique_id,
            dish.id,
            target_time_for(slot.date, slot.meal_time),
            address_id,
            address_id,
        )

    def delete(self, slot: Slot, now: Optional[datetime] = None) -> None:
        self._check_deadline(slot, now)
        if not slot.order_unique_id:
            raise OrderError(f"Slot {slot.date.isoformat()} has no order to cancel")
        self._gateway.delete_order(slot.order_unique_id)

    def replace(self, slot: Slot, dish: Dish, now: Optional[datetime] = None) -> OrderReceipt:
        """Delete the current order, then place ``dish``; not atomic."""

        self._check_deadline(slot, now)
        if slot.order_unique_id:
            self._gateway.delete_order(slot.order_unique_id)
        try:
            return self.place(slot, dish, now)
        except (OrderError, DeadlinePassedError) as exc:
            if not slot.order_unique_id:
                raise
            logger.error("Replacement failed after deleting order %s: %s", slot.order_unique_id, exc)
            raise ReplaceOrderError(
                f"The previous order was already removed, but placing {dish.name} failed: {exc}"
            ) from exc
