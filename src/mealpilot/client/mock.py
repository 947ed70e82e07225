"""Deterministic in-memory platform used when mock data is enabled."""

from __future__ import annotations

import itertools
import logging
from datetime import date, timedelta
from typing import Optional

from mealpilot.client.base import OrderError
from mealpilot.models.slot import (
    Address,
    AddressBook,
    Dish,
    HistoricalOrder,
    MealTime,
    OrderReceipt,
    Slot,
    SlotStatus,
)

logger = logging.getLogger(__name__)

MOCK_RESTAURANTS = ("Salad Green", "Burger King", "Niu Xiao Zao", "Spicy Wok", "Sushi Express")
MOCK_DISHES = (
    ("Beef Salad with Avocado", 4500),
    ("Double Cheeseburger", 3500),
    ("Spicy Tofu Rice", 2800),
    ("Salmon Sashimi Set", 6000),
    ("Braised Pork Rice", 3200),
)
MOCK_ADDRESS = Address(unique_id="mock-address-1", name="Default Address")
_PLANNED_MEALS = (MealTime.LUNCH, MealTime.DINNER)


def mock_menu(restaurant: str) -> list[Dish]:
    return [
        Dish(
            id=f"mock-dish-{restaurant}-{index}",
            name=f"{name} ({restaurant})",
            price_in_cent=price,
            restaurant_name=restaurant,
            restaurant_id=f"mock-rest-{restaurant}",
        )
        for index, (name, price) in enumerate(MOCK_DISHES)
    ]


def _tab_id(day: date, meal_time: MealTime) -> str:
    return f"tab-{meal_time.value.lower()}-{day.isoformat()}"


class MockGateway:
    """Weekday lunch and dinner slots over five mock restaurants and one address.

    Orders placed here are remembered so the calendar reflects them.
    """

    def __init__(self) -> None:
        self._menu = [dish for name in MOCK_RESTAURANTS for dish in mock_menu(name)]
        self._orders: dict[str, tuple[Dish, str]] = {}
        self._order_ids = itertools.count(1)

    def fetch_calendar(self, begin: date, end: date) -> list[Slot]:
        slots: list[Slot] = []
        current = begin
        while current <= end:
            if current.weekday() < 5:
                for meal_time in _PLANNED_MEALS:
                    tab_id = _tab_id(current, meal_time)
                    placed = self._orders.get(tab_id)
                    slots.append(
                        Slot(
                            date=current,
                            meal_time=meal_time,
                            status=SlotStatus.ORDERED if placed else SlotStatus.AVAILABLE,
                            tab_unique_id=tab_id,
                            current_order=placed[0] if placed else None,
                            order_unique_id=placed[1] if placed else None,
                            user_address_unique_id=MOCK_ADDRESS.unique_id if placed else None,
                        )
                    )
            current += timedelta(days=1)
        return slots

    def fetch_dishes(self, tab_unique_id: str, target_time: str) -> list[Dish]:
        return list(self._menu)

    def fetch_restaurants(self, tab_unique_id: str, target_time: str) -> list[Dish]:
        return [
            Dish(
                id=f"mock-rest-{index}",
                name=name,
                price_in_cent=0,
                restaurant_name=name,
                restaurant_id=f"mock-rest-{index}",
            )
            for index, name in enumerate(MOCK_RESTAURANTS)
        ]

    def fetch_addresses(self, namespace: Optional[str] = None) -> AddressBook:
        return AddressBook(addresses=[MOCK_ADDRESS], default_address_id=MOCK_ADDRESS.unique_id)

    def fetch_history(self, begin: date, end: date) -> list[HistoricalOrder]:
        history: list[HistoricalOrder] = []
        current = begin
        while current <= end:
            if current.weekday() < 5:
                index = current.toordinal()
                name, price = MOCK_DISHES[index % len(MOCK_DISHES)]
                history.append(
                    HistoricalOrder(
                        date=current,
                        meal_time=MealTime.LUNCH,
                        dish_name=name,
                        restaurant_name=MOCK_RESTAURANTS[index % len(MOCK_RESTAURANTS)],
                        price_in_cent=price,
                    )
                )
            current += timedelta(days=1)
        return history

    def place_order(
        self,
        tab_unique_id: str,
        dish_id: str,
        target_time: str,
        corp_address_id: Optional[str],
        user_address_id: Optional[str] = None,
    ) -> OrderReceipt:
        candidates = itertools.chain(self._menu, self.fetch_restaurants(tab_unique_id, target_time))
        dish = next((entry for entry in candidates if entry.id == str(dish_id)), None)
        if dish is None:
            raise OrderError(f"Unknown dish {dish_id}")
        order_id = f"mock-order-{next(self._order_ids)}"
        self._orders[tab_unique_id] = (dish, order_id)
        logger.info("Mock order %s placed for %s", order_id, tab_unique_id)
        return OrderReceipt(order_unique_id=order_id)

    def delete_order(self, order_unique_id: str) -> None:
        for tab_id, (_, order_id) in list(self._orders.items()):
            if order_id == order_unique_id:
                del self._orders[tab_id]
                return
        logger.debug("Mock delete for unknown order %s", order_unique_id)
