"""Reshape raw platform JSON into Mealpilot models.

The platform's payloads are loosely structured; every accessor here tolerates
missing keys and ``null`` branches rather than raising.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Optional

from mealpilot.models.slot import (
    Address,
    AddressBook,
    Dish,
    HistoricalOrder,
    MealTime,
    Slot,
    SlotStatus,
)

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "ORDER": SlotStatus.ORDERED,
    "CLOSED": SlotStatus.CLOSED,
}


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def meal_time_from_item(item: dict[str, Any]) -> MealTime:
    """Infer the meal period from a calendar item's title or opening-time name."""

    title = str(item.get("title") or "").lower()
    opening_name = str(_dict(item.get("openingTime")).get("name") or "").lower()
    if "早餐" in title or "早餐" in opening_name or "breakfast" in title:
        return MealTime.BREAKFAST
    if "午餐" in title or "午餐" in opening_name or "lunch" in title:
        return MealTime.LUNCH
    return MealTime.DINNER


def _iter_calendar_items(payload: Any) -> Iterator[tuple[str, dict[str, Any]]]:
    for date_entry in _list(_dict(payload).get("dateList")):
        date_entry = _dict(date_entry)
        day = date_entry.get("date")
        if not day:
            continue
        for item in _list(date_entry.get("calendarItemList")):
            if isinstance(item, dict):
                yield day, item


def _namespace(item: dict[str, Any]) -> Optional[str]:
    order_user = _dict(item.get("corpOrderUser"))
    for holder in (
        _dict(order_user.get("corp")),
        _dict(item.get("corp")),
        _dict(_dict(item.get("userTab")).get("corp")),
    ):
        namespace = holder.get("namespace")
        if namespace:
            return str(namespace)
    return None


def _slot_from_item(day: str, item: dict[str, Any]) -> Slot:
    order_user = _dict(item.get("corpOrderUser"))
    restaurant_items = _list(order_user.get("restaurantItemList"))

    current_order: Optional[Dish] = None
    order_unique_id: Optional[str] = None
    address_id: Optional[str] = None
    if restaurant_items:
        order_unique_id = order_user.get("uniqueId")
        address_id = order_user.get("userAddressUniqueId") or _dict(
            order_user.get("corpAddress")
        ).get("uniqueId")
        restaurant_item = _dict(restaurant_items[0])
        dish_items = _list(restaurant_item.get("dishItemList"))
        if dish_items:
            dish = _dict(_dict(dish_items[0]).get("dish"))
            current_order = Dish(
                id=dish.get("id", ""),
                name=dish.get("name") or "",
                price_in_cent=dish.get("priceInCent") or 0,
                restaurant_id=restaurant_item.get("uniqueId") or "",
            )

    status = _STATUS_MAP.get(item.get("status"), SlotStatus.AVAILABLE)
    namespace = _namespace(item)
    if namespace is None and status is SlotStatus.AVAILABLE:
        logger.warning("Namespace missing for open slot date=%s title=%s", day, item.get("title"))

    return Slot(
        date=day,
        meal_time=meal_time_from_item(item),
        status=status,
        tab_unique_id=_dict(item.get("userTab")).get("uniqueId"),
        current_order=current_order,
        order_unique_id=order_unique_id,
        close_time=_dict(item.get("openingTime")).get("closeTime"),
        user_address_unique_id=address_id,
        namespace=namespace,
    )


def parse_calendar(payload: Any) -> list[Slot]:
    """Flatten ``dateList[].calendarItemList[]`` into slots."""

    return [_slot_from_item(day, item) for day, item in _iter_calendar_items(payload)]


def parse_dishes(payload: Any) -> list[Dish]:
    dishes: list[Dish] = []
    for entry in _list(_dict(payload).get("othersRegularDishList")):
        entry = _dict(entry)
        if entry.get("id") is None:
            continue
        restaurant = _dict(entry.get("restaurant"))
        dishes.append(
            Dish(
                id=entry["id"],
                name=entry.get("name") or "",
                price_in_cent=entry.get("priceInCent") or 0,
                restaurant_name=restaurant.get("name") or "",
                restaurant_id=restaurant.get("uniqueId") or "",
            )
        )
    return dishes


def parse_restaurants(payload: Any) -> list[Dish]:
    """Restaurants stand in for dishes at breakfast: id is the restaurant id, price 0."""

    dishes: list[Dish] = []
    for entry in _list(_dict(payload).get("restaurantList")):
        entry = _dict(entry)
        unique_id = entry.get("uniqueId")
        if not unique_id:
            continue
        name = entry.get("name") or ""
        dishes.append(
            Dish(
                id=unique_id,
                name=name,
                price_in_cent=0,
                restaurant_name=name,
                restaurant_id=unique_id,
            )
        )
    return dishes


def parse_addresses(payload: Any) -> AddressBook:
    """Prefer ``addressList``; fall back to ``recentList``. Suggested default is the latest recent one."""

    data = _dict(_dict(payload).get("data"))
    recent = [_dict(entry) for entry in _list(data.get("recentList"))]
    default_id = recent[0].get("uniqueId") if recent else None

    addresses: list[Address] = []
    for entry in _list(data.get("addressList")):
        entry = _dict(entry)
        final = _dict(entry.get("finalValue"))
        if not final.get("uniqueId"):
            continue
        addresses.append(
            Address(
                unique_id=final["uniqueId"],
                name=entry.get("name") or final.get("pickUpLocation") or "",
            )
        )
    if not addresses:
        addresses = [
            Address(unique_id=entry["uniqueId"], name=entry.get("pickUpLocation") or "")
            for entry in recent
            if entry.get("uniqueId")
        ]
    return AddressBook(addresses=addresses, default_address_id=default_id)


def parse_history(payload: Any) -> list[HistoricalOrder]:
    """One row per ordered dish, taken from ORDER items that carry order details."""

    orders: list[HistoricalOrder] = []
    for day, item in _iter_calendar_items(payload):
        order_user = item.get("corpOrderUser")
        if item.get("status") != "ORDER" or not order_user:
            continue
        meal_time = meal_time_from_item(item)
        for restaurant_item in _list(_dict(order_user).get("restaurantItemList")):
            restaurant_item = _dict(restaurant_item)
            restaurant_name = (
                _dict(restaurant_item.get("restaurant")).get("name") or "Unknown Restaurant"
            )
            for dish_item in _list(restaurant_item.get("dishItemList")):
                dish = _dict(_dict(dish_item).get("dish"))
                orders.append(
                    HistoricalOrder(
                        date=day,
                        meal_time=meal_time,
                        dish_name=dish.get("name") or "",
                        restaurant_name=restaurant_name,
                        price_in_cent=dish.get("priceInCent") or 0,
                    )
                )
    return orders


def history_to_wire(orders: Iterable[HistoricalOrder]) -> list[dict[str, Any]]:
    """Render history rows with the camelCase keys the proxy exposes."""

    return [
        {
            "date": order.date.isoformat(),
            "mealTime": order.meal_time.value,
            "dishName": order.dish_name,
            "restaurantName": order.restaurant_name,
            "priceInCent": order.price_in_cent,
        }
        for order in orders
    ]


def history_from_wire(rows: Iterable[Any]) -> list[HistoricalOrder]:
    orders: list[HistoricalOrder] = []
    for row in rows:
        row = _dict(row)
        try:
            orders.append(
                HistoricalOrder(
                    date=row.get("date"),
                    meal_time=row.get("mealTime") or MealTime.LUNCH,
                    dish_name=row.get("dishName") or "",
                    restaurant_name=row.get("restaurantName") or "Unknown Restaurant",
                    price_in_cent=row.get("priceInCent") or 0,
                )
            )
        except ValueError as exc:
            logger.warning("Skipping malformed history row %s: %s", row, exc)
    return orders
