"""Calendar slot, menu and address models."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MealTime(str, Enum):
    """Meal period of a calendar slot."""

    BREAKFAST = "BREAKFAST"
    LUNCH = "LUNCH"
    DINNER = "DINNER"


class SlotStatus(str, Enum):
    """Ordering status reported by the platform for a slot."""

    AVAILABLE = "AVAILABLE"
    ORDERED = "ORDER"
    CLOSED = "CLOSED"
    NO_SERVICE = "NO_SERVICE"


class Dish(BaseModel):
    """Orderable dish (or a restaurant standing in for one at breakfast)."""

    id: str
    name: str
    price_in_cent: int = Field(default=0, ge=0)
    restaurant_name: str = ""
    restaurant_id: str = ""

    model_config = ConfigDict(frozen=True)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        """Platform dish ids arrive as numbers; keep them as strings."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value)) if float(value).is_integer() else str(value)
        return value


class Slot(BaseModel):
    """A single (date, meal period) ordering opportunity."""

    date: dt.date
    meal_time: MealTime
    status: SlotStatus
    tab_unique_id: Optional[str] = None
    current_order: Optional[Dish] = None
    order_unique_id: Optional[str] = None
    close_time: Optional[str] = Field(
        default=None,
        description="Modification deadline, either 'HH:MM' or 'YYYY-MM-DD HH:MM'.",
    )
    user_address_unique_id: Optional[str] = None
    namespace: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_weekend(self) -> bool:
        return self.date.weekday() >= 5


class Address(BaseModel):
    """Delivery address; identifiers are only meaningful inside one namespace."""

    unique_id: str
    name: str

    model_config = ConfigDict(frozen=True)


class AddressBook(BaseModel):
    """Addresses available under one namespace plus the platform's suggestion."""

    addresses: list[Address] = Field(default_factory=list)
    default_address_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def find_by_id(self, unique_id: Optional[str]) -> Optional[Address]:
        if not unique_id:
            return None
        return next((address for address in self.addresses if address.unique_id == unique_id), None)

    def find_by_name(self, name: Optional[str]) -> Optional[Address]:
        if not name:
            return None
        return next((address for address in self.addresses if address.name == name), None)


class EnrichedSlot(BaseModel):
    """Eligible slot with the menu fetched for it."""

    date: dt.date
    meal_time: MealTime
    tab_unique_id: str
    menu: list[Dish] = Field(default_factory=list)
    user_address_unique_id: Optional[str] = None
    namespace: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_slot(cls, slot: Slot, menu: list[Dish]) -> "EnrichedSlot":
        return cls(
            date=slot.date,
            meal_time=slot.meal_time,
            tab_unique_id=slot.tab_unique_id or "",
            menu=list(menu),
            user_address_unique_id=slot.user_address_unique_id,
            namespace=slot.namespace,
        )


class HistoricalOrder(BaseModel):
    """Dish ordered in the past, used as taste-profile input."""

    date: dt.date
    meal_time: MealTime
    dish_name: str
    restaurant_name: str = "Unknown Restaurant"
    price_in_cent: int = 0

    model_config = ConfigDict(frozen=True)


class OrderReceipt(BaseModel):
    """Successful order placement acknowledgement."""

    order_unique_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)
