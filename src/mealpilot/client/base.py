"""Gateway protocol the planner uses to reach the catering platform."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from mealpilot.models.preferences import UserPreferences
from mealpilot.models.slot import AddressBook, Dish, HistoricalOrder, OrderReceipt, Slot


class GatewayError(RuntimeError):
    """Raised when the proxy (or the platform behind it) fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OrderError(GatewayError):
    """Raised when an order cannot be placed or deleted."""


class MealGateway(Protocol):
    """Operations the planning session depends on."""

    def fetch_calendar(self, begin: date, end: date) -> list[Slot]:
        ...

    def fetch_dishes(self, tab_unique_id: str, target_time: str) -> list[Dish]:
        ...

    def fetch_restaurants(self, tab_unique_id: str, target_time: str) -> list[Dish]:
        ...

    def fetch_addresses(self, namespace: Optional[str] = None) -> AddressBook:
        ...

    def fetch_history(self, begin: date, end: date) -> list[HistoricalOrder]:
        ...

    def place_order(
        self,
        tab_unique_id: str,
        dish_id: str,
        target_time: str,
        corp_address_id: Optional[str],
        user_address_id: Optional[str] = None,
    ) -> OrderReceipt:
        ...

    def delete_order(self, order_unique_id: str) -> None:
        ...


def build_gateway(prefs: UserPreferences) -> MealGateway:
    """Return the mock platform or a proxy-backed gateway for ``prefs``."""

    if prefs.use_mock_data:
        from mealpilot.client.mock import MockGateway

        return MockGateway()

    from mealpilot.client.proxy import ProxyGateway

    return ProxyGateway(base_url=prefs.proxy_url, session_id=prefs.session_id)
