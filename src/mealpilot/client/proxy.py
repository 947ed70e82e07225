"""httpx client for the Mealpilot proxy."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

import httpx

from mealpilot.client.base import GatewayError, OrderError
from mealpilot.config import get_settings
from mealpilot.models.slot import AddressBook, Dish, HistoricalOrder, OrderReceipt, Slot
from mealpilot.upstream.transform import (
    history_from_wire,
    parse_addresses,
    parse_calendar,
    parse_dishes,
    parse_restaurants,
)

logger = logging.getLogger(__name__)

NO_ADDRESS_MESSAGE = "No delivery address available. Please set a default address in Settings."


@dataclass
class ProxyLoginResult:
    success: bool
    session_id: Optional[str] = None
    error: Optional[str] = None


class ProxyGateway:
    """Talk to the proxy with the session id obtained from ``login``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session_id: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.proxy_url).rstrip("/")
        self._session_id = session_id
        self._api_token = settings.api_token
        self._timeout = timeout if timeout is not None else settings.proxy_timeout
        self._transport = transport

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._session_id:
            headers["X-Session-Id"] = self._session_id
        if self._api_token:
            headers["X-API-Key"] = self._api_token
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        logger.debug("%s %s params=%s", method, path, dict(params or {}))
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                return client.request(
                    method,
                    f"{self._base_url}{path}",
                    params=params,
                    json=body,
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise GatewayError(f"Proxy request failed: {exc}") from exc

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        response = self._send(method, path, params=params, body=body)
        if response.is_error:
            try:
                detail = response.json()
            except json.JSONDecodeError:
                detail = {}
            message = detail.get("message") if isinstance(detail, dict) else None
            raise GatewayError(
                message or f"API Error: {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise GatewayError(f"Proxy returned non-JSON body for {path}") from exc

    # Authentication

    def login(self, username: str, password: str) -> ProxyLoginResult:
        """Log in through the proxy; a successful login is remembered on this gateway."""

        try:
            response = self._send(
                "POST", "/api/auth/login", body={"username": username, "password": password}
            )
            data = response.json()
        except (GatewayError, json.JSONDecodeError) as exc:
            logger.error("Login through proxy failed: %s", exc)
            return ProxyLoginResult(success=False, error=str(exc) or "Login failed")

        if not isinstance(data, dict):
            return ProxyLoginResult(success=False, error="Login failed")
        if data.get("success") and data.get("sessionId"):
            self._session_id = data["sessionId"]
            return ProxyLoginResult(success=True, session_id=self._session_id)
        return ProxyLoginResult(
            success=False,
            error=data.get("error") or data.get("message") or "Login failed",
        )

    def logout(self) -> bool:
        if not self._session_id:
            return True
        try:
            self._send("POST", "/api/auth/logout")
        except GatewayError as exc:
            logger.error("Logout failed: %s", exc)
            return False
        self._session_id = None
        return True

    def is_authenticated(self) -> bool:
        if not self._session_id:
            return False
        try:
            data = self._request("GET", "/api/auth/status")
        except GatewayError as exc:
            logger.warning("Auth status check failed: %s", exc)
            return False
        return isinstance(data, dict) and data.get("authenticated") is True

    # Platform operations

    def fetch_calendar(self, begin: date, end: date) -> list[Slot]:
        payload = self._request(
            "GET",
            "/api/calendarItems/list",
            params={
                "beginDate": begin.isoformat(),
                "endDate": end.isoformat(),
                "withOrderDetail": "true",
            },
        )
        return parse_calendar(payload)

    def fetch_dishes(self, tab_unique_id: str, target_time: str) -> list[Dish]:
        payload = self._request(
            "GET",
            "/api/recommendations/dishes",
            params={"tabUniqueId": tab_unique_id, "targetTime": target_time},
        )
        return parse_dishes(payload)

    def fetch_restaurants(self, tab_unique_id: str, target_time: str) -> list[Dish]:
        payload = self._request(
            "GET",
            "/api/restaurants/list",
            params={"tabUniqueId": tab_unique_id, "targetTime": target_time},
        )
        return parse_restaurants(payload)

    def fetch_addresses(self, namespace: Optional[str] = None) -> AddressBook:
        params = {"namespace": namespace} if namespace else {}
        payload = self._request("GET", "/api/corpaddresses/getmulticorpaddress", params=params)
        return parse_addresses(payload)

    def fetch_history(self, begin: date, end: date) -> list[HistoricalOrder]:
        payload = self._request(
            "GET",
            "/api/history/orders",
            params={"beginDate": begin.isoformat(), "endDate": end.isoformat()},
        )
        rows = payload.get("orders") if isinstance(payload, dict) else None
        return history_from_wire(rows or [])

    def place_order(
        self,
        tab_unique_id: str,
        dish_id: str,
        target_time: str,
        corp_address_id: Optional[str],
        user_address_id: Optional[str] = None,
    ) -> OrderReceipt:
        if not corp_address_id:
            raise OrderError(NO_ADDRESS_MESSAGE)

        body = {
            "tabUniqueId": tab_unique_id,
            "order": json.dumps([{"count": 1, "dishId": dish_id}]),
            "remarks": json.dumps([{"dishId": dish_id, "remark": ""}]),
            "targetTime": target_time,
            "userAddressUniqueId": user_address_id or corp_address_id,
            "corpAddressUniqueId": corp_address_id,
        }
        try:
            data = self._request("POST", "/api/orders/add", body=body)
        except GatewayError as exc:
            raise OrderError(str(exc), status_code=exc.status_code) from exc

        data = data if isinstance(data, dict) else {}
        if data.get("status") != "SUCCESSFUL":
            raise OrderError(data.get("message") or "Order failed")
        order = data.get("order") if isinstance(data.get("order"), dict) else {}
        logger.info("Placed order dish=%s target=%s", dish_id, target_time)
        return OrderReceipt(order_unique_id=order.get("uniqueId"))

    def delete_order(self, order_unique_id: str) -> None:
        body = {"uniqueId": order_unique_id, "type": "CORP_ORDER", "restoreCart": False}
        try:
            data = self._request("POST", "/api/orders/delete", body=body)
        except GatewayError as exc:
            raise OrderError(str(exc), status_code=exc.status_code) from exc

        data = data if isinstance(data, dict) else {}
        if data.get("status") != "SUCCESSFUL":
            raise OrderError(data.get("message") or "Failed to delete order")
        logger.info("Deleted order %s", order_unique_id)
