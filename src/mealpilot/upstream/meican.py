"""Thin httpx wrapper around the Meican preorder API."""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import unquote

import httpx

from mealpilot import metrics
from mealpilot.config import get_settings

logger = logging.getLogger(__name__)

PLATFORM_ORIGIN = "https://meican.com"
BROWSER_HEADERS = {
    "Accept": "application/json",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Origin": PLATFORM_ORIGIN,
    "Referer": f"{PLATFORM_ORIGIN}/",
}

_LOGIN_FAILURE_MARKERS = ("用户名或密码错误", "login fail")
_FLASH_RE = re.compile(r'PLAY_FLASH="([^"]*)"')


class UpstreamError(RuntimeError):
    """Raised when the platform rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MeicanClient:
    """Issue authenticated preorder API calls using a stored cookie header."""

    def __init__(
        self,
        cookie: str = "",
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._cookie = cookie
        self._base_url = (base_url or settings.upstream_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.upstream_timeout
        self._transport = transport

    def _headers(self, form: bool = False) -> dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        if self._cookie:
            headers["Cookie"] = self._cookie
        else:
            logger.warning("No platform cookies available; request may be rejected")
        if form:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        data: Optional[Mapping[str, str]] = None,
    ) -> Any:
        query = {"noHttpGetCache": str(int(time.time() * 1000))}
        query.update(params or {})
        url = f"{self._base_url}{path}"
        logger.debug("%s %s cookies=%s", method, path, "present" if self._cookie else "missing")

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.request(
                    method,
                    url,
                    params=query,
                    data=dict(data) if data is not None else None,
                    headers=self._headers(form=data is not None),
                )
        except httpx.HTTPError as exc:
            metrics.UPSTREAM_REQUESTS.labels(path=path, outcome="transport_error").inc()
            logger.error("Platform request %s %s failed: %s", method, path, exc)
            raise UpstreamError(f"Meican API request failed: {exc}") from exc

        if response.is_error:
            metrics.UPSTREAM_REQUESTS.labels(path=path, outcome="http_error").inc()
            logger.error(
                "Platform error %s on %s: %s",
                response.status_code,
                path,
                response.text[:200],
            )
            raise UpstreamError(
                f"Meican API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            metrics.UPSTREAM_REQUESTS.labels(path=path, outcome="invalid_json").inc()
            raise UpstreamError(f"Meican API returned non-JSON body for {path}") from exc
        metrics.UPSTREAM_REQUESTS.labels(path=path, outcome="ok").inc()
        return payload

    def calendar_items(self, begin_date: str, end_date: str, with_order_detail: bool = True) -> Any:
        return self._request(
            "GET",
            "/calendarItems/list",
            params={
                "beginDate": begin_date,
                "endDate": end_date,
                "withOrderDetail": "true" if with_order_detail else "false",
            },
        )

    def addresses(self, namespace: str = "") -> Any:
        return self._request(
            "GET", "/corpaddresses/getmulticorpaddress", params={"namespace": namespace}
        )

    def restaurants(self, tab_unique_id: str, target_time: str) -> Any:
        return self._request(
            "GET",
            "/restaurants/list",
            params={"tabUniqueId": tab_unique_id, "targetTime": target_time},
        )

    def dishes(self, tab_unique_id: str, target_time: str) -> Any:
        return self._request(
            "GET",
            "/recommendations/dishes",
            params={"tabUniqueId": tab_unique_id, "targetTime": target_time},
        )

    def add_order(self, form: Mapping[str, str]) -> Any:
        """Submit an order form (tabUniqueId, order, remarks, targetTime, addresses)."""
        return self._request("POST", "/orders/add", data=form)

    def delete_order(
        self,
        unique_id: str,
        order_type: str = "CORP_ORDER",
        restore_cart: str = "false",
    ) -> Any:
        return self._request(
            "POST",
            "/orders/delete",
            data={"uniqueId": unique_id, "type": order_type, "restoreCart": restore_cart},
        )


@dataclass
class LoginOutcome:
    """Result of a form login; ``cookies`` is a ready-to-send Cookie header."""

    success: bool
    cookies: str = ""
    error: Optional[str] = None


def extract_cookies(set_cookie_headers: Iterable[str]) -> str:
    """Keep the ``name=value`` part of each Set-Cookie header."""

    pairs = [header.split(";", 1)[0].strip() for header in set_cookie_headers]
    return "; ".join(pair for pair in pairs if pair)


def _flash_has_error(cookies: str) -> bool:
    match = _FLASH_RE.search(cookies)
    if not match:
        return False
    return "error=" in unquote(match.group(1))


def evaluate_login_response(body: str, set_cookie_headers: Iterable[str]) -> LoginOutcome:
    """Decide whether a login response carries a usable platform session."""

    if any(marker in body for marker in _LOGIN_FAILURE_MARKERS):
        return LoginOutcome(success=False, error="Invalid username or password")

    cookies = extract_cookies(set_cookie_headers)
    if not cookies:
        return LoginOutcome(success=False, error="Login failed - no session received")

    if _flash_has_error(cookies):
        return LoginOutcome(success=False, error="Invalid username or password (Flash)")

    has_session = "PLAY_SESSION=" in cookies and "PLAY_SESSION=;" not in cookies
    if not has_session:
        return LoginOutcome(success=False, error="Login failed - invalid session")

    return LoginOutcome(success=True, cookies=cookies)


def login(
    username: str,
    password: str,
    *,
    login_url: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> LoginOutcome:
    """Perform the platform's username/password form login without following redirects."""

    settings = get_settings()
    url = login_url or settings.upstream_login_url
    headers = dict(BROWSER_HEADERS)
    headers["Accept"] = "application/json, text/plain, */*"
    headers["Content-Type"] = "application/x-www-form-urlencoded"
    form = {
        "username": username,
        "password": password,
        "loginType": "username",
        "remember": "true",
    }

    logger.info("Attempting platform login for user=%s", username)
    try:
        with httpx.Client(
            timeout=timeout if timeout is not None else settings.upstream_timeout,
            follow_redirects=False,
            transport=transport,
        ) as client:
            response = client.post(url, data=form, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Login request failed: {exc}") from exc

    logger.debug("Login response status=%s", response.status_code)
    outcome = evaluate_login_response(response.text, response.headers.get_list("set-cookie"))
    if not outcome.success:
        logger.info("Platform login rejected: %s", outcome.error)
    return outcome
