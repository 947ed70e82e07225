"""ASGI proxy application for Mealpilot."""
# mypy: ignore-errors

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta, timezone
from time import perf_counter
from typing import Any, Optional
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from mealpilot import __version__, metrics
from mealpilot.config import Settings, get_settings
from mealpilot.db.sessions import purge_sessions_older_than
from mealpilot.llm.interface import LLMError
from mealpilot.logging_utils import configure_logging as configure_app_logging
from mealpilot.server import deps
from mealpilot.upstream.meican import MeicanClient, UpstreamError
from mealpilot.upstream.transform import history_to_wire

logger = logging.getLogger(__name__)

ORDER_REQUIRED_FIELDS = (
    "tabUniqueId",
    "order",
    "targetTime",
    "userAddressUniqueId",
    "corpAddressUniqueId",
)

ENDPOINTS = {
    "health": "/health",
    "login": "/api/auth/login",
    "logout": "/api/auth/logout",
    "authStatus": "/api/auth/status",
    "calendarList": "/api/calendarItems/list",
    "addresses": "/api/corpaddresses/getmulticorpaddress",
    "restaurants": "/api/restaurants/list",
    "dishes": "/api/recommendations/dishes",
    "addOrder": "/api/orders/add",
    "deleteOrder": "/api/orders/delete",
    "historyOrders": "/api/history/orders",
    "aiChat": "/api/ai/chat",
    "settings": "/api/settings",
}


class ProxyRouteError(Exception):
    """Upstream failure rendered as ``{"error", "message"}``."""

    def __init__(self, error: str, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code


def _json_safe(value: Any) -> Any:
    """Convert non-serializable values into JSON-safe representations."""

    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple)):
        return [_json_safe(entry) for entry in value]
    if isinstance(value, dict):
        return {key: _json_safe(sub_value) for key, sub_value in value.items()}
    return repr(value)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def _forward(error: str, fn, *args) -> Any:
    """Run an upstream call, turning platform failures into a 500 response."""

    try:
        return fn(*args)
    except UpstreamError as exc:
        logger.error("%s: %s", error, exc)
        raise ProxyRouteError(error, str(exc)) from exc


async def read_payload(request: Request) -> dict[str, Any]:
    """Accept either a JSON object or a url-encoded form body."""

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return {key: value for key, value in form.items()}


def _encode_json_field(value: Any, default: Any = None) -> Optional[str]:
    if isinstance(value, str):
        return value
    if value is None:
        return None if default is None else json.dumps(default)
    return json.dumps(value, ensure_ascii=False)


def build_order_form(payload: dict[str, Any]) -> dict[str, Optional[str]]:
    """Normalise an order request into the platform's form fields."""

    form: dict[str, Optional[str]] = {
        "tabUniqueId": payload.get("tabUniqueId"),
        "order": _encode_json_field(payload.get("order")),
        "remarks": _encode_json_field(payload.get("remarks"), default=[]),
        "targetTime": payload.get("targetTime"),
        "userAddressUniqueId": payload.get("userAddressUniqueId"),
        "corpAddressUniqueId": payload.get("corpAddressUniqueId"),
    }
    if payload.get("corpAddressRemark"):
        form["corpAddressRemark"] = payload["corpAddressRemark"]
    return form


def _configure_logging(settings: Settings) -> None:
    configure_app_logging(settings.log_level, settings.log_format, [settings.api_token or ""])


def _build_api_router() -> APIRouter:
    router = APIRouter(prefix="/api", dependencies=[Depends(deps.require_api_token)])

    @router.post("/auth/login", summary="Log in to the platform")
    def auth_login(
        payload: Optional[dict[str, Any]] = Body(default=None),
        authenticator: deps.Authenticator = Depends(deps.get_authenticator),
        create_session: deps.SessionCreator = Depends(deps.get_session_creator),
    ):
        payload = payload or {}
        username = payload.get("username")
        password = payload.get("password")
        if not username or not password:
            return _bad_request("Username and password are required")

        try:
            outcome = authenticator(username, password)
        except UpstreamError as exc:
            logger.error("Login error: %s", exc)
            raise ProxyRouteError("Login failed", str(exc)) from exc

        if not outcome.success:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"success": False, "error": outcome.error},
            )

        session_id = create_session(outcome.cookies)
        return {"success": True, "sessionId": session_id, "message": "Login successful"}

    @router.post("/auth/logout", summary="Forget a proxy session")
    def auth_logout(
        request: Request,
        delete_session: deps.SessionDeleter = Depends(deps.get_session_deleter),
    ):
        session_id = request.headers.get("X-Session-Id")
        if session_id and delete_session(session_id):
            logger.info("Session logged out")
        return {"success": True, "message": "Logged out"}

    @router.get("/auth/status", summary="Check a proxy session")
    def auth_status(
        request: Request,
        age_provider: deps.SessionAgeProvider = Depends(deps.get_session_age_provider),
    ):
        session_id = request.headers.get("X-Session-Id")
        age = age_provider(session_id) if session_id else None
        if age is None:
            return {"authenticated": False}
        return {"authenticated": True, "sessionAge": age}

    @router.get("/calendarItems/list", summary="List calendar items")
    def calendar_items(
        begin_date: Optional[str] = Query(default=None, alias="beginDate"),
        end_date: Optional[str] = Query(default=None, alias="endDate"),
        with_order_detail: Optional[str] = Query(default=None, alias="withOrderDetail"),
        client: MeicanClient = Depends(deps.get_upstream_client),
    ):
        if not begin_date or not end_date:
            return _bad_request("beginDate and endDate are required")
        return _forward(
            "Failed to fetch calendar items",
            client.calendar_items,
            begin_date,
            end_date,
            with_order_detail != "false",
        )

    @router.get("/corpaddresses/getmulticorpaddress", summary="List delivery addresses")
    def addresses(
        namespace: str = Query(default=""),
        client: MeicanClient = Depends(deps.get_upstream_client),
    ):
        return _forward("Failed to fetch addresses", client.addresses, namespace)

    @router.get("/restaurants/list", summary="List restaurants for a slot")
    def restaurants(
        tab_unique_id: Optional[str] = Query(default=None, alias="tabUniqueId"),
        target_time: Optional[str] = Query(default=None, alias="targetTime"),
        client: MeicanClient = Depends(deps.get_upstream_client),
    ):
        if not tab_unique_id or not target_time:
            return _bad_request("tabUniqueId and targetTime are required")
        return _forward("Failed to fetch restaurants", client.restaurants, tab_unique_id, target_time)

    @router.get("/recommendations/dishes", summary="List dishes for a slot")
    def dishes(
        tab_unique_id: Optional[str] = Query(default=None, alias="tabUniqueId"),
        target_time: Optional[str] = Query(default=None, alias="targetTime"),
        client: MeicanClient = Depends(deps.get_upstream_client),
    ):
        if not tab_unique_id or not target_time:
            return _bad_request("tabUniqueId and targetTime are required")
        return _forward("Failed to fetch dishes", client.dishes, tab_unique_id, target_time)

    @router.post("/orders/add", summary="Place an order")
    def orders_add(
        payload: dict[str, Any] = Depends(read_payload),
        client: MeicanClient = Depends(deps.get_upstream_client),
    ):
        form = build_order_form(payload)
        for field in ORDER_REQUIRED_FIELDS:
            if not form.get(field):
                return _bad_request(f"Missing required field: {field}")
        return _forward("Failed to add order", client.add_order, form)

    @router.post("/orders/delete", summary="Delete an order")
    def orders_delete(
        payload: dict[str, Any] = Depends(read_payload),
        client: MeicanClient = Depends(deps.get_upstream_client),
    ):
        unique_id = payload.get("uniqueId")
        if not unique_id:
            return _bad_request("uniqueId is required")
        order_type = payload.get("type") or "CORP_ORDER"
        restore_cart = payload.get("restoreCart")
        if isinstance(restore_cart, bool):
            restore_cart = "true" if restore_cart else "false"
        return _forward(
            "Failed to delete order",
            client.delete_order,
            str(unique_id),
            order_type,
            restore_cart or "false",
        )

    @router.get("/history/orders", summary="Flattened order history")
    def history_orders(
        begin_date: Optional[date] = Query(default=None, alias="beginDate"),
        end_date: Optional[date] = Query(default=None, alias="endDate"),
        client: MeicanClient = Depends(deps.get_upstream_client),
        collector: deps.HistoryCollector = Depends(deps.get_history_collector),
    ):
        orders = _forward(
            "Failed to fetch order history", collector, client, begin_date, end_date
        )
        return {"orders": history_to_wire(orders)}

    @router.post("/ai/chat", summary="Forward a chat completion")
    def ai_chat(
        payload: Optional[dict[str, Any]] = Body(default=None),
        forwarder: deps.ChatForwarder = Depends(deps.get_chat_forwarder),
    ):
        payload = payload or {}
        base_url = payload.get("baseUrl")
        api_key = payload.get("apiKey")
        messages = payload.get("messages")
        if not base_url or not api_key or not messages:
            return _bad_request("Missing required fields")

        logger.info("Forwarding chat request to %s model=%s", base_url, payload.get("model"))
        try:
            return forwarder(
                base_url=base_url,
                api_key=api_key,
                model=payload.get("model"),
                messages=messages,
            )
        except LLMError as exc:
            logger.error("AI provider error: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "AI Provider Error", "details": str(exc)},
            )

    @router.get("/settings", summary="Load per-user settings")
    def settings_get(
        username: Optional[str] = Query(default=None),
        loader: deps.SettingsLoader = Depends(deps.get_settings_loader),
    ):
        if not username:
            return _bad_request("Username required")
        return loader(username)

    @router.post("/settings", summary="Merge per-user settings")
    def settings_post(
        payload: Optional[dict[str, Any]] = Body(default=None),
        merger: deps.SettingsMerger = Depends(deps.get_settings_merger),
    ):
        payload = payload or {}
        username = payload.get("username")
        new_settings = payload.get("settings")
        if not username or not isinstance(new_settings, dict):
            return _bad_request("Username and settings required")
        merger(username, new_settings)
        return {"success": True}

    return router


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title="Mealpilot Proxy", version=__version__)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.session_max_age_hours:
        max_age = timedelta(hours=settings.session_max_age_hours)
        purge_scheduler = AsyncIOScheduler()
        purge_scheduler.add_job(
            purge_sessions_older_than,
            "interval",
            args=[max_age],
            seconds=settings.session_purge_interval,
            max_instances=1,
            coalesce=True,
        )

        @application.on_event("startup")
        async def start_session_purge() -> None:
            purge_sessions_older_than(max_age)
            purge_scheduler.start()

        @application.on_event("shutdown")
        async def stop_session_purge() -> None:
            purge_scheduler.shutdown(wait=False)

    logger.debug("Application created with log level %s", settings.log_level)

    if settings.log_requests:
        access_logger = logging.getLogger("mealpilot.access")

        @application.middleware("http")
        async def log_request_response(request: Request, call_next):
            """Log request/response details without leaking sensitive data."""

            request_id = request.headers.get("X-Request-ID") or uuid4().hex
            request.state.request_id = request_id
            start = perf_counter()
            path = request.url.path
            method = request.method
            try:
                response: Response = await call_next(request)
            except Exception:
                duration_ms = (perf_counter() - start) * 1000
                access_logger.exception(
                    "HTTP %s %s status=500 duration_ms=%.2f",
                    method,
                    path,
                    duration_ms,
                    extra={"request_id": request_id},
                )
                metrics.REQUEST_COUNT.labels(method=method, path=path, status="500").inc()
                metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(
                    duration_ms / 1000.0
                )
                raise

            duration_ms = (perf_counter() - start) * 1000
            response.headers.setdefault("X-Request-ID", request_id)
            access_logger.info(
                "HTTP %s %s status=%s duration_ms=%.2f",
                method,
                path,
                response.status_code,
                duration_ms,
                extra={"request_id": request_id},
            )
            metrics.REQUEST_COUNT.labels(
                method=method,
                path=path,
                status=str(response.status_code),
            ).inc()
            metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(duration_ms / 1000.0)
            return response

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log_kwargs: dict[str, Any] = {}
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            log_kwargs["extra"] = {"request_id": request_id}

        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(),
            **log_kwargs,
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": _json_safe(exc.errors())},
        )

    @application.exception_handler(ProxyRouteError)
    async def proxy_error_handler(request: Request, exc: ProxyRouteError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": exc.message},
        )

    @application.get("/health", summary="Liveness probe")
    def health() -> dict[str, str]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }

    @application.get("/", summary="Endpoint index")
    def index() -> dict[str, Any]:
        return {"name": "Mealpilot Proxy", "version": __version__, "endpoints": ENDPOINTS}

    @application.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    application.include_router(_build_api_router())
    return application


app = create_app()
