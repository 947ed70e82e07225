"""Prometheus metrics definitions for Mealpilot."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "mealpilot_http_requests_total",
    "Total number of HTTP requests processed by the Mealpilot proxy",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "mealpilot_http_request_duration_seconds",
    "Latency of HTTP requests processed by the Mealpilot proxy",
    ["method", "path"],
)

UPSTREAM_REQUESTS = Counter(
    "mealpilot_upstream_requests_total",
    "Requests forwarded to the catering platform by path and outcome",
    ["path", "outcome"],
)

ORDERS_SUBMITTED = Counter(
    "mealpilot_orders_submitted_total",
    "Order placements attempted by batch execution, by result",
    ["result"],
)

PROPOSALS_RECONCILED = Counter(
    "mealpilot_plan_proposals_total",
    "Generator proposals after reconciliation, by verdict",
    ["verdict"],
)

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "UPSTREAM_REQUESTS",
    "ORDERS_SUBMITTED",
    "PROPOSALS_RECONCILED",
]
