"""Chunked order-history collection from the calendar endpoint."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterator, Optional

from mealpilot.config import get_settings
from mealpilot.models.slot import HistoricalOrder
from mealpilot.upstream.meican import MeicanClient
from mealpilot.upstream.transform import parse_history

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30


def iter_chunks(begin: date, end: date, chunk_days: int) -> Iterator[tuple[date, date]]:
    """Yield inclusive ``(start, end)`` windows of at most ``chunk_days`` days."""

    step = timedelta(days=max(1, chunk_days))
    current = begin
    while current <= end:
        chunk_end = min(current + step - timedelta(days=1), end)
        yield current, chunk_end
        current += step


def collect_order_history(
    client: MeicanClient,
    begin: Optional[date] = None,
    end: Optional[date] = None,
    *,
    chunk_days: Optional[int] = None,
    today: Optional[date] = None,
) -> list[HistoricalOrder]:
    """Fetch ordered dishes between ``begin`` and ``end`` (default: the last 30 days).

    The platform rejects wide calendar ranges ("Period is out of range"), so
    the window is walked in chunks.
    """

    today = today or date.today()
    end = end or today
    begin = begin or (today - timedelta(days=DEFAULT_HISTORY_DAYS))
    size = chunk_days or get_settings().history_chunk_days

    orders: list[HistoricalOrder] = []
    for chunk_start, chunk_end in iter_chunks(begin, end, size):
        logger.debug("Fetching history chunk %s to %s", chunk_start, chunk_end)
        payload = client.calendar_items(chunk_start.isoformat(), chunk_end.isoformat(), True)
        orders.extend(parse_history(payload))
    logger.info("Collected %d historical order rows", len(orders))
    return orders
