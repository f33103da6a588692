"""
MODULE OVERVIEW:
Short Polling: the client asks "anything new?" on a fixed timer, and we answer immediately.

WHAT IS HAPPENING HERE:
Every request is a fresh query against the event store. Without `since`, the client gets
every undelivered notification and those are marked delivered, so the next poll will not
repeat them. With `since`, it gets everything newer than its cursor. Either way one
latency sample lands in the "short" channel metrics, empty answers included. Empty
answers are exactly what makes short polling expensive.
"""
import time

from fastapi import APIRouter, Depends, Query, Response
from loguru import logger

from realtime_comparison.server.dependencies import get_metrics, get_settings, get_store
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.shared.config import Settings
from realtime_comparison.shared.errors import InvalidInputError
from realtime_comparison.shared.models import MessageResponse, Notification
from realtime_comparison.shared.route_utils import elapsed_ms, parse_since

router = APIRouter(prefix="/api/short-polling")


@router.get("/notifications", response_model=list[Notification])
async def short_poll(
    response: Response,
    since: str | None = Query(None, description="ISO-8601; only notifications strictly newer"),
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
    app_settings: Settings = Depends(get_settings),
):
    start = time.perf_counter()
    since_ts = parse_since(since)

    notifications = store.claim(since_ts)

    latency = elapsed_ms(start)
    metrics.record_request("short", latency)
    if notifications:
        metrics.increment_notification_count("short", len(notifications))

    response.headers["X-Poll-Interval"] = str(app_settings.SHORT_POLL_INTERVAL_MS)
    logger.info(f"protocol=short_poll event=response count={len(notifications)} latency_ms={latency:.2f}")
    return notifications


@router.get("/notifications/latest", response_model=list[Notification])
async def latest_notifications(
    limit: int | None = Query(None, description="How many of the newest notifications"),
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
    app_settings: Settings = Depends(get_settings),
):
    start = time.perf_counter()
    limit = app_settings.LATEST_DEFAULT_LIMIT if limit is None else limit
    if limit < 1:
        raise InvalidInputError("limit must be at least 1")

    notifications = store.latest(limit)

    metrics.record_request("short", elapsed_ms(start))
    return notifications


@router.get("/notifications/count", response_model=int)
async def notification_count(
    since: str | None = Query(None),
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
):
    start = time.perf_counter()
    since_ts = parse_since(since)

    count = store.count_after(since_ts) if since_ts is not None else store.count_undelivered()

    metrics.record_request("short", elapsed_ms(start))
    return count


@router.post("/metrics/reset", response_model=MessageResponse)
async def reset_short_metrics(metrics: MetricsAggregator = Depends(get_metrics)):
    metrics.reset("short")
    return MessageResponse(message="Short polling metrics reset")
