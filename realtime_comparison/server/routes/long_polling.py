"""
MODULE OVERVIEW:
Long Polling: the client asks "anything new?" and we hold the answer until there is.

WHAT IS HAPPENING HERE:
First we run the same store query as short polling. If it finds something, we answer at
once. If it finds nothing, the request parks itself in the waiter registry and awaits
its future, which costs no thread while it sleeps. Three things can end the wait:

  * the dispatch engine publishes a notification   -> we return it (marked delivered)
  * the deadline passes, or an operator forces it   -> we return []
  * the same client id opens a newer long poll      -> 409, the newer request wins

There is no await between the empty query and the registration, so a notification
published "in between" cannot be missed. Every answered request records exactly one
latency sample in the "long" channel.

Status codes: besides 200, 400 (bad `since`) and 500, this route can answer 409 Conflict.
Only two live requests sharing one explicit `clientId` produce it. Anonymous requests get
a full uuid4 id and never collide.
"""
import asyncio
import time

from fastapi import APIRouter, Depends, Query
from loguru import logger

from realtime_comparison.server.dependencies import get_metrics, get_settings, get_store, get_waiters
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.waiter_registry import WaiterRegistry, WaitOutcome
from realtime_comparison.shared.config import Settings
from realtime_comparison.shared.models import LongPollingStats, MessageResponse, Notification
from realtime_comparison.shared.route_utils import elapsed_ms, extract_client_id, log_connection, parse_since

router = APIRouter(prefix="/api/long-polling")


def _record(metrics: MetricsAggregator, start: float, delivered: int) -> float:
    latency = elapsed_ms(start)
    metrics.record_request("long", latency)
    if delivered:
        metrics.increment_notification_count("long", delivered)
    return latency


@router.get("/notifications", response_model=list[Notification])
async def long_poll(
    since: str | None = Query(None, description="ISO-8601; only notifications strictly newer"),
    client_id: str | None = Query(None, alias="clientId", description="Unique client identifier"),
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
    waiters: WaiterRegistry = Depends(get_waiters),
    app_settings: Settings = Depends(get_settings),
):
    start = time.perf_counter()
    cid = await extract_client_id(client_id)
    since_ts = parse_since(since)

    existing = store.claim(since_ts)
    if existing:
        latency = _record(metrics, start, len(existing))
        await log_connection("long_poll", cid, {"event": "immediate", "count": len(existing), "latency_ms": f"{latency:.2f}"})
        return existing

    waiter = waiters.register(cid, app_settings.LONG_POLL_TIMEOUT_S)
    try:
        result = await waiter.wait()
    except asyncio.CancelledError:
        waiters.discard(waiter)
        raise

    if result.outcome is WaitOutcome.SUPERSEDED:
        _record(metrics, start, 0)
        raise result.error

    delivered = store.mark_delivered(n.id for n in result.notifications)
    latency = _record(metrics, start, len(delivered))
    await log_connection(
        "long_poll", cid,
        {"event": result.outcome.value, "count": len(delivered), "latency_ms": f"{latency:.2f}"},
    )
    return delivered


@router.get("/stats", response_model=LongPollingStats)
async def long_polling_stats(waiters: WaiterRegistry = Depends(get_waiters)):
    count = waiters.count()
    logger.debug(f"protocol=long_poll event=stats waiting={count}")
    return LongPollingStats(waiting_clients=count)


@router.post("/force-timeout", response_model=MessageResponse)
async def force_timeout(waiters: WaiterRegistry = Depends(get_waiters)):
    released = waiters.force_timeout_all()
    return MessageResponse(message=f"Forced timeout on {released} waiting clients")


@router.post("/metrics/reset", response_model=MessageResponse)
async def reset_long_metrics(metrics: MetricsAggregator = Depends(get_metrics)):
    metrics.reset("long")
    return MessageResponse(message="Long polling metrics reset")
