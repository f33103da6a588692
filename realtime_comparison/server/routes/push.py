"""
MODULE OVERVIEW:
REST side of the push channel: manual send, history and subscriber stats.

WHAT IS HAPPENING HERE:
`POST /api/push/send` is the manual counterpart of the periodic generator. The message is
validated, persisted and handed to the dispatch engine, which reaches all three channels,
not just push.
"""
import time

from fastapi import APIRouter, Depends, Query
from loguru import logger

from realtime_comparison.server.dependencies import (
    get_engine,
    get_metrics,
    get_push_hub,
    get_settings,
    get_store,
)
from realtime_comparison.server.dispatch import DispatchEngine
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.push_hub import PushHub
from realtime_comparison.shared.config import Settings
from realtime_comparison.shared.errors import InvalidInputError
from realtime_comparison.shared.models import (
    MessageResponse,
    Notification,
    PushStats,
    SendNotificationRequest,
    SendNotificationResponse,
)
from realtime_comparison.shared.route_utils import elapsed_ms

router = APIRouter(prefix="/api/push")


@router.post("/send", response_model=SendNotificationResponse)
async def send_notification(
    body: SendNotificationRequest | None = None,
    engine: DispatchEngine = Depends(get_engine),
):
    report = await engine.send(body.message if body else None)
    logger.info(f"protocol=push event=manual_send id={report.notification.id}")
    return SendNotificationResponse(status="sent", notification=report.notification)


@router.get("/notifications/history", response_model=list[Notification])
async def notification_history(
    limit: int | None = Query(None),
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
    app_settings: Settings = Depends(get_settings),
):
    start = time.perf_counter()
    limit = app_settings.HISTORY_DEFAULT_LIMIT if limit is None else limit
    if limit < 1:
        raise InvalidInputError("limit must be at least 1")

    notifications = store.latest(limit)

    metrics.record_request("push", elapsed_ms(start))
    return notifications


@router.get("/stats", response_model=PushStats)
async def push_stats(hub: PushHub = Depends(get_push_hub)):
    return hub.stats()


@router.post("/metrics/reset", response_model=MessageResponse)
async def reset_push_metrics(metrics: MetricsAggregator = Depends(get_metrics)):
    metrics.reset("push")
    return MessageResponse(message="Push metrics reset")
