"""
MODULE OVERVIEW:
Composite reads for a dashboard that compares the three channels side by side.

WHAT IS HAPPENING HERE:
These endpoints only stitch together what the store, the aggregator and the waiter
registry already expose. None of them mutates a delivered flag, so a dashboard refreshing
every two seconds does not disturb the polling clients it is watching.
`POST /reset` is the one write: it wipes the metrics and every stored notification.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from loguru import logger

from realtime_comparison.server.dependencies import (
    get_engine,
    get_metrics,
    get_push_hub,
    get_settings,
    get_store,
    get_waiters,
)
from realtime_comparison.server.dispatch import DispatchEngine
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.push_hub import PushHub
from realtime_comparison.server.waiter_registry import WaiterRegistry
from realtime_comparison.shared.config import Settings
from realtime_comparison.shared.models import (
    DashboardData,
    GeneralStats,
    HealthStatus,
    MessageResponse,
    RealtimeStats,
)

router = APIRouter(prefix="/api/dashboard")


@router.get("/data", response_model=DashboardData)
async def dashboard_data(
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
    app_settings: Settings = Depends(get_settings),
):
    return DashboardData(
        metrics=metrics.summary(),
        latest_notifications=store.latest(app_settings.LATEST_DEFAULT_LIMIT),
        general_stats=GeneralStats(
            total_notifications=store.count(),
            undelivered_notifications=store.count_undelivered(),
            timestamp=datetime.now(timezone.utc),
        ),
    )


@router.get("/realtime", response_model=RealtimeStats)
async def dashboard_realtime(
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
    waiters: WaiterRegistry = Depends(get_waiters),
):
    return RealtimeStats(
        metrics=metrics.summary(),
        undelivered_count=store.count_undelivered(),
        waiting_clients=waiters.count(),
        last_update=datetime.now(timezone.utc),
    )


@router.post("/reset", response_model=MessageResponse)
async def dashboard_reset(
    store: InMemoryEventStore = Depends(get_store),
    metrics: MetricsAggregator = Depends(get_metrics),
):
    # The only HTTP path that deletes notifications. Ids keep counting up afterwards.
    metrics.reset()
    removed = store.clear()
    logger.info(f"dashboard event=reset notifications_removed={removed}")
    return MessageResponse(message="Dashboard reset")


@router.get("/health", response_model=HealthStatus)
async def dashboard_health(
    engine: DispatchEngine = Depends(get_engine),
    hub: PushHub = Depends(get_push_hub),
    app_settings: Settings = Depends(get_settings),
):
    generator_ok = engine.running or not app_settings.GENERATION_ENABLED
    push_ok = not hub.closed
    services = {
        "eventStore": "UP",
        "metrics": "UP",
        "waiterRegistry": "UP",
        "generator": "UP" if engine.running else ("DISABLED" if generator_ok else "DOWN"),
        "pushHub": "UP" if push_ok else "DOWN",
    }
    return HealthStatus(
        status="UP" if generator_ok and push_ok else "DEGRADED",
        timestamp=datetime.now(timezone.utc),
        services=services,
    )
