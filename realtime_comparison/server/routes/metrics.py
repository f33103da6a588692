"""
Read and reset the per-channel metrics. Nothing here touches the counters directly;
every read and write goes through the MetricsAggregator.
"""
from fastapi import APIRouter, Depends

from realtime_comparison.server.dependencies import get_metrics
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.shared.errors import NotFoundError
from realtime_comparison.shared.models import (
    CHANNEL_NAMES,
    ComparisonStats,
    MessageResponse,
    MetricsSummary,
    PerformanceMetrics,
)

router = APIRouter(prefix="/api/metrics")


def _known_channel(channel: str) -> str:
    if channel not in CHANNEL_NAMES:
        raise NotFoundError(f"unknown channel '{channel}'; expected one of {', '.join(CHANNEL_NAMES)}")
    return channel


@router.get("", response_model=list[PerformanceMetrics])
async def all_metrics(metrics: MetricsAggregator = Depends(get_metrics)):
    return metrics.all()


# Fixed paths are declared before /{channel} so they are not captured by it.
@router.get("/summary", response_model=MetricsSummary)
async def metrics_summary(metrics: MetricsAggregator = Depends(get_metrics)):
    return metrics.summary()


@router.get("/comparison", response_model=ComparisonStats)
async def metrics_comparison(metrics: MetricsAggregator = Depends(get_metrics)):
    return metrics.comparison()


@router.post("/reset", response_model=MessageResponse)
async def reset_all_metrics(metrics: MetricsAggregator = Depends(get_metrics)):
    metrics.reset()
    return MessageResponse(message="All metrics reset")


@router.get("/{channel}", response_model=PerformanceMetrics)
async def channel_metrics(channel: str, metrics: MetricsAggregator = Depends(get_metrics)):
    record = metrics.get(_known_channel(channel))
    if record is None:
        raise NotFoundError(f"no metrics recorded yet for channel '{channel}'")
    return record


@router.post("/{channel}/reset", response_model=MessageResponse)
async def reset_channel_metrics(channel: str, metrics: MetricsAggregator = Depends(get_metrics)):
    metrics.reset(_known_channel(channel))
    return MessageResponse(message=f"Metrics for '{channel}' reset")
