"""
MODULE OVERVIEW:
The Metrics Aggregator: per-channel counters used to compare the three techniques.

WHAT IS HAPPENING HERE:
Each channel ("short", "long", "push") gets one record, created lazily the first time
anything is recorded for it. Every delivery path reports here and nowhere else:
pull endpoints record one latency sample per request, and every path bumps the
notification counter for what it delivered.

The cross-channel `average_latency` in the summary is the mean of each channel's own
average, NOT a request-weighted mean. A channel with 1 request at 30s weighs the same as
one with 10k requests at 2ms. Keep that in mind before adding metrics on top of it.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger

from realtime_comparison.shared.models import (
    CHANNEL_NAMES,
    ComparisonStats,
    MetricsSummary,
    PerformanceMetrics,
    TechniqueStats,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _ChannelRecord:
    technique: str
    request_count: int = 0
    total_latency: float = 0.0
    notification_count: int = 0
    last_update: datetime = field(default_factory=_now)

    def snapshot(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            technique=self.technique,
            request_count=self.request_count,
            total_latency=self.total_latency,
            notification_count=self.notification_count,
            last_update=self.last_update,
        )


class MetricsAggregator:
    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, _ChannelRecord] = {}

    def record_request(self, channel: str, latency_ms: float) -> None:
        with self._lock:
            record = self._get_or_create(channel)
            record.request_count += 1
            record.total_latency += latency_ms
            record.last_update = _now()
            count = record.request_count
        logger.debug(f"metrics channel={channel} event=request latency_ms={latency_ms:.2f} requests={count}")

    def increment_notification_count(self, channel: str, amount: int = 1) -> None:
        with self._lock:
            record = self._get_or_create(channel)
            record.notification_count += amount
            record.last_update = _now()
            count = record.notification_count
        logger.debug(f"metrics channel={channel} event=notification total={count}")

    def get(self, channel: str) -> PerformanceMetrics | None:
        with self._lock:
            record = self._records.get(channel)
            return record.snapshot() if record else None

    def all(self) -> list[PerformanceMetrics]:
        with self._lock:
            return [r.snapshot() for r in self._records.values()]

    def summary(self) -> MetricsSummary:
        records = self.all()
        averages = [m.average_latency for m in records if m.request_count > 0]
        return MetricsSummary(
            total_requests=sum(m.request_count for m in records),
            total_notifications=sum(m.notification_count for m in records),
            average_latency=sum(averages) / len(averages) if averages else 0.0,
            technique_metrics=records,
        )

    def comparison(self) -> ComparisonStats:
        stats = {}
        for channel, name in CHANNEL_NAMES.items():
            metrics = self.get(channel)
            stats[channel] = TechniqueStats(
                name=name,
                request_count=metrics.request_count if metrics else 0,
                notification_count=metrics.notification_count if metrics else 0,
                average_latency=metrics.average_latency if metrics else 0.0,
                last_update=metrics.last_update if metrics else None,
            )
        return ComparisonStats(short_polling=stats["short"], long_polling=stats["long"], push=stats["push"])

    def reset(self, channel: str | None = None) -> None:
        with self._lock:
            if channel is None:
                self._records.clear()
            else:
                self._records.pop(channel, None)
        logger.info(f"metrics event=reset channel={channel or 'all'}")

    def _get_or_create(self, channel: str) -> _ChannelRecord:
        record = self._records.get(channel)
        if record is None:
            record = _ChannelRecord(technique=channel)
            self._records[channel] = record
        return record
