"""
MODULE OVERVIEW:
The strictly typed data structures shared by the server and the demo clients,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
Every notification that leaves the event store is a frozen `Notification` snapshot,
so a batch handed to a long-poll waiter or pushed over a WebSocket can never be
mutated by another channel. JSON field names are camelCase (`createdAt`,
`requestCount`) because that is what the dashboard clients expect on the wire.
"""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

Channel = Literal["short", "long", "push"]

# Display names used by the comparison endpoint, in presentation order.
CHANNEL_NAMES: dict[str, str] = {
    "short": "Short Polling",
    "long": "Long Polling",
    "push": "Push (WebSocket/SSE)",
}


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# WHAT IS HAPPENING HERE:
# The universal unit of data. `delivered` flips to True the first time a pull-style
# consumer (short or long poll) reads it; push subscribers never touch the flag.
class Notification(ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    message: str
    created_at: datetime
    delivered: bool = False


class PerformanceMetrics(ApiModel):
    technique: str
    request_count: int = 0
    total_latency: float = 0.0
    notification_count: int = 0
    last_update: datetime

    @computed_field(alias="averageLatency")
    @property
    def average_latency(self) -> float:
        if self.request_count > 0:
            return self.total_latency / self.request_count
        return 0.0


class MetricsSummary(ApiModel):
    total_requests: int
    total_notifications: int
    average_latency: float
    technique_metrics: list[PerformanceMetrics]


class TechniqueStats(ApiModel):
    name: str
    request_count: int
    notification_count: int
    average_latency: float
    last_update: datetime | None


class ComparisonStats(ApiModel):
    short_polling: TechniqueStats
    long_polling: TechniqueStats
    push: TechniqueStats


class LongPollingStats(ApiModel):
    waiting_clients: int


class PushStats(ApiModel):
    websocket_subscribers: int
    sse_subscribers: int
    total_published: int


# `message` is optional on purpose: a missing or blank message is answered with
# our own 400 instead of FastAPI's generic 422.
class SendNotificationRequest(ApiModel):
    message: str | None = None


class SendNotificationResponse(ApiModel):
    status: Literal["sent"]
    notification: Notification


class GeneralStats(ApiModel):
    total_notifications: int
    undelivered_notifications: int
    timestamp: datetime


class DashboardData(ApiModel):
    metrics: MetricsSummary
    latest_notifications: list[Notification]
    general_stats: GeneralStats


class RealtimeStats(ApiModel):
    metrics: MetricsSummary
    undelivered_count: int
    waiting_clients: int
    last_update: datetime


class HealthStatus(ApiModel):
    status: Literal["UP", "DEGRADED"]
    timestamp: datetime
    services: dict[str, str]


class MessageResponse(ApiModel):
    message: str
