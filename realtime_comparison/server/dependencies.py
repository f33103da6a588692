"""
FastAPI dependencies handing each route the components owned by its application.

Everything lives on `app.state` (built in `create_app()`), so two apps in the same
process, as in the test suite, never share a waiter registry or metrics.
`HTTPConnection` covers both plain requests and WebSockets.
"""
from fastapi.requests import HTTPConnection

from realtime_comparison.server.dispatch import DispatchEngine
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.push_hub import PushHub
from realtime_comparison.server.waiter_registry import WaiterRegistry
from realtime_comparison.shared.config import Settings


def get_settings(conn: HTTPConnection) -> Settings:
    return conn.app.state.settings


def get_store(conn: HTTPConnection) -> InMemoryEventStore:
    return conn.app.state.store


def get_metrics(conn: HTTPConnection) -> MetricsAggregator:
    return conn.app.state.metrics


def get_waiters(conn: HTTPConnection) -> WaiterRegistry:
    return conn.app.state.waiters


def get_push_hub(conn: HTTPConnection) -> PushHub:
    return conn.app.state.push_hub


def get_engine(conn: HTTPConnection) -> DispatchEngine:
    return conn.app.state.engine
