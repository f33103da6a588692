import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable

from realtime_comparison.shared.client_utils import make_client_stats, with_reconnect
from realtime_comparison.shared.models import Notification


class BaseConnectionClient(ABC):
    protocol_name: str = "unknown"

    def __init__(self, client_id: str, server_base_url: str):
        self.client_id = client_id
        self.server_base_url = server_base_url.rstrip('/')

        self.on_notification_callback: Callable[[Notification], Awaitable[None]] | None = None
        self.on_status_change_callback: Callable[[str], Awaitable[None]] | None = None

        self.stats = make_client_stats()
        self._is_running = False

    @property
    def notifications_received(self): return self.stats["notifications_received"]

    @property
    def reconnect_count(self): return self.stats["reconnect_count"]

    @property
    def empty_responses(self): return self.stats["empty_responses"]

    @property
    def average_request_ms(self) -> float:
        if not self.stats["requests_sent"]:
            return 0.0
        return self.stats["total_request_ms"] / self.stats["requests_sent"]

    def set_callbacks(self, on_notification, on_status_change):
        self.on_notification_callback = on_notification
        self.on_status_change_callback = on_status_change

    async def _emit_status(self, status: str):
        if self.on_status_change_callback:
            await self.on_status_change_callback(status)

    def record_request(self, started_at: float, empty: bool) -> None:
        """Bookkeeping for pull clients: one call per HTTP round trip."""
        self.stats["requests_sent"] += 1
        self.stats["total_request_ms"] += (time.perf_counter() - started_at) * 1000
        if empty:
            self.stats["empty_responses"] += 1

    async def on_notification(self, notification: Notification):
        self.stats["notifications_received"] += 1
        self.stats["last_notification_at"] = datetime.now(timezone.utc).isoformat()
        if self.on_notification_callback:
            await self.on_notification_callback(notification)

    @abstractmethod
    async def connect(self) -> None:
        """The actual protocol implementation loop runs here."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    async def run(self, duration_s: float = 60.0) -> None:
        self._is_running = True
        try:
            await with_reconnect(
                self.connect,
                self.stats,
                duration_s,
                protocol=self.protocol_name,
                client_id=self.client_id
            )
        except asyncio.CancelledError:
            pass
        finally:
            self._is_running = False
            await self.disconnect()
            await self._emit_status("CLOSED")
