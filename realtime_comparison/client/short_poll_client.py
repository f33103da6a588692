"""
MODULE OVERVIEW:
The Short Polling HTTP client implementation.

WHAT IS HAPPENING HERE:
We use HTTPX to make constant, repeated GET requests on a fixed interval.
The client keeps a `since` cursor (the newest `createdAt` it has seen), so several short-poll
clients can watch the same feed without stealing each other's undelivered notifications.
Count the empty responses: that is the price of short polling.
"""
import asyncio
import time
from json import JSONDecodeError

import httpx
from pydantic import TypeAdapter

from realtime_comparison.client.base_client import BaseConnectionClient
from realtime_comparison.shared.models import Notification

NOTIFICATION_LIST = TypeAdapter(list[Notification])


class ShortPollClient(BaseConnectionClient):
    protocol_name: str = "short-poll"

    def __init__(self, client_id: str, server_base_url: str, interval_s: float = 5.0):
        super().__init__(client_id, server_base_url)
        self.interval_s = interval_s
        self.since: str | None = None
        self.client = httpx.AsyncClient(timeout=10.0)

    async def disconnect(self) -> None:
        await self.client.aclose()

    async def connect(self) -> None:
        await self._emit_status("ACTIVE")
        params = {"since": self.since} if self.since else {}

        started_at = time.perf_counter()
        try:
            response = await self.client.get(f"{self.server_base_url}/api/short-polling/notifications", params=params)
            response.raise_for_status()
            notifications = NOTIFICATION_LIST.validate_python(response.json())
        except JSONDecodeError as e:
            raise httpx.HTTPError(str(e))
        self.record_request(started_at, empty=not notifications)

        # Oldest first so the feed reads in order; the server returns `since` queries newest first.
        for n in sorted(notifications, key=lambda n: n.created_at):
            self.since = n.created_at.isoformat()
            await self.on_notification(n)

        await asyncio.sleep(max(0.1, self.interval_s))
