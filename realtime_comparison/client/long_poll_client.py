"""
MODULE OVERVIEW:
The Long Polling HTTP client implementation.

WHAT IS HAPPENING HERE:
Notice our HTTPX timeout is explicitly set HIGHER than the server's deadline
(Server=30s, Client=35s). If the server's deadline passes, it answers `[]` softly and we
reconnect at once. If the TCP connection drops before 35s, a network error is raised and
the reconnect wrapper applies exponential backoff.
"""
import time
from json import JSONDecodeError

import httpx
from pydantic import TypeAdapter

from realtime_comparison.client.base_client import BaseConnectionClient
from realtime_comparison.shared.models import Notification

NOTIFICATION_LIST = TypeAdapter(list[Notification])


class LongPollClient(BaseConnectionClient):
    protocol_name: str = "long-poll"

    def __init__(self, client_id: str, server_base_url: str, server_timeout_s: float = 30.0):
        super().__init__(client_id, server_base_url)
        self.client = httpx.AsyncClient(timeout=server_timeout_s + 5.0)

    async def disconnect(self) -> None:
        await self.client.aclose()

    async def connect(self) -> None:
        await self._emit_status("WAITING")
        url = f"{self.server_base_url}/api/long-polling/notifications"

        started_at = time.perf_counter()
        try:
            response = await self.client.get(url, params={"clientId": self.client_id})
            response.raise_for_status()
            notifications = NOTIFICATION_LIST.validate_python(response.json())
        except (httpx.ReadTimeout, JSONDecodeError) as e:
            raise httpx.RequestError(str(e), request=getattr(e, 'request', None))
        self.record_request(started_at, empty=not notifications)

        if not notifications:
            await self._emit_status("ACTIVE (timeout)")
            return

        await self._emit_status("ACTIVE (data)")
        for n in notifications:
            await self.on_notification(n)
