"""
MODULE OVERVIEW:
The Server-Sent Events HTTP client implementation.

WHAT IS HAPPENING HERE:
We use the HTTPX `stream()` context manager to keep the body open.
We manually parse the `event: ` and `data: ` chunks to show the RAW text protocol.
No SSE library on purpose: this is exactly what the browser EventSource API does under the hood.
"""
import json

import httpx
from pydantic import ValidationError

from realtime_comparison.client.base_client import BaseConnectionClient
from realtime_comparison.shared.models import Notification


class SSEClient(BaseConnectionClient):
    protocol_name: str = "sse"

    def __init__(self, client_id: str, server_base_url: str):
        super().__init__(client_id, server_base_url)
        self.client = httpx.AsyncClient(timeout=60.0)

    async def disconnect(self) -> None:
        await self.client.aclose()

    async def connect(self) -> None:
        url = f"{self.server_base_url}/api/push/stream"
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}

        async with self.client.stream("GET", url, params={"clientId": self.client_id}, headers=headers) as response:
            response.raise_for_status()
            await self._emit_status("ACTIVE")

            buffer = ""
            async for chunk in response.aiter_text():
                # sse-starlette separates events with CRLF; normalise before splitting
                buffer += chunk.replace("\r\n", "\n")
                while "\n\n" in buffer:
                    block, buffer = buffer.split("\n\n", 1)
                    await self._parse_sse_block(block)

    async def _parse_sse_block(self, block: str):
        event_type = "message"
        data_str = ""

        for line in block.strip().split("\n"):
            if line.startswith("event:"):
                event_type = line.split(":", 1)[1].strip()
            elif line.startswith("data:"):
                data_str += line.split(":", 1)[1].strip() + "\n"

        data_str = data_str.strip()

        if event_type == "notification" and data_str:
            try:
                await self.on_notification(Notification.model_validate(json.loads(data_str)))
            except (json.JSONDecodeError, ValidationError):
                pass
