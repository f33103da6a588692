"""
MODULE OVERVIEW:
The WebSocket client implementation.

WHAT IS HAPPENING HERE:
We use the `websockets` library. The server pushes notification JSON and, now and then,
a `{"type": "ping"}`. Answering with a pong gives the server its round-trip latency
sample for the push channel.
"""

import json

import websockets
from pydantic import ValidationError

from realtime_comparison.client.base_client import BaseConnectionClient
from realtime_comparison.shared.models import Notification


class WebSocketClient(BaseConnectionClient):
    protocol_name: str = "websocket"

    def __init__(self, client_id: str, server_base_url: str):
        super().__init__(client_id, server_base_url)
        ws_base = self.server_base_url.replace('http://', 'ws://').replace('https://', 'wss://')
        self.ws_url = f"{ws_base}/api/push/ws?clientId={self.client_id}"

    async def disconnect(self) -> None:
        pass

    async def connect(self) -> None:
        async with websockets.connect(self.ws_url, ping_interval=None) as ws:
            await self._emit_status("ACTIVE")

            while True:
                message = await ws.recv()
                try:
                    data = json.loads(message)
                    if data.get("type") == "ping":
                        await ws.send(json.dumps({"type": "pong"}))
                    else:
                        await self.on_notification(Notification.model_validate(data))
                except (json.JSONDecodeError, ValidationError):
                    pass
