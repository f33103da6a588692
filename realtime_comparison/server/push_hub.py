"""
MODULE OVERVIEW:
The push transport. It holds every open WebSocket and SSE subscription, grouped by topic.

WHAT IS HAPPENING HERE:
The dispatch engine only knows one verb: `publish(topic, notification)`. This hub turns
that into a fan-out across two very different primitives:

  * WebSockets: we hold the socket and write JSON text straight into it.
  * SSE: each stream owns a bounded asyncio.Queue; the route drains it.

A slow or dead subscriber never takes the others down. A full SSE queue drops the event
with a warning, and a WebSocket that fails to send is disconnected. Only a hub that has
already been closed refuses to publish.
"""

import asyncio
from collections import defaultdict

from fastapi.websockets import WebSocket
from loguru import logger

from realtime_comparison.shared.errors import PushTransportError
from realtime_comparison.shared.models import Notification, PushStats


class PushHub:
    def __init__(self, queue_size: int = 100):
        # topic -> client_id -> socket
        self.websockets: dict[str, dict[str, WebSocket]] = defaultdict(dict)
        # topic -> client_id -> queue
        self.sse_queues: dict[str, dict[str, asyncio.Queue[Notification]]] = defaultdict(dict)
        self.queue_size = queue_size
        self.total_published = 0
        self._closed = False

    # ==========================
    # WEBSOCKET MANAGEMENT
    # ==========================
    async def connect_ws(self, topic: str, client_id: str, websocket: WebSocket):
        await websocket.accept()
        self.websockets[topic][client_id] = websocket
        logger.info(f"client_id={client_id} protocol=websocket event=connect topic={topic}")

    def disconnect_ws(self, topic: str, client_id: str, websocket: WebSocket):
        # A newer connection may have taken over the id; only remove our own socket.
        if self.websockets[topic].get(client_id) is not websocket:
            return
        del self.websockets[topic][client_id]
        logger.info(f"client_id={client_id} protocol=websocket event=disconnect topic={topic}")

    async def _broadcast_ws(self, topic: str, payload: str) -> int:
        sent = 0
        disconnected = []
        # Snapshot: sockets may connect or drop while we await each send.
        for client_id, ws in list(self.websockets[topic].items()):
            try:
                await ws.send_text(payload)
                sent += 1
            except Exception as e:
                logger.warning(f"client_id={client_id} protocol=websocket event=error reason='{e}'")
                disconnected.append((client_id, ws))

        for client_id, ws in disconnected:
            self.disconnect_ws(topic, client_id, ws)
        return sent

    # ==========================
    # SSE MANAGEMENT
    # ==========================
    def subscribe_sse(self, topic: str, client_id: str) -> asyncio.Queue[Notification]:
        queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=self.queue_size)
        self.sse_queues[topic][client_id] = queue
        logger.info(f"client_id={client_id} protocol=sse event=connect topic={topic}")
        return queue

    def unsubscribe_sse(self, topic: str, client_id: str, queue: asyncio.Queue[Notification]):
        if self.sse_queues[topic].get(client_id) is not queue:
            return
        del self.sse_queues[topic][client_id]
        logger.info(f"client_id={client_id} protocol=sse event=disconnect topic={topic}")

    def _broadcast_sse(self, topic: str, notification: Notification) -> int:
        queued = 0
        for client_id, queue in list(self.sse_queues[topic].items()):
            try:
                queue.put_nowait(notification)
                queued += 1
            except asyncio.QueueFull:
                logger.warning(f"client_id={client_id} protocol=sse event=dropped reason=queue_full")
        return queued

    # ==========================
    # PUBLISH
    # ==========================
    async def publish(self, topic: str, notification: Notification) -> int:
        """Deliver to every current subscriber of `topic`. Returns how many were reached."""
        if self._closed:
            raise PushTransportError(f"push hub is closed; cannot publish to '{topic}'")

        self.total_published += 1
        reached = self._broadcast_sse(topic, notification)
        reached += await self._broadcast_ws(topic, notification.model_dump_json(by_alias=True))
        logger.debug(f"protocol=push event=publish topic={topic} id={notification.id} reached={reached}")
        return reached

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> PushStats:
        return PushStats(
            websocket_subscribers=sum(len(c) for c in self.websockets.values()),
            sse_subscribers=sum(len(c) for c in self.sse_queues.values()),
            total_published=self.total_published,
        )

    async def close(self):
        self._closed = True
        for clients in list(self.websockets.values()):
            for client_id, ws in list(clients.items()):
                try:
                    await ws.close()
                except Exception as e:
                    logger.debug(f"client_id={client_id} protocol=websocket event=close_error reason='{e}'")
        self.websockets.clear()
        self.sse_queues.clear()
        logger.info("protocol=push event=closed")
