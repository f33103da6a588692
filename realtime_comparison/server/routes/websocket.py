"""
MODULE OVERVIEW:
The WebSocket route: the other push subscription to the notification topic.

WHAT IS HAPPENING HERE:
After the upgrade, the push hub writes every published notification straight into this
socket. Our own loop has two jobs. It sends a `{"type": "ping"}` heartbeat, and it reads
what the client sends back. A `{"type": "pong"}` answer gives us a real round-trip time,
and that is the latency sample recorded for the "push" channel (push has no request per
notification to time).
"""
import asyncio
import json
import time

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from loguru import logger

from realtime_comparison.server.dispatch import NOTIFICATION_TOPIC
from realtime_comparison.shared.route_utils import elapsed_ms, extract_client_id, log_connection, run_heartbeat_loop

router = APIRouter(prefix="/api/push")


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    client_id: str | None = Query(None, alias="clientId"),
):
    state = websocket.app.state
    hub, metrics = state.push_hub, state.metrics
    cid = await extract_client_id(client_id)
    await hub.connect_ws(NOTIFICATION_TOPIC, cid, websocket)
    await log_connection("websocket:connect", cid)

    last_ping: dict[str, float] = {}

    async def send_ping() -> None:
        last_ping["sent"] = time.perf_counter()
        await websocket.send_text(json.dumps({"type": "ping"}))

    loop_task = asyncio.create_task(
        run_heartbeat_loop(cid, "websocket", send_ping, state.settings.WS_HEARTBEAT_INTERVAL_S)
    )

    try:
        while True:
            text_data = await websocket.receive_text()
            try:
                message = json.loads(text_data)
            except json.JSONDecodeError:
                logger.debug(f"client_id={cid} protocol=websocket event=ignored reason=not_json")
                continue
            if isinstance(message, dict) and message.get("type") == "pong" and "sent" in last_ping:
                metrics.record_request("push", elapsed_ms(last_ping.pop("sent")))
    except WebSocketDisconnect:
        pass
    finally:
        loop_task.cancel()
        hub.disconnect_ws(NOTIFICATION_TOPIC, cid, websocket)
        await log_connection("websocket:disconnect", cid)
