"""
MODULE OVERVIEW:
Server-Sent Events: one of the two push subscriptions to the notification topic.

WHAT IS HAPPENING HERE:
The client opens one long-lived HTTP response. The push hub drops every published
notification into this client's queue, and we stream it out as an `event: notification`
block. Heartbeats keep idle streams alive. Push subscribers never flip the delivered
flag; that belongs to the pull channels.
"""
from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from realtime_comparison.server.dependencies import get_push_hub, get_settings
from realtime_comparison.server.dispatch import NOTIFICATION_TOPIC
from realtime_comparison.server.push_hub import PushHub
from realtime_comparison.shared.config import Settings
from realtime_comparison.shared.route_utils import extract_client_id, log_connection, stream_with_heartbeat

router = APIRouter(prefix="/api/push")


@router.get("/stream")
async def sse_endpoint(
    client_id: str | None = Query(None, alias="clientId"),
    hub: PushHub = Depends(get_push_hub),
    app_settings: Settings = Depends(get_settings),
):
    cid = await extract_client_id(client_id)
    queue = hub.subscribe_sse(NOTIFICATION_TOPIC, cid)
    await log_connection("sse:connect", cid)

    async def event_publisher():
        try:
            async for item in stream_with_heartbeat(queue, app_settings.SSE_HEARTBEAT_INTERVAL_S):
                yield item
        finally:
            hub.unsubscribe_sse(NOTIFICATION_TOPIC, cid, queue)
            await log_connection("sse:disconnect", cid)

    return EventSourceResponse(event_publisher())
