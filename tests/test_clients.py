"""Tests for the demo clients, using httpx.MockTransport in place of a running server."""
import json

import httpx
import pytest

from realtime_comparison.client.long_poll_client import LongPollClient
from realtime_comparison.client.short_poll_client import ShortPollClient
from realtime_comparison.client.sse_client import SSEClient
from realtime_comparison.shared.client_utils import make_client_stats, with_reconnect
from realtime_comparison.shared.route_utils import parse_since
from realtime_comparison.shared.errors import InvalidInputError

NOTIFICATION_JSON = {
    "id": 1,
    "message": "hello",
    "createdAt": "2024-05-01T12:00:00Z",
    "delivered": True,
}


class Collector:
    def __init__(self):
        self.notifications = []
        self.statuses = []

    async def on_notification(self, notification):
        self.notifications.append(notification)

    async def on_status(self, status):
        self.statuses.append(status)


async def _attach(client, collector: Collector, handler) -> None:
    client.set_callbacks(collector.on_notification, collector.on_status)
    await client.client.aclose()
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestShortPollClient:
    async def test_moves_since_cursor_forward(self):
        seen_params = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_params.append(dict(request.url.params))
            return httpx.Response(200, json=[NOTIFICATION_JSON] if len(seen_params) == 1 else [])

        client = ShortPollClient("c1", "http://test", interval_s=0)
        collector = Collector()
        await _attach(client, collector, handler)

        await client.connect()
        await client.connect()
        await client.disconnect()

        assert seen_params[0] == {}
        assert parse_since(seen_params[1]["since"]) == collector.notifications[0].created_at
        assert client.notifications_received == 1
        assert client.empty_responses == 1
        assert client.stats["requests_sent"] == 2


class TestLongPollClient:
    async def test_timeout_answer_counts_as_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["clientId"] == "c1"
            return httpx.Response(200, json=[])

        client = LongPollClient("c1", "http://test", server_timeout_s=1.0)
        collector = Collector()
        await _attach(client, collector, handler)

        await client.connect()
        await client.disconnect()

        assert client.empty_responses == 1
        assert collector.statuses[-1] == "ACTIVE (timeout)"

    async def test_delivered_batch_reaches_callback(self):
        client = LongPollClient("c1", "http://test")
        collector = Collector()
        await _attach(client, collector, lambda request: httpx.Response(200, json=[NOTIFICATION_JSON]))

        await client.connect()
        await client.disconnect()

        assert [n.message for n in collector.notifications] == ["hello"]
        assert client.average_request_ms >= 0.0


class TestSSEClient:
    async def test_parses_notification_blocks_and_skips_heartbeats(self):
        client = SSEClient("c1", "http://test")
        collector = Collector()
        client.set_callbacks(collector.on_notification, collector.on_status)

        await client._parse_sse_block(f"event: notification\nid: 1\ndata: {json.dumps(NOTIFICATION_JSON)}")
        await client._parse_sse_block('event: heartbeat\ndata: {"serverTime": "now"}')
        await client._parse_sse_block("event: notification\ndata: not json")
        await client.disconnect()

        assert [n.id for n in collector.notifications] == [1]
        assert client.notifications_received == 1


async def test_with_reconnect_counts_failures_and_stops_at_duration():
    stats = make_client_stats()

    async def always_fails():
        raise httpx.ConnectError("refused")

    await with_reconnect(always_fails, stats, duration_s=0.2, base_delay_s=0.01, max_delay_s=0.02)

    assert stats["reconnect_count"] >= 1


def test_parse_since_accepts_z_and_naive():
    assert parse_since("2024-05-01T12:00:00Z") == parse_since("2024-05-01T12:00:00")
    assert parse_since(None) is None
    with pytest.raises(InvalidInputError):
        parse_since("not a date")
