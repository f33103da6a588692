"""
MODULE OVERVIEW:
The Rich Terminal Dashboard.

WHAT IS HAPPENING HERE:
One client runs in a background task while Rich redraws four times a second.
The feed shows each notification with its delivery lag: the gap between the server's
`createdAt` and the moment this client saw it. Run two terminals, one short-poll and one
websocket, and the lag column tells the whole story.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone

from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from realtime_comparison.client.base_client import BaseConnectionClient
from realtime_comparison.shared.models import Notification

PROTOCOL_INFO = {
    "short-poll": "Short Polling: asks 'anything new?' on a timer. Most answers are empty, lag is up to one interval.",
    "long-poll": "Long Polling: the server holds each request until a notification arrives or the deadline passes.",
    "sse": "Server-Sent Events: one long HTTP response, the server writes whenever it has something.",
    "websocket": "WebSocket: full-duplex socket; the server pushes and answers our pongs.",
}

STATUS_COLORS = {"ACTIVE": "green", "WAITING": "yellow"}


class Visualizer:
    def __init__(self, client: BaseConnectionClient, protocol_name: str):
        self.client = client
        self.protocol_name = protocol_name
        self.status = "INITIALIZING"
        self.feed: deque[tuple[str, str, str, str]] = deque(maxlen=10)
        self.timeline: deque[str] = deque(maxlen=5)

    async def on_status_change(self, status: str):
        self.status = status
        self.timeline.appendleft(f"[{datetime.now():%H:%M:%S}] {status}")

    async def on_notification(self, notification: Notification):
        received = datetime.now(timezone.utc)
        lag_ms = (received - notification.created_at).total_seconds() * 1000
        message = notification.message if len(notification.message) <= 40 else notification.message[:40] + "..."
        self.feed.appendleft((f"{received.astimezone():%H:%M:%S}", str(notification.id), message, f"{lag_ms:,.0f}"))

    def _status_color(self) -> str:
        for prefix, color in STATUS_COLORS.items():
            if prefix in self.status:
                return color
        return "red"

    def _feed_table(self) -> Table:
        table = Table(title="Notifications", expand=True)
        table.add_column("Received", style="cyan", no_wrap=True)
        table.add_column("Id", style="magenta", justify="right")
        table.add_column("Message", style="green")
        table.add_column("Lag (ms)", style="blue", justify="right")
        for row in self.feed:
            table.add_row(*row)
        return table

    def _stats_text(self) -> str:
        c = self.client
        return (
            f"Notifications: {c.notifications_received}\n"
            f"Requests: {c.stats['requests_sent']}\n"
            f"Empty Responses: {c.empty_responses}\n"
            f"Avg Request: {c.average_request_ms:.1f}ms\n"
            f"Reconnects: {c.reconnect_count}"
        )

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(Layout(name="header", size=3), Layout(name="main"))
        layout["main"].split_row(Layout(name="feed", ratio=2), Layout(name="side", ratio=1))
        layout["side"].split_column(Layout(name="stats"), Layout(name="timeline"), Layout(name="info"))

        color = self._status_color()
        layout["header"].update(
            Panel(f"[{color} bold]{self.client.__class__.__name__} ({self.client.client_id}) | {self.status}[/]", style=color)
        )
        layout["feed"].update(Panel(self._feed_table(), title="Feed"))
        layout["stats"].update(Panel(self._stats_text(), title="Client Stats"))
        layout["timeline"].update(Panel("\n".join(self.timeline), title="Timeline"))
        layout["info"].update(Panel(PROTOCOL_INFO.get(self.protocol_name, self.protocol_name), title="How it works"))
        return layout

    async def run(self, duration_s: float):
        self.client.set_callbacks(self.on_notification, self.on_status_change)
        client_task = asyncio.create_task(self.client.run(duration_s))

        with Live(self.generate_layout(), refresh_per_second=4) as live:
            while not client_task.done():
                live.update(self.generate_layout())
                await asyncio.sleep(0.25)
        # surface anything the client died with
        await client_task
