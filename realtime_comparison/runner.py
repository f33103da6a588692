"""
CLI entrypoint for the Real-Time Notification Comparison lab.
"""
import typer
import asyncio

import httpx
from rich.console import Console
from rich.table import Table

from realtime_comparison.client.short_poll_client import ShortPollClient
from realtime_comparison.client.long_poll_client import LongPollClient
from realtime_comparison.client.sse_client import SSEClient
from realtime_comparison.client.websocket_client import WebSocketClient
from realtime_comparison.client.visualizer import Visualizer
from realtime_comparison.shared.config import configure_logging, settings

app = typer.Typer(help="Real-Time Notification Comparison CLI Manager")
console = Console()


def _base_url() -> str:
    return f"http://127.0.0.1:{settings.PORT}"


@app.command()
def server():
    """Start the FastAPI backend server using Uvicorn."""
    import uvicorn
    configure_logging(settings.LOG_LEVEL)
    typer.echo(f"Starting server on port {settings.PORT}...")
    uvicorn.run("realtime_comparison.server.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


@app.command()
def client(
    protocol: str = typer.Option(..., help="Protocol to run: short-poll, long-poll, sse, websocket"),
    duration: float = typer.Option(60.0, help="Duration to run the client in seconds"),
    interval: float = typer.Option(settings.SHORT_POLL_INTERVAL_MS / 1000, help="Polling interval for short polling")
):
    """Run a specific client with the rich visualizer dashboard."""
    client_id = f"cli_{protocol}"
    base_url = _base_url()

    if protocol == "short-poll":
        c = ShortPollClient(client_id, base_url, interval_s=interval)
    elif protocol == "long-poll":
        c = LongPollClient(client_id, base_url, server_timeout_s=settings.LONG_POLL_TIMEOUT_S)
    elif protocol == "sse":
        c = SSEClient(client_id, base_url)
    elif protocol == "websocket":
        c = WebSocketClient(client_id, base_url)
    else:
        typer.echo("Invalid protocol.")
        raise typer.Exit(1)

    visualizer = Visualizer(c, protocol)
    try:
        asyncio.run(visualizer.run(duration))
    except KeyboardInterrupt:
        pass


@app.command()
def send(message: str = typer.Argument(None, help="Notification text; omit for a generated message")):
    """Publish one notification through the push endpoint."""
    body = {"message": message} if message else {}
    resp = httpx.post(f"{_base_url()}/api/push/send", json=body)
    typer.echo(resp.json())
    if resp.status_code >= 400:
        raise typer.Exit(1)


@app.command()
def stats():
    """Query the server for live dashboard stats."""
    resp = httpx.get(f"{_base_url()}/api/dashboard/realtime")
    typer.echo(resp.json())


@app.command()
def compare():
    """Print the per-technique comparison table."""
    resp = httpx.get(f"{_base_url()}/api/metrics/comparison")
    resp.raise_for_status()
    data = resp.json()

    table = Table(title="Technique Comparison")
    table.add_column("Technique", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Notifications", justify="right")
    table.add_column("Avg Latency (ms)", justify="right", style="green")
    table.add_column("Last Update", style="blue")

    for key in ("shortPolling", "longPolling", "push"):
        row = data[key]
        table.add_row(
            row["name"],
            str(row["requestCount"]),
            str(row["notificationCount"]),
            f"{row['averageLatency']:.2f}",
            row["lastUpdate"] or "-",
        )
    console.print(table)


if __name__ == "__main__":
    app()
