import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Awaitable, Callable

from loguru import logger

from realtime_comparison.shared.errors import InvalidInputError
from realtime_comparison.shared.models import Notification


async def extract_client_id(client_id: str | None) -> str:
    """
    If the caller provided a client_id, use it.
    If not, generate 'client-<uuid4>'. The id keys the waiter registry and the push hub,
    so two anonymous clients must never share one.
    """
    if client_id:
        return client_id
    return f"client-{uuid.uuid4()}"


async def log_connection(protocol: str, client_id: str, extra: dict | None = None) -> None:
    """
    Single structured log entry for any connection event.
    Writes: protocol, client_id and any extra fields.
    """
    log_str = f"protocol={protocol} client_id={client_id}"
    for k, v in (extra or {}).items():
        log_str += f" {k}={v}"
    logger.info(log_str)


def parse_since(since: str | None) -> datetime | None:
    """
    Parses the `since` query parameter (ISO-8601). Naive timestamps are taken as UTC.
    A trailing 'Z' is accepted, as browsers send it from `Date.toISOString()`.
    """
    if not since:
        return None
    try:
        parsed = datetime.fromisoformat(since.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidInputError(f"'since' is not an ISO-8601 timestamp: {since!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_ms(start: float) -> float:
    """Milliseconds since a `time.perf_counter()` reading."""
    return (time.perf_counter() - start) * 1000


async def run_heartbeat_loop(
    client_id: str,
    protocol: str,
    send_heartbeat: Callable[[], Awaitable[None]],
    interval_s: float,
) -> None:
    """
    Sends a heartbeat every `interval_s` seconds until cancelled.
    Push connections receive notifications from the hub directly; this loop only keeps
    idle connections (and the proxies in between) from timing out.
    """
    try:
        while True:
            await asyncio.sleep(interval_s)
            await send_heartbeat()
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.debug(f"protocol={protocol} client_id={client_id} event=heartbeat_stopped reason='{e}'")


async def stream_with_heartbeat(
    queue: asyncio.Queue[Notification],
    heartbeat_interval_s: float,
) -> AsyncGenerator[dict, None]:
    """
    Drains an SSE subscription queue into sse-starlette event dicts.
    If `heartbeat_interval_s` passes with nothing queued, a heartbeat event is emitted instead.
    """
    while True:
        try:
            notification = await asyncio.wait_for(queue.get(), timeout=heartbeat_interval_s)
            yield {
                "event": "notification",
                "id": str(notification.id),
                "data": notification.model_dump_json(by_alias=True),
            }
        except asyncio.TimeoutError:
            yield {
                "event": "heartbeat",
                "data": f'{{"serverTime": "{datetime.now(timezone.utc).isoformat()}"}}',
            }
