import asyncio
import random
from datetime import datetime, timezone
from typing import Awaitable, Callable

import httpx
import websockets
from loguru import logger

# What counts as "the server went away" for any of the demo clients.
RECONNECTABLE_ERRORS = (ConnectionError, OSError, websockets.WebSocketException, httpx.HTTPError)


def make_client_stats() -> dict:
    """
    Fresh per-client counters. `empty_responses` only moves for the pull clients;
    a push client that sits idle is not doing anything wrong.
    """
    return {
        "notifications_received": 0,
        "empty_responses": 0,
        "requests_sent": 0,
        "reconnect_count": 0,
        "total_request_ms": 0.0,
        "last_notification_at": None,
        "connected_at": datetime.now(timezone.utc).isoformat(),
    }


def backoff_delay(attempt: int, base_delay_s: float, max_delay_s: float) -> float:
    """Exponential backoff capped at `max_delay_s`, plus up to 10% jitter."""
    delay = min(base_delay_s * (2 ** attempt), max_delay_s)
    return delay + random.uniform(0, delay * 0.1)


async def with_reconnect(
    connect_fn: Callable[[], Awaitable[None]],
    stats: dict,
    duration_s: float,
    base_delay_s: float = 1.0,
    max_delay_s: float = 32.0,
    protocol: str = "unknown",
    client_id: str = "unknown",
) -> None:
    """
    Calls `connect_fn` over and over until `duration_s` has elapsed.
    A pull client's `connect_fn` is one request, a push client's is one whole connection.
    Network failures back off exponentially; a clean return resets the backoff.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + duration_s
    attempt = 0

    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            return
        try:
            await asyncio.wait_for(connect_fn(), timeout=remaining)
            attempt = 0
            continue
        except asyncio.TimeoutError:
            return
        except RECONNECTABLE_ERRORS as e:
            attempt += 1
            stats["reconnect_count"] += 1
            delay = backoff_delay(attempt, base_delay_s, max_delay_s)
            logger.warning(
                f"protocol={protocol} client_id={client_id} event=reconnect "
                f"attempt={attempt} delay_s={delay:.2f} reason='{e}'"
            )

        await asyncio.sleep(min(delay, max(deadline - loop.time(), 0)))
