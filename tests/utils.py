"""Small builders shared by the test modules."""
import asyncio
from datetime import datetime, timezone

from httpx import AsyncClient

from realtime_comparison.shared.config import Settings
from realtime_comparison.shared.models import Notification


def make_settings(**overrides) -> Settings:
    values = {"GENERATION_ENABLED": False, "LONG_POLL_TIMEOUT_S": 5.0}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_notification(id: int = 1, message: str = "hello") -> Notification:
    return Notification(id=id, message=message, created_at=datetime.now(timezone.utc))


async def wait_for_waiters(client: AsyncClient, expected: int, attempts: int = 100) -> None:
    """Poll the long-polling stats until `expected` requests are parked."""
    for _ in range(attempts):
        resp = await client.get("/api/long-polling/stats")
        if resp.json()["waitingClients"] == expected:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"expected {expected} waiting clients, last saw {resp.json()}")
