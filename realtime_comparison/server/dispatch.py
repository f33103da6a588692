"""
MODULE OVERVIEW:
The Dispatch Engine: where a new notification is born and fanned out to all three channels.

WHAT IS HAPPENING HERE:
A notification is first written to the event store. Only then does the engine touch the
fast paths, so no consumer ever sees a notification that is not recorded yet:

  1. wake every parked long-poll waiter with the single-element batch
  2. publish it to the push topic (WebSocket + SSE subscribers)
  3. count it on the "push" channel

The three legs are independent side effects. If the push hub blows up, the long-poll
clients have already been woken and the counter still moves; the failure is logged and
listed in the returned `DispatchReport`. Short polling needs nothing from us: it finds
the notification in the store on its next request.

A background task owned by the engine synthesises a notification every few seconds so
there is constant traffic to compare against. `send()` is the manual variant.
"""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from loguru import logger

from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.waiter_registry import WaiterRegistry
from realtime_comparison.shared.errors import InvalidInputError
from realtime_comparison.shared.models import Notification

NOTIFICATION_TOPIC = "notifications"


class PushTransport(Protocol):
    async def publish(self, topic: str, notification: Notification) -> int: ...


@dataclass
class DispatchReport:
    notification: Notification
    waiters_resolved: int = 0
    push_subscribers: int = 0
    failed_legs: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_legs


def random_message(counter: int) -> str:
    """Picks one of the fixed templates. Content is irrelevant to delivery."""
    templates = [
        lambda: f"New notification #{counter}",
        lambda: f"System updated - {datetime.now(timezone.utc).isoformat()}",
        lambda: "Security alert detected",
        lambda: "Backup completed successfully",
        lambda: f"User connected: user{random.randint(1000, 9999)}",
        lambda: f"Process finished: {random.randint(1, 99)}",
        lambda: f"Memory usage: {random.randint(60, 94)}%",
        lambda: f"Server temperature: {random.randint(35, 74)}°C",
    ]
    return random.choice(templates)()


async def message_generator(interval_s: float):
    """Yields a synthetic message every `interval_s` seconds, forever."""
    counter = 0
    while True:
        await asyncio.sleep(interval_s)
        counter += 1
        yield random_message(counter)


class DispatchEngine:
    def __init__(
        self,
        store: InMemoryEventStore,
        waiters: WaiterRegistry,
        push: PushTransport,
        metrics: MetricsAggregator,
        interval_s: float = 5.0,
    ):
        self.store = store
        self.waiters = waiters
        self.push = push
        self.metrics = metrics
        self.interval_s = interval_s
        self._task: asyncio.Task | None = None

    async def publish(self, notification: Notification) -> DispatchReport:
        """Fan an already-persisted notification out to the fast paths."""
        report = DispatchReport(notification=notification)

        try:
            report.waiters_resolved = self.waiters.resolve_all([notification])
        except Exception:
            logger.exception(f"dispatch id={notification.id} leg=long_poll event=error")
            report.failed_legs.append("long_poll")

        try:
            report.push_subscribers = await self.push.publish(NOTIFICATION_TOPIC, notification)
        except Exception:
            logger.exception(f"dispatch id={notification.id} leg=push event=error")
            report.failed_legs.append("push")

        try:
            self.metrics.increment_notification_count("push")
        except Exception:
            logger.exception(f"dispatch id={notification.id} leg=metrics event=error")
            report.failed_legs.append("metrics")

        logger.info(
            f"dispatch id={notification.id} waiters={report.waiters_resolved} "
            f"push_subscribers={report.push_subscribers} failed={report.failed_legs or 'none'}"
        )
        return report

    async def create_and_publish(self, message: str) -> DispatchReport:
        # A StorageError propagates: an unrecorded notification is never published.
        notification = self.store.save(message)
        return await self.publish(notification)

    async def send(self, message: str | None) -> DispatchReport:
        if message is None or not message.strip():
            raise InvalidInputError("message is required and must not be blank")
        return await self.create_and_publish(message)

    # ==========================
    # PERIODIC GENERATION
    # ==========================
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="notification-generator")
        logger.info(f"dispatch event=generator_started interval_s={self.interval_s}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("dispatch event=generator_stopped")

    async def _run(self) -> None:
        try:
            async for message in message_generator(self.interval_s):
                try:
                    await self.create_and_publish(message)
                except Exception:
                    # One bad tick must not end the generator.
                    logger.exception("dispatch event=generation_error")
        except asyncio.CancelledError:
            logger.debug("dispatch event=generator_cancelled")
            raise
