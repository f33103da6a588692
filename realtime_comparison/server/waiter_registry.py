"""
MODULE OVERVIEW:
The Waiter Registry. Every long-poll request that found nothing to return is parked here.

WHAT IS HAPPENING HERE:
A waiter is a one-shot completion slot (an `asyncio.Future`) plus a deadline timer.
Several parties race to finish it: the dispatch engine delivering a new notification,
the deadline timer firing, an operator forcing a timeout, a newer request under the
same client id, or the client simply going away. Exactly one of them wins.

The win is decided by `Waiter._claim()`: "is the future still pending? then set it".
Both halves run on the event loop thread with no `await` in between, so the check and
the set are atomic. The loser's attempt is a silent no-op. The winner also removes the
waiter from the map, but only if the map still holds *that* waiter; a newer waiter that
replaced it under the same client id is left alone.

The handler awaiting the future does not hold a thread. Thousands of parked requests cost
one future and one timer handle each.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from loguru import logger

from realtime_comparison.shared.errors import SupersededError
from realtime_comparison.shared.models import Notification


class WaitOutcome(str, Enum):
    DELIVERED = "delivered"
    TIMEOUT = "timeout"
    FORCED_TIMEOUT = "forced_timeout"
    SUPERSEDED = "superseded"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class WaitResult:
    outcome: WaitOutcome
    notifications: tuple[Notification, ...] = ()
    error: Exception | None = None


class Waiter:
    """Handle for one parked long-poll request."""

    def __init__(self, client_id: str, future: asyncio.Future, deadline: float):
        self.client_id = client_id
        self.deadline = deadline
        self._future = future
        self._timer: asyncio.TimerHandle | None = None

    @property
    def done(self) -> bool:
        return self._future.done()

    async def wait(self) -> WaitResult:
        # Shielded so a cancelled handler leaves the future for `discard()` to settle.
        return await asyncio.shield(self._future)

    def _claim(self, result: WaitResult) -> bool:
        if self._future.done():
            return False
        self._future.set_result(result)
        if self._timer is not None:
            self._timer.cancel()
        return True


class WaiterRegistry:
    def __init__(self):
        self._waiters: dict[str, Waiter] = {}

    def register(self, client_id: str, timeout_s: float) -> Waiter:
        """
        Parks a new waiter under `client_id` and arms its deadline.
        A still-pending waiter under the same id is resolved as SUPERSEDED.
        """
        loop = asyncio.get_running_loop()
        waiter = Waiter(client_id, loop.create_future(), loop.time() + timeout_s)

        previous = self._waiters.get(client_id)
        self._waiters[client_id] = waiter
        if previous is not None:
            superseded = WaitResult(
                WaitOutcome.SUPERSEDED,
                error=SupersededError(f"client {client_id} opened a newer long-poll request"),
            )
            if self._settle(previous, superseded):
                logger.info(f"client_id={client_id} protocol=long_poll event=superseded")

        waiter._timer = loop.call_at(waiter.deadline, self._expire, waiter)
        logger.debug(
            f"client_id={client_id} protocol=long_poll event=wait "
            f"timeout_s={timeout_s} waiting={len(self._waiters)}"
        )
        return waiter

    def resolve_one(self, client_id: str, notifications: Iterable[Notification]) -> bool:
        waiter = self._waiters.get(client_id)
        if waiter is None:
            return False
        return self._settle(waiter, WaitResult(WaitOutcome.DELIVERED, tuple(notifications)))

    def resolve_all(self, notifications: Iterable[Notification]) -> int:
        """
        Delivers the same batch to every waiter parked right now.
        The waiter set is snapshotted first; anyone registering afterwards waits for the next one.
        """
        batch = tuple(notifications)
        snapshot = list(self._waiters.values())
        if not snapshot:
            logger.debug("protocol=long_poll event=resolve_all reason=no_waiters")
            return 0

        resolved = 0
        for waiter in snapshot:
            if self._settle(waiter, WaitResult(WaitOutcome.DELIVERED, batch)):
                resolved += 1
        logger.info(f"protocol=long_poll event=resolve_all resolved={resolved} batch={len(batch)}")
        return resolved

    def force_timeout_all(self) -> int:
        snapshot = list(self._waiters.values())
        released = 0
        for waiter in snapshot:
            if self._settle(waiter, WaitResult(WaitOutcome.FORCED_TIMEOUT)):
                released += 1
        self._waiters.clear()
        logger.info(f"protocol=long_poll event=force_timeout released={released}")
        return released

    def discard(self, waiter: Waiter) -> bool:
        """The client went away; claim the slot so nothing is delivered into the void."""
        if self._settle(waiter, WaitResult(WaitOutcome.DISCARDED)):
            logger.debug(f"client_id={waiter.client_id} protocol=long_poll event=discard reason=client_gone")
            return True
        return False

    def count(self) -> int:
        return len(self._waiters)

    def _expire(self, waiter: Waiter) -> None:
        if self._settle(waiter, WaitResult(WaitOutcome.TIMEOUT)):
            logger.debug(f"client_id={waiter.client_id} protocol=long_poll event=timeout")

    def _settle(self, waiter: Waiter, result: WaitResult) -> bool:
        if not waiter._claim(result):
            return False
        if self._waiters.get(waiter.client_id) is waiter:
            del self._waiters[waiter.client_id]
        return True
