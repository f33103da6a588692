"""
MODULE OVERVIEW:
The Event Store: the append-only record every pull-style channel reads from.

WHAT IS HAPPENING HERE:
In production this would be a database table (id, message, created_at, delivered).
Here it is an in-process store guarded by a lock, exposing the exact query shapes the
polling endpoints need:

  * "since" queries   -> created_at strictly after X, newest first
  * "undelivered"     -> delivered == False, oldest first
  * "latest N"        -> newest first, read-only

`claim()` is the pull read: it selects AND flips `delivered` in one locked step, so two
short-poll clients racing for the same undelivered row can never both get it.
Every value handed out is a frozen snapshot; the store keeps the only mutable view.
"""
import itertools
import threading
from datetime import datetime, timedelta, timezone
from typing import Iterable

from loguru import logger

from realtime_comparison.shared.models import Notification

# Two saves in the same clock tick still get distinct, ordered timestamps.
_TICK = timedelta(microseconds=1)


class InMemoryEventStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[int, Notification] = {}
        self._ids = itertools.count(1)
        self._last_created_at: datetime | None = None

    def save(self, message: str) -> Notification:
        with self._lock:
            created_at = datetime.now(timezone.utc)
            if self._last_created_at is not None and created_at <= self._last_created_at:
                created_at = self._last_created_at + _TICK
            self._last_created_at = created_at

            notification = Notification(id=next(self._ids), message=message, created_at=created_at)
            self._records[notification.id] = notification
        logger.debug(f"store event=save id={notification.id}")
        return notification

    def find_after(self, since: datetime) -> list[Notification]:
        with self._lock:
            return self._after(since)

    def find_undelivered(self) -> list[Notification]:
        with self._lock:
            return self._undelivered()

    def claim(self, since: datetime | None = None) -> list[Notification]:
        """
        The pull read shared by short and long polling.
        With `since`: everything newer than it (delivered or not), newest first.
        Without: every undelivered notification, oldest first.
        Everything returned is marked delivered before the lock is released.
        """
        with self._lock:
            selected = self._after(since) if since is not None else self._undelivered()
            return [self._mark(n) for n in selected]

    def mark_delivered(self, ids: Iterable[int]) -> list[Notification]:
        with self._lock:
            return [self._mark(self._records[i]) for i in ids if i in self._records]

    def latest(self, limit: int) -> list[Notification]:
        with self._lock:
            newest_first = reversed(list(self._records.values()))
            return list(itertools.islice(newest_first, limit))

    def count_after(self, since: datetime) -> int:
        with self._lock:
            return sum(1 for n in self._records.values() if n.created_at > since)

    def count_undelivered(self) -> int:
        with self._lock:
            return sum(1 for n in self._records.values() if not n.delivered)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._records)
            self._records.clear()
        logger.info(f"store event=clear removed={removed}")
        return removed

    # Lock must be held by the caller for everything below.
    # Records are kept in id order, which is also created_at order.

    def _after(self, since: datetime) -> list[Notification]:
        return [n for n in reversed(list(self._records.values())) if n.created_at > since]

    def _undelivered(self) -> list[Notification]:
        return [n for n in self._records.values() if not n.delivered]

    def _mark(self, notification: Notification) -> Notification:
        if notification.delivered:
            return notification
        updated = notification.model_copy(update={"delivered": True})
        self._records[notification.id] = updated
        return updated
