"""Tests for the dispatch engine fan-out and the periodic generator."""
import asyncio

import pytest

from realtime_comparison.server.dispatch import (
    NOTIFICATION_TOPIC,
    DispatchEngine,
    message_generator,
    random_message,
)
from realtime_comparison.server.event_store import InMemoryEventStore
from realtime_comparison.server.metrics import MetricsAggregator
from realtime_comparison.server.waiter_registry import WaiterRegistry, WaitOutcome
from realtime_comparison.shared.errors import InvalidInputError, PushTransportError, StorageError


class RecordingPush:
    """Remembers every publish and how many notifications were stored at that moment."""

    def __init__(self, store: InMemoryEventStore):
        self.store = store
        self.published = []

    async def publish(self, topic, notification) -> int:
        self.published.append((topic, notification.id, self.store.count()))
        return 2


class FailingPush:
    async def publish(self, topic, notification) -> int:
        raise PushTransportError("transport down")


class BrokenStore(InMemoryEventStore):
    def save(self, message):
        raise StorageError("disk on fire")


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def waiters():
    return WaiterRegistry()


@pytest.fixture
def metrics():
    return MetricsAggregator()


class TestPublish:
    async def test_all_three_legs_run(self, store, waiters, metrics):
        push = RecordingPush(store)
        engine = DispatchEngine(store, waiters, push, metrics)
        waiter = waiters.register("c1", 5.0)

        report = await engine.create_and_publish("hello")

        assert report.ok
        assert report.waiters_resolved == 1
        assert report.push_subscribers == 2
        assert (await waiter.wait()).notifications == (report.notification,)
        assert push.published == [(NOTIFICATION_TOPIC, report.notification.id, 1)]
        assert metrics.get("push").notification_count == 1

    async def test_store_write_happens_before_fan_out(self, store, waiters, metrics):
        push = RecordingPush(store)
        engine = DispatchEngine(store, waiters, push, metrics)

        await engine.create_and_publish("first")
        await engine.create_and_publish("second")

        # the stored count seen by push always includes the notification being published
        assert [(nid, stored) for _, nid, stored in push.published] == [(1, 1), (2, 2)]

    async def test_failing_push_leg_does_not_block_the_others(self, store, waiters, metrics):
        engine = DispatchEngine(store, waiters, FailingPush(), metrics)
        waiter = waiters.register("c1", 5.0)

        report = await engine.create_and_publish("hello")

        assert report.failed_legs == ["push"]
        assert not report.ok
        result = await waiter.wait()
        assert result.outcome is WaitOutcome.DELIVERED
        assert result.notifications[0].message == "hello"
        assert metrics.get("push").notification_count == 1

    async def test_storage_error_stops_publication(self, waiters, metrics):
        push = RecordingPush(InMemoryEventStore())
        engine = DispatchEngine(BrokenStore(), waiters, push, metrics)
        waiter = waiters.register("c1", 5.0)

        with pytest.raises(StorageError):
            await engine.create_and_publish("never stored")

        assert push.published == []
        assert not waiter.done
        assert metrics.get("push") is None
        waiters.force_timeout_all()


class TestSend:
    @pytest.mark.parametrize("message", [None, "", "   ", "\n\t"])
    async def test_blank_messages_are_rejected(self, store, waiters, metrics, message):
        engine = DispatchEngine(store, waiters, RecordingPush(store), metrics)

        with pytest.raises(InvalidInputError):
            await engine.send(message)
        assert store.count() == 0

    async def test_message_is_stored_as_sent(self, store, waiters, metrics):
        engine = DispatchEngine(store, waiters, RecordingPush(store), metrics)

        report = await engine.send("  deploy finished  ")

        assert report.notification.message == "  deploy finished  "
        assert store.latest(1)[0].message == "  deploy finished  "


class TestGenerator:
    async def test_start_and_stop(self, store, waiters, metrics):
        engine = DispatchEngine(store, waiters, RecordingPush(store), metrics, interval_s=0.01)

        engine.start()
        assert engine.running
        await asyncio.sleep(0.1)
        await engine.stop()

        assert not engine.running
        produced = store.count()
        assert produced >= 1
        await asyncio.sleep(0.05)
        assert store.count() == produced

    async def test_start_twice_keeps_one_task(self, store, waiters, metrics):
        engine = DispatchEngine(store, waiters, RecordingPush(store), metrics, interval_s=10)

        engine.start()
        task = engine._task
        engine.start()

        assert engine._task is task
        await engine.stop()

    async def test_stop_without_start(self, store, waiters, metrics):
        engine = DispatchEngine(store, waiters, RecordingPush(store), metrics)
        await engine.stop()
        assert not engine.running

    async def test_failing_tick_does_not_end_the_loop(self, waiters, metrics):
        store = BrokenStore()
        engine = DispatchEngine(store, waiters, RecordingPush(store), metrics, interval_s=0.01)

        engine.start()
        await asyncio.sleep(0.05)

        assert engine.running
        await engine.stop()

    async def test_message_generator_yields_text(self):
        gen = message_generator(0.001)
        message = await gen.__anext__()
        await gen.aclose()
        assert isinstance(message, str) and message


def test_random_message_is_never_blank():
    assert all(random_message(i).strip() for i in range(50))
