"""Tests for the in-memory event store query shapes."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from realtime_comparison.server.event_store import InMemoryEventStore


def _store_with(*messages: str) -> InMemoryEventStore:
    store = InMemoryEventStore()
    for message in messages:
        store.save(message)
    return store


def test_save_assigns_increasing_ids_and_timestamps():
    store = _store_with("a", "b", "c")
    saved = list(reversed(store.latest(3)))

    assert [n.id for n in saved] == [1, 2, 3]
    assert saved[0].created_at < saved[1].created_at < saved[2].created_at
    assert all(n.created_at.tzinfo is not None for n in saved)
    assert not any(n.delivered for n in saved)


def test_claim_without_since_is_oldest_first_and_at_most_once():
    store = _store_with("a", "b")

    first = store.claim()
    assert [n.message for n in first] == ["a", "b"]
    assert all(n.delivered for n in first)

    assert store.claim() == []
    assert store.count_undelivered() == 0


def test_claim_with_since_is_newest_first_and_includes_delivered():
    store = _store_with("a")
    cursor = store.claim()[0].created_at
    store.save("b")
    store.save("c")

    newer = store.claim(cursor)
    assert [n.message for n in newer] == ["c", "b"]

    # `since` queries ignore the delivered flag
    assert [n.message for n in store.claim(cursor)] == ["c", "b"]


def test_since_is_strictly_greater_than():
    store = _store_with("a")
    only = store.latest(1)[0]

    assert store.find_after(only.created_at) == []
    assert store.find_after(only.created_at - timedelta(microseconds=1)) == [only]


def test_claim_is_at_most_once_across_threads():
    store = _store_with(*(f"m{i}" for i in range(200)))

    with ThreadPoolExecutor(max_workers=8) as pool:
        batches = list(pool.map(lambda _: store.claim(), range(16)))

    ids = [n.id for batch in batches for n in batch]
    assert len(ids) == len(set(ids)) == 200


def test_latest_is_newest_first_and_read_only():
    store = _store_with("a", "b", "c")

    assert [n.message for n in store.latest(2)] == ["c", "b"]
    assert store.count_undelivered() == 3


def test_find_undelivered_and_mark_delivered():
    store = _store_with("a", "b", "c")

    marked = store.mark_delivered([2, 99])
    assert [n.id for n in marked] == [2]
    assert [n.message for n in store.find_undelivered()] == ["a", "c"]


def test_counts():
    store = _store_with("a", "b")
    before = datetime.now(timezone.utc) - timedelta(minutes=1)

    assert store.count() == 2
    assert store.count_after(before) == 2
    assert store.count_undelivered() == 2

    store.claim()
    assert store.count_undelivered() == 0
    assert store.count_after(datetime.now(timezone.utc) + timedelta(minutes=1)) == 0


def test_snapshots_are_frozen_copies():
    store = _store_with("a")
    before = store.latest(1)[0]
    store.claim()

    assert before.delivered is False
    assert store.latest(1)[0].delivered is True


def test_clear():
    store = _store_with("a", "b")
    assert store.clear() == 2
    assert store.count() == 0
