"""HTTP tests for the short-polling and long-polling endpoints."""
import asyncio
import time

import pytest

from realtime_comparison.shared.route_utils import extract_client_id
from utils import make_settings, wait_for_waiters


async def _send(client, message: str) -> dict:
    resp = await client.post("/api/push/send", json={"message": message})
    assert resp.status_code == 200
    return resp.json()["notification"]


class TestShortPolling:
    async def test_undelivered_batch_is_returned_once(self, client):
        await _send(client, "one")
        await _send(client, "two")

        resp = await client.get("/api/short-polling/notifications")
        assert resp.status_code == 200
        assert resp.headers["X-Poll-Interval"] == "5000"
        assert "X-Process-Time-Ms" in resp.headers
        body = resp.json()
        assert [n["message"] for n in body] == ["one", "two"]
        assert all(n["delivered"] for n in body)

        again = await client.get("/api/short-polling/notifications")
        assert again.json() == []

    async def test_every_request_records_latency(self, client):
        await _send(client, "one")
        await client.get("/api/short-polling/notifications")
        await client.get("/api/short-polling/notifications")

        metrics = (await client.get("/api/metrics/short")).json()
        assert metrics["requestCount"] == 2
        assert metrics["notificationCount"] == 1

    async def test_since_returns_only_newer(self, client):
        first = await _send(client, "old")
        await _send(client, "new")

        resp = await client.get("/api/short-polling/notifications", params={"since": first["createdAt"]})

        assert [n["message"] for n in resp.json()] == ["new"]

    async def test_malformed_since_is_rejected(self, client):
        resp = await client.get("/api/short-polling/notifications", params={"since": "yesterday"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    async def test_latest_and_limit(self, client):
        for message in ("a", "b", "c"):
            await _send(client, message)

        resp = await client.get("/api/short-polling/notifications/latest", params={"limit": 2})
        assert [n["message"] for n in resp.json()] == ["c", "b"]

        bad = await client.get("/api/short-polling/notifications/latest", params={"limit": 0})
        assert bad.status_code == 400

    async def test_count(self, client):
        await _send(client, "a")
        await _send(client, "b")

        assert (await client.get("/api/short-polling/notifications/count")).json() == 2
        await client.get("/api/short-polling/notifications")
        assert (await client.get("/api/short-polling/notifications/count")).json() == 0

    async def test_reset_short_metrics(self, client):
        await client.get("/api/short-polling/notifications")
        resp = await client.post("/api/short-polling/metrics/reset")

        assert resp.status_code == 200
        assert (await client.get("/api/metrics/short")).status_code == 404


class TestLongPolling:
    async def test_returns_immediately_when_something_is_waiting(self, client):
        await _send(client, "already here")

        resp = await client.get("/api/long-polling/notifications", params={"clientId": "a"})

        assert [n["message"] for n in resp.json()] == ["already here"]
        assert resp.json()[0]["delivered"] is True
        metrics = (await client.get("/api/metrics/long")).json()
        assert metrics["requestCount"] == 1
        assert metrics["notificationCount"] == 1

    @pytest.mark.parametrize("test_settings", [make_settings(LONG_POLL_TIMEOUT_S=0.3)])
    async def test_times_out_empty_and_not_before_deadline(self, client):
        started = time.perf_counter()
        resp = await client.get("/api/long-polling/notifications", params={"clientId": "idle"})
        elapsed = time.perf_counter() - started

        assert resp.status_code == 200
        assert resp.json() == []
        assert elapsed >= 0.3 - 0.02
        metrics = (await client.get("/api/metrics/long")).json()
        assert metrics["requestCount"] == 1
        assert metrics["notificationCount"] == 0
        assert (await client.get("/api/long-polling/stats")).json() == {"waitingClients": 0}

    async def test_woken_by_send(self, client):
        pending = asyncio.create_task(
            client.get("/api/long-polling/notifications", params={"clientId": "a"})
        )
        await wait_for_waiters(client, 1)

        await _send(client, "wake up")
        resp = await pending

        assert resp.status_code == 200
        assert [n["message"] for n in resp.json()] == ["wake up"]
        assert resp.json()[0]["delivered"] is True
        assert (await client.get("/api/short-polling/notifications/count")).json() == 0
        assert (await client.get("/api/metrics/long")).json()["notificationCount"] == 1

    async def test_force_timeout_releases_everyone(self, client):
        pending = [
            asyncio.create_task(client.get("/api/long-polling/notifications", params={"clientId": cid}))
            for cid in ("a", "b")
        ]
        await wait_for_waiters(client, 2)

        resp = await client.post("/api/long-polling/force-timeout")
        results = await asyncio.gather(*pending)

        assert resp.json() == {"message": "Forced timeout on 2 waiting clients"}
        assert [r.json() for r in results] == [[], []]
        assert (await client.get("/api/long-polling/stats")).json() == {"waitingClients": 0}

    async def test_same_client_id_supersedes_older_request(self, client):
        older = asyncio.create_task(
            client.get("/api/long-polling/notifications", params={"clientId": "dup"})
        )
        await wait_for_waiters(client, 1)
        newer = asyncio.create_task(
            client.get("/api/long-polling/notifications", params={"clientId": "dup"})
        )

        superseded = await older
        assert superseded.status_code == 409
        assert superseded.json()["error"] == "superseded"

        await wait_for_waiters(client, 1)
        await _send(client, "for the newer one")
        resp = await newer
        assert [n["message"] for n in resp.json()] == ["for the newer one"]

    async def test_since_applies_to_immediate_query(self, client):
        first = await _send(client, "seen")
        await client.get("/api/short-polling/notifications")
        await _send(client, "unseen")

        resp = await client.get(
            "/api/long-polling/notifications",
            params={"clientId": "a", "since": first["createdAt"]},
        )

        assert [n["message"] for n in resp.json()] == ["unseen"]

    async def test_reset_long_metrics(self, client):
        await _send(client, "x")
        await client.get("/api/long-polling/notifications")

        await client.post("/api/long-polling/metrics/reset")

        assert (await client.get("/api/metrics/long")).status_code == 404


class TestAnonymousClients:
    """Requests without a clientId get generated ids that must never collide."""

    async def test_generated_ids_are_unique(self):
        ids = {await extract_client_id(None) for _ in range(10_000)}
        assert len(ids) == 10_000

    async def test_explicit_id_is_kept(self):
        assert await extract_client_id("dashboard-1") == "dashboard-1"

    async def test_many_anonymous_long_polls_all_get_the_notification(self, client):
        pending = [
            asyncio.create_task(client.get("/api/long-polling/notifications"))
            for _ in range(300)
        ]
        await wait_for_waiters(client, 300, attempts=500)

        await _send(client, "for everyone")
        results = await asyncio.gather(*pending)

        assert {r.status_code for r in results} == {200}
        assert all([n["message"] for n in r.json()] == ["for everyone"] for r in results)
