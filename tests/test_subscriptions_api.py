"""Tests for subscription and health endpoints."""

from datetime import UTC, datetime, timedelta

import pytest

from pushrelay.errors import StoreUnavailable
from pushrelay.subscriptions.builder import build_record

RAW = {
    "endpoint": "https://push.example/abc",
    "keys": {"p256dh": "k1", "auth": "a1"},
}


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "running" in resp.json()["message"]


@pytest.mark.asyncio
async def test_health(client):
    await client.post("/subscribe", json=RAW)
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["storeConnected"] is True
    assert body["totalSubscriptions"] == 1
    assert body["timestamp"]


@pytest.mark.asyncio
async def test_health_store_down(client, store, monkeypatch):
    monkeypatch.setattr(store, "_connected", False)
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["storeConnected"] is False
    assert resp.json()["totalSubscriptions"] is None


@pytest.mark.asyncio
async def test_subscribe(client):
    resp = await client.post(
        "/subscribe",
        json=RAW,
        headers={"User-Agent": "TestBrowser/1.0", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["id"]
    assert body["expiresAt"]
    assert body["totalSubscriptions"] == 1
    assert body["userAgent"] == "TestBrowser/1.0"
    assert body["ipAddress"] == "203.0.113.7"

    resp = await client.get(f"/subscriptions/{body['id']}")
    assert resp.status_code == 200
    record = resp.json()
    assert record["subscription"] == RAW
    assert record["isActive"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"keys": {"p256dh": "k", "auth": "a"}},
        {"endpoint": "https://ep/1"},
        {},
    ],
)
async def test_subscribe_invalid(client, store, payload):
    resp = await client.post("/subscribe", json=payload)
    assert resp.status_code == 400
    assert await store.count() == 0


@pytest.mark.asyncio
async def test_subscribe_malformed_json(client, store):
    resp = await client.post(
        "/subscribe",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert await store.count() == 0


@pytest.mark.asyncio
async def test_subscribe_store_down(client, store, monkeypatch):
    monkeypatch.setattr(store, "_connected", False)
    resp = await client.post("/subscribe", json=RAW)
    assert resp.status_code == 500
    assert "Failed to save subscription" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_list_subscriptions(client, store):
    ids = []
    for _ in range(2):
        resp = await client.post("/subscribe", json=RAW)
        ids.append(resp.json()["id"])
    await store.put(build_record(RAW, now=datetime.now(UTC) - timedelta(days=400)))

    resp = await client.get("/subscriptions")
    assert resp.status_code == 200
    assert sorted(r["id"] for r in resp.json()) == sorted(ids)


@pytest.mark.asyncio
async def test_list_subscriptions_store_error(client, store, monkeypatch):
    async def _down():
        raise StoreUnavailable("down")

    monkeypatch.setattr(store, "list_all", _down)
    resp = await client.get("/subscriptions")
    assert resp.status_code == 500


@pytest.mark.asyncio
async def test_get_expired_is_404(client, store):
    record = build_record(RAW, now=datetime.now(UTC) - timedelta(days=400))
    await store.put(record)
    for _ in range(2):
        resp = await client.get(f"/subscriptions/{record.id}")
        assert resp.status_code == 404
    assert await store.get(record.id) is None


@pytest.mark.asyncio
async def test_unsubscribe_twice(client):
    sub_id = (await client.post("/subscribe", json=RAW)).json()["id"]

    resp = await client.delete(f"/unsubscribe/{sub_id}")
    assert resp.status_code == 200
    assert resp.json()["id"] == sub_id

    resp = await client.delete(f"/unsubscribe/{sub_id}")
    assert resp.status_code == 404

    resp = await client.get(f"/subscriptions/{sub_id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_cleanup_expired(client, store):
    await client.post("/subscribe", json=RAW)
    await store.put(build_record(RAW, now=datetime.now(UTC) - timedelta(days=400)))

    resp = await client.post("/cleanup-expired")
    assert resp.status_code == 200
    assert resp.json()["expiredSubscriptionsRemoved"] == 1
    assert resp.json()["totalProcessed"] == 2
    assert await store.count() == 1


@pytest.mark.asyncio
async def test_health_survives_server_error(client, store, monkeypatch):
    from redis.exceptions import NoPermissionError

    async def _denied(*args, **kwargs):
        raise NoPermissionError("NOPERM this user has no permissions to run 'scan'")

    monkeypatch.setattr(store._client, "scan", _denied)
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["storeConnected"] is True
    assert body["totalSubscriptions"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/subscriptions/some-id"),
        ("DELETE", "/unsubscribe/some-id"),
        ("POST", "/cleanup-expired"),
    ],
)
async def test_store_down_is_500(client, store, monkeypatch, method, path):
    monkeypatch.setattr(store, "_connected", False)
    resp = await client.request(method, path)
    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("Failed to")
