"""Tests for the FastAPI server endpoints."""

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from ambient_context.api import middleware
from ambient_context.api.server import app
from ambient_context.config import Settings

NOW_MS = 1_760_000_000_000


@pytest.fixture
async def client():
    """Async test client with lifespan (startup / shutdown) fully executed."""
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_evaluate_in_vehicle(client: AsyncClient):
    payload = {
        "signals": {"activity": {"type": "IN_VEHICLE", "timestamp": NOW_MS}},
        "source": "activity_recognition",
        "now_ms": NOW_MS,
    }
    resp = await client.post("/context/evaluate", json=payload)
    assert resp.status_code == 200
    body = resp.json()
    assert body["snapshot"]["state"] == "driving"
    assert body["snapshot"]["poll_tier"] == "monitoring"
    assert body["next_poll_ms"] == 102_000


@pytest.mark.asyncio
async def test_snapshot_round_trips_as_previous(client: AsyncClient):
    first = await client.post(
        "/context/evaluate",
        json={
            "signals": {"activity": {"type": "in_vehicle", "timestamp": NOW_MS}},
            "now_ms": NOW_MS,
        },
    )
    snapshot = first.json()["snapshot"]
    # Falls back to the configured default source
    assert snapshot["source"] == "mixed"

    resp = await client.post(
        "/context/evaluate",
        json={
            "signals": {
                "location": {"is_home": True},
                "motion": {"variance": 0.005},
                "temporal": {"hour": 2},
            },
            "previous": snapshot,
            "now_ms": NOW_MS + 60_000,
        },
    )
    assert resp.status_code == 200
    assert resp.json()["snapshot"]["state"] == "resting"
    assert resp.json()["snapshot"]["state_started_at"] == NOW_MS + 60_000


@pytest.mark.asyncio
async def test_empty_request_is_accepted(client: AsyncClient):
    resp = await client.post("/context/evaluate", json={})
    assert resp.status_code == 200
    assert resp.json()["snapshot"]["state"] == "unknown"


@pytest.mark.asyncio
async def test_malformed_signal_type_is_rejected(client: AsyncClient):
    resp = await client.post(
        "/context/evaluate", json={"signals": {"temporal": {"hour": "late"}}}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_poll_tiers(client: AsyncClient):
    resp = await client.get("/context/poll-tiers")
    assert resp.status_code == 200
    body = resp.json()
    assert body["base_intervals_ms"]["aggressive"] == 15_000
    assert body["base_intervals_ms"]["power_save"] == 2_400_000
    assert body["min_poll_ms"] == 10_000
    assert body["max_poll_ms"] == 3_600_000


@pytest.mark.asyncio
async def test_api_key_required_when_configured(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(middleware, "get_settings", lambda: Settings(api_secret_key="s3cret"))

    resp = await client.get("/context/poll-tiers")
    assert resp.status_code == 401

    resp = await client.get("/context/poll-tiers", headers={"X-API-Key": "s3cret"})
    assert resp.status_code == 200

    resp = await client.get("/context/poll-tiers", headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200

    # Health stays public
    resp = await client.get("/health")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    resp = await client.get("/context/poll-tiers", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"

    resp = await client.post("/context/evaluate", json={}, headers={"X-Session-ID": "phone-1"})
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_unrecognised_source_and_null_flags(client: AsyncClient):
    payload = {
        "signals": {
            "device": {"is_charging": None, "is_power_save_mode": None},
            "gps": {"coords": {"lat": "NaN", "lng": 4.9}, "timestamp": NOW_MS - 0.5},
        },
        "source": "periodic",
        "now_ms": NOW_MS,
    }
    resp = await client.post("/context/evaluate", json=payload)
    assert resp.status_code == 200
    snapshot = resp.json()["snapshot"]
    assert snapshot["source"] == "fallback"
    assert snapshot["location_coords"] is None
    assert snapshot["charger_connected"] is None
