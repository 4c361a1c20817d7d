# tests/test_app.py
import pytest
import pytest_asyncio
import asyncio
import httpx
from httpx import AsyncClient

from eventfeed.config import Settings
from eventfeed.main import create_app

TEST_SECRET = "test-secret-with-enough-length-123"

# --- Fixtures ---

def make_settings(tmp_path, **overrides):
    values = dict(seed=42, seed_event_count=50, jwt_secret=TEST_SECRET, files_dir=str(tmp_path))
    values.update(overrides)
    return Settings(**values)

@pytest_asyncio.fixture(scope="function")
async def app(tmp_path):
    """App baru untuk setiap tes, dengan data awal deterministik."""
    (tmp_path / "system_log_1.txt").write_text("camera calibration required")
    app = create_app(make_settings(tmp_path))
    async with app.router.lifespan_context(app):
        yield app

@pytest_asyncio.fixture(scope="function")
async def async_client(app):
    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

@pytest_asyncio.fixture(scope="function")
async def auth_headers(async_client):
    r = await async_client.post("/api/login", json={"username": "demo", "password": "demo123"})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['token']}"}


# ---- FUNGSI HELPER ----
async def get_events(client, headers, **params):
    return await client.get("/api/events", params=params, headers=headers)


# --- Tes login dan akses ---

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    r = await async_client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}

@pytest.mark.asyncio
async def test_login_success_returns_profile_without_hash(async_client: AsyncClient):
    r = await async_client.post("/api/login", json={"username": "admin", "password": "admin123"})
    assert r.status_code == 200
    body = r.json()
    assert body["token"]
    assert body["user"]["username"] == "admin"
    assert "password_hash" not in body["user"]

@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient):
    r = await async_client.post("/api/login", json={"username": "admin", "password": "nope"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials", "message": "Username or password is incorrect", "code": 401}

@pytest.mark.asyncio
async def test_events_require_token(async_client: AsyncClient):
    r = await async_client.get("/api/events")
    assert r.status_code == 401
    r = await async_client.get("/api/events", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid token"

@pytest.mark.asyncio
async def test_user_profile_only_for_owner(async_client: AsyncClient, auth_headers):
    me = (await async_client.post("/api/login", json={"username": "demo", "password": "demo123"})).json()["user"]
    r = await async_client.get(f"/api/user/{me['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["email"] == "demo@ioteventfeed.com"

    admin = (await async_client.post("/api/login", json={"username": "admin", "password": "admin123"})).json()["user"]
    r = await async_client.get(f"/api/user/{admin['id']}", headers=auth_headers)
    assert r.status_code == 403


# --- Tes pagination ---

@pytest.mark.asyncio
async def test_latest_page_wire_format(async_client: AsyncClient, auth_headers):
    r = await get_events(async_client, auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["events"]) == 20
    assert body["has_next"] is True

    last = body["events"][-1]
    assert body["next_cursor"] == {"timestamp": last["timestamp"], "event_id": last["id"]}
    assert all(isinstance(e["timestamp"], int) for e in body["events"])
    # download_url dihilangkan bila tidak ada
    assert any("download_url" not in e for e in body["events"])

@pytest.mark.asyncio
async def test_limit_clamped_and_validated(async_client: AsyncClient, auth_headers):
    r = await async_client.post("/api/events/simulate", params={"count": 60}, headers=auth_headers)
    assert r.status_code == 200

    r = await get_events(async_client, auth_headers, limit=500)
    assert r.status_code == 200
    assert len(r.json()["events"]) == 100
    assert r.json()["has_next"] is True

    for bad in ("0", "-1", "abc"):
        r = await get_events(async_client, auth_headers, limit=bad)
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid limit format"

@pytest.mark.asyncio
async def test_invalid_parameter_combinations(async_client: AsyncClient, auth_headers):
    cases = [
        {"before_ts": 1, "after_ts": 2},
        {"before_id": "x"},
        {"after_id": "x"},
        {"after_ts": "tomorrow"},
    ]
    for params in cases:
        r = await get_events(async_client, auth_headers, **params)
        assert r.status_code == 400, params
        assert r.json()["code"] == 400

@pytest.mark.asyncio
async def test_backward_pagination_covers_feed_once(async_client: AsyncClient, auth_headers):
    body = (await get_events(async_client, auth_headers)).json()
    events = list(body["events"])
    while body["has_next"]:
        cursor = body["next_cursor"]
        body = (await get_events(
            async_client, auth_headers, after_ts=cursor["timestamp"], after_id=cursor["event_id"]
        )).json()
        events.extend(body["events"])

    assert len(events) == 50
    assert len({e["id"] for e in events}) == 50
    keys = [(e["timestamp"], e["id"]) for e in events]
    assert keys == sorted(keys, reverse=True)
    assert "next_cursor" not in body

@pytest.mark.asyncio
async def test_refresh_returns_new_events(async_client: AsyncClient, auth_headers):
    newest = (await get_events(async_client, auth_headers, limit=1)).json()["events"][0]
    created = (await async_client.post("/api/events/simulate", params={"count": 3}, headers=auth_headers)).json()
    assert created["count"] == 3

    r = await get_events(async_client, auth_headers, before_ts=newest["timestamp"], before_id=newest["id"])
    assert r.status_code == 200
    ids = [e["id"] for e in r.json()["events"]]
    assert ids == [e["id"] for e in reversed(created["events"])]
    assert r.json()["has_next"] is False

@pytest.mark.asyncio
async def test_unknown_cursor_id_degrades_gracefully(async_client: AsyncClient, auth_headers):
    newest = (await get_events(async_client, auth_headers, limit=1)).json()["events"][0]
    r = await get_events(async_client, auth_headers, before_ts=newest["timestamp"] - 1, before_id="never-created")
    assert r.status_code == 200
    assert [e["id"] for e in r.json()["events"]] == [newest["id"]]


# --- Tes lookup, unread count, simulasi ---

@pytest.mark.asyncio
async def test_get_event_by_id(async_client: AsyncClient, auth_headers):
    event = (await get_events(async_client, auth_headers, limit=1)).json()["events"][0]
    r = await async_client.get(f"/api/events/{event['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == event

    r = await async_client.get("/api/events/does-not-exist", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Event not found"

@pytest.mark.asyncio
async def test_new_events_count(async_client: AsyncClient, auth_headers):
    newest = (await get_events(async_client, auth_headers, limit=1)).json()["events"][0]
    r = await async_client.get("/api/events/new-count", params={"since_ts": newest["timestamp"]}, headers=auth_headers)
    assert r.json() == {"total_count": 0, "critical_count": 0}

    created = (await async_client.post("/api/events/simulate", params={"count": 10}, headers=auth_headers)).json()
    critical = sum(1 for e in created["events"] if e["severity"] == "critical")
    r = await async_client.get("/api/events/new-count", params={"since_ts": newest["timestamp"]}, headers=auth_headers)
    assert r.json() == {"total_count": 10, "critical_count": critical}

    r = await async_client.get("/api/events/new-count", headers=auth_headers)
    assert r.status_code == 400

@pytest.mark.asyncio
async def test_simulate_rejects_bad_count(async_client: AsyncClient, auth_headers):
    for count in ("-1", "1000", "many", "1_0"):
        r = await async_client.post("/api/events/simulate", params={"count": count}, headers=auth_headers)
        assert r.status_code == 400

@pytest.mark.asyncio
async def test_stats(async_client: AsyncClient, auth_headers):
    await get_events(async_client, auth_headers)
    await async_client.post("/api/events/simulate", params={"count": 2}, headers=auth_headers)
    stats = (await async_client.get("/stats")).json()
    assert stats["pages_served"] == 1
    assert stats["synthetic_appended"] == 2
    assert stats["ledger_size"] == 52

@pytest.mark.asyncio
async def test_live_traffic_task(tmp_path):
    """Task background menambah event sintetis secara periodik dan berhenti saat shutdown."""
    app = create_app(make_settings(tmp_path, seed_event_count=5, simulate_interval_seconds=0.02, simulate_batch_size=2))
    async with app.router.lifespan_context(app):
        await asyncio.sleep(0.3)
        assert len(app.state.ledger) > 5
        assert app.state.traffic_task is not None
    assert app.state.traffic_task.done()

@pytest.mark.asyncio
async def test_live_traffic_survives_unexpected_error(tmp_path):
    """Error di luar FeedError dicatat, task tetap berjalan dan batch berikutnya masuk."""
    app = create_app(make_settings(tmp_path, seed_event_count=5, simulate_interval_seconds=0.02, simulate_batch_size=1))
    feed = app.state.feed
    original = feed.append_synthetic
    calls = []

    def flaky_append(n):
        calls.append(n)
        if len(calls) == 1:
            raise RuntimeError("generator exploded")
        return original(n)

    feed.append_synthetic = flaky_append
    async with app.router.lifespan_context(app):
        await asyncio.sleep(0.3)
        assert len(calls) > 1
        assert len(app.state.ledger) > 5
        assert not app.state.traffic_task.done()

@pytest.mark.asyncio
async def test_simulate_zero_returns_empty_batch(async_client: AsyncClient, auth_headers):
    r = await async_client.post("/api/events/simulate", params={"count": "0"}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"events": [], "count": 0}

@pytest.mark.asyncio
async def test_openapi_documents_error_body(app):
    schema = app.openapi()
    responses = schema["paths"]["/api/events"]["get"]["responses"]
    for code in ("400", "401"):
        ref = responses[code]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/ErrorResponse")
    assert "404" in schema["paths"]["/api/events/{event_id}"]["get"]["responses"]
