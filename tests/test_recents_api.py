import logging
import os
import time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from common.config import settings
from main import app
from recents import SessionCacheRegistry
from recents.registry import storage_factory_for


@pytest.fixture
def registry():
    registry = SessionCacheRegistry(storage_factory_for("memory"))
    app.state.recents = registry
    return registry


@pytest_asyncio.fixture
async def client(registry):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_first_request_starts_a_session(client, registry):
    resp = await client.get("/api/recents")
    assert resp.status_code == 200
    assert resp.json() == {"ready": True, "recent_users": [], "compared_users": []}
    assert settings.session_cookie_name in resp.cookies
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_recent_users_flow(client):
    await client.post("/api/recents/users", json={"login": "alice", "avatar_url": "a.png"})
    await client.post("/api/recents/users", json={"login": "Bob", "avatar_url": "b.png", "name": "Bob"})
    resp = await client.post("/api/recents/users", json={"login": "ALICE", "avatar_url": "a2.png"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["entry"]["login"] == "ALICE"
    assert "searchedAt" in body["entry"]
    assert [(u["login"], u["avatar_url"]) for u in body["recent_users"]] == [
        ("ALICE", "a2.png"),
        ("Bob", "b.png"),
    ]
    assert "name" not in body["recent_users"][0]
    assert body["recent_users"][1]["name"] == "Bob"

    resp = await client.delete("/api/recents/users/bob")
    assert resp.json()["removed"] is True
    assert [u["login"] for u in resp.json()["recent_users"]] == ["ALICE"]

    listed = await client.get("/api/recents/users")
    assert [u["login"] for u in listed.json()["recent_users"]] == ["ALICE"]


@pytest.mark.asyncio
async def test_comparisons_flow(client):
    x = {"login": "X", "avatar_url": "x.png"}
    y = {"login": "Y", "avatar_url": "y.png"}

    first = await client.post("/api/recents/comparisons", json={"users": [x, y]})
    repeat = await client.post("/api/recents/comparisons", json={"users": [y, x]})
    single = await client.post("/api/recents/comparisons", json={"users": [x]})

    assert first.json()["added"] is True
    assert repeat.json()["added"] is False
    assert single.json()["added"] is False

    listed = (await client.get("/api/recents/comparisons")).json()["compared_users"]
    assert len(listed) == 1
    assert [u["login"] for u in listed[0]["users"]] == ["X", "Y"]
    assert listed[0]["comparedAt"] == first.json()["compared_users"][0]["comparedAt"]


@pytest.mark.asyncio
async def test_invalid_body_is_rejected(client):
    resp = await client.post("/api/recents/users", json={"avatar_url": "a.png"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_clear_recents(client):
    await client.post("/api/recents/users", json={"login": "alice", "avatar_url": "a.png"})
    await client.post(
        "/api/recents/comparisons",
        json={"users": [{"login": "a", "avatar_url": ""}, {"login": "b", "avatar_url": ""}]},
    )

    for _ in range(2):
        resp = await client.delete("/api/recents")
        assert resp.json() == {"ready": True, "recent_users": [], "compared_users": []}

    assert (await client.get("/api/recents")).json()["recent_users"] == []


@pytest.mark.asyncio
async def test_sessions_do_not_share_recents(registry):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as first, AsyncClient(
        transport=transport, base_url="http://test"
    ) as second:
        await first.post("/api/recents/users", json={"login": "alice", "avatar_url": "a.png"})

        assert (await second.get("/api/recents")).json()["recent_users"] == []
        assert len((await first.get("/api/recents")).json()["recent_users"]) == 1
        assert len(registry) == 2


@pytest.mark.asyncio
async def test_end_session_forgets_recents(client, registry):
    await client.post("/api/recents/users", json={"login": "alice", "avatar_url": "a.png"})

    resp = await client.delete("/api/session")
    assert resp.json() == {"status": "ended"}
    assert len(registry) == 0

    client.cookies.clear()
    assert (await client.get("/api/recents")).json()["recent_users"] == []


@pytest.mark.asyncio
async def test_health_reports_sessions(client):
    await client.get("/api/recents")
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["sessions"] == 1


@pytest.mark.asyncio
async def test_lifespan_builds_registry_from_settings():
    async with app.router.lifespan_context(app):
        assert isinstance(app.state.recents, SessionCacheRegistry)
        assert app.state.recents.max_entries == settings.recents_max_entries


@pytest.mark.asyncio
async def test_request_logging_tags_records_with_request_and_session(client, caplog):
    caplog.set_level(logging.INFO)

    first = await client.get("/api/recents")
    session_id = first.cookies[settings.session_cookie_name]
    await client.get("/api/recents")

    requests = [r for r in caplog.records if r.name == "main"]
    messages = [r.getMessage() for r in requests]
    assert any("Request started" in m and "/api/recents" in m for m in messages)
    assert any("Request completed" in m and "Status: 200" in m for m in messages)
    assert all(len(r.request_id) == 8 for r in requests)

    # The cookie is only known to the middleware from the second request on
    assert not hasattr(requests[0], "session_id")
    assert requests[-1].session_id == session_id

    started = [r for r in caplog.records if "Session started" in r.getMessage()]
    assert len(started) == 1
    assert started[0].session_id == session_id
    assert started[0].request_id == requests[0].request_id


@pytest.mark.asyncio
async def test_lifespan_sweeps_idle_file_sessions(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "recents_storage_backend", "file")
    monkeypatch.setattr(settings, "recents_storage_dir", str(tmp_path))
    monkeypatch.setattr(settings, "recents_session_ttl_hours", 1)

    idle = tmp_path / "idle"
    idle.mkdir()
    (idle / "recent_users.json").write_text("[]", encoding="utf-8")
    long_ago = time.time() - 2 * 3600
    os.utime(idle / "recent_users.json", (long_ago, long_ago))
    os.utime(idle, (long_ago, long_ago))
    (tmp_path / "active").mkdir()

    async with app.router.lifespan_context(app):
        assert not idle.exists()
        assert (tmp_path / "active").exists()
