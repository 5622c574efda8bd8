"""
Assessments API: session enforcement, status mapping and cache headers.

Drives the routes through `create_app` with an injected in-memory container
and a session cookie per caller.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from identity_access.stores import SessionStore
from web.main import SESSION_COOKIE_NAME, create_app

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture
def app(container, sessions):
    return create_app(container, sessions)


def _client(app, sessions: SessionStore, uid: str | None = None) -> httpx.AsyncClient:
    client = httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    if uid:
        client.cookies.set(SESSION_COOKIE_NAME, sessions.create(sub=uid).session_id)
    return client


_DRAFT = {"title": "Midterm", "content": "Q1..Q5", "type": "exam", "description": "Week 6"}


async def test_unauthenticated_requests_get_401(app, sessions):
    async with _client(app, sessions) as c:
        r = await c.get("/api/assessments")
        assert r.status_code == 401
        assert r.json() == {"error": "unauthenticated"}
        assert r.headers.get("Cache-Control") == "private, no-store"

        c.cookies.set(SESSION_COOKIE_NAME, "forged")
        r2 = await c.post("/api/assessments", json=_DRAFT)
        assert r2.status_code == 401


async def test_health_is_public(app, sessions):
    async with _client(app, sessions) as c:
        r = await c.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


async def test_lecturer_creates_and_reads_assessment(app, sessions, seed):
    lecturer = seed("lecturer")
    async with _client(app, sessions, lecturer) as c:
        r = await c.post("/api/assessments", json=_DRAFT)
        assert r.status_code == 201
        body = r.json()
        assert body["message"] == "Assessment created successfully"
        aid = body["assessmentId"]

        detail = await c.get(f"/api/assessments/{aid}")
        assert detail.status_code == 200
        assert detail.headers.get("Cache-Control") == "private, no-store"
        assert detail.json()["assessment"]["status"] == "draft"

        listing = await c.get("/api/assessments", params={"lecturerId": lecturer})
        assert [a["id"] for a in listing.json()["assessments"]] == [aid]


async def test_unapproved_lecturer_gets_403(app, sessions, seed):
    pending = seed("lecturer", approved=False)
    async with _client(app, sessions, pending) as c:
        r = await c.post("/api/assessments", json=_DRAFT)
    assert r.status_code == 403
    assert r.json()["error"] == "permission_denied"


async def test_missing_fields_give_400(app, sessions, seed):
    lecturer = seed("lecturer")
    async with _client(app, sessions, lecturer) as c:
        r = await c.post("/api/assessments", json={"title": "Only a title"})
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_argument"
        r2 = await c.post("/api/assessments", json={**_DRAFT, "title": 42})
        assert r2.status_code == 400


async def test_unknown_assessment_gives_404(app, sessions, seed):
    lecturer = seed("lecturer")
    async with _client(app, sessions, lecturer) as c:
        r = await c.get("/api/assessments/does-not-exist")
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


async def test_moderation_flow(app, sessions, container, seed):
    lecturer = seed("lecturer")
    moderator = seed("moderator")
    aid = container.assessments.create_assessment(lecturer, title="Quiz", content="Q1", type="quiz")

    async with _client(app, sessions, moderator) as c:
        bad = await c.post(f"/api/assessments/{aid}/moderation", json={"status": "shipped"})
        assert bad.status_code == 400

        ok = await c.post(f"/api/assessments/{aid}/moderation", json={"status": "approved"})
        assert ok.status_code == 200
        assert ok.json() == {"message": "Assessment approved successfully"}

    doc = container.assessments.get_assessment(aid)
    assert doc["moderatorId"] == moderator
    assert doc["feedback"] is None

    async with _client(app, sessions, lecturer) as c:
        denied = await c.post(f"/api/assessments/{aid}/moderation", json={"status": "rejected"})
    assert denied.status_code == 403


async def test_moderating_missing_assessment_gives_404(app, sessions, seed):
    moderator = seed("moderator")
    async with _client(app, sessions, moderator) as c:
        r = await c.post("/api/assessments/missing/moderation", json={"status": "approved"})
    assert r.status_code == 404


async def test_unexpected_errors_become_500(app, sessions, container, seed, monkeypatch: pytest.MonkeyPatch):
    lecturer = seed("lecturer")

    def broken(**kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(container.assessments, "list_assessments", broken)
    async with _client(app, sessions, lecturer) as c:
        r = await c.get("/api/assessments")
    assert r.status_code == 500
    assert r.json() == {"error": "internal", "detail": "disk on fire"}
