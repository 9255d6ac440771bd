"""API tests for viewing session endpoints."""

from creditengine.models.user import User
from tests.conftest import auth_headers, create_user, create_video, make_token


# ---------------------------------------------------------------------------
# POST /api/v1/videos/{video_id}/viewing-sessions
# ---------------------------------------------------------------------------


def test_start_session_creates_account_on_first_contact(client, db):
    video = create_video(db)
    headers, user_id = auth_headers()
    resp = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["reused"] is False
    assert data["session"]["state"] == "started"
    assert data["session"]["user_id"] == user_id
    assert data["session"]["video_id"] == video.id
    db.expire_all()
    assert db.get(User, user_id) is not None


def test_start_session_twice_reuses(client, db):
    video = create_video(db)
    headers, _ = auth_headers()
    first = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()
    second = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()
    assert second["reused"] is True
    assert second["session"]["id"] == first["session"]["id"]


def test_start_session_unknown_video_404(client, db):
    headers, _ = auth_headers()
    resp = client.post("/api/v1/videos/nope/viewing-sessions", headers=headers)
    assert resp.status_code == 404


def test_start_session_no_auth_401(client, db):
    video = create_video(db)
    resp = client.post(f"/api/v1/videos/{video.id}/viewing-sessions")
    assert resp.status_code == 401


def test_start_session_bad_token_401(client, db):
    video = create_video(db)
    token = make_token("user_x", secret="not-the-secret")
    resp = client.post(
        f"/api/v1/videos/{video.id}/viewing-sessions",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401


def test_start_session_expired_token_401(client, db):
    video = create_video(db)
    token = make_token("user_x", expires_in=-60)
    resp = client.post(
        f"/api/v1/videos/{video.id}/viewing-sessions",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401


def test_start_session_after_award_today_409(client, db):
    video = create_video(db)
    headers, _ = auth_headers()
    session_id = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()["session"]["id"]
    client.post(f"/api/v1/viewing-sessions/{session_id}/complete", headers=headers)
    resp = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers)
    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# POST /api/v1/viewing-sessions/{session_id}/complete
# ---------------------------------------------------------------------------


def test_complete_session_awards_credit(client, db):
    video = create_video(db, duration_s=40)
    headers, _ = auth_headers()
    session_id = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()["session"]["id"]

    resp = client.post(
        f"/api/v1/viewing-sessions/{session_id}/complete",
        json={"watched_seconds": 31},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["credit_awarded"] is True
    assert data["new_balance"] == 1
    assert data["session"]["state"] == "completed"

    replay = client.post(f"/api/v1/viewing-sessions/{session_id}/complete", headers=headers)
    assert replay.status_code == 200
    assert replay.json()["credit_awarded"] is False
    assert replay.json()["new_balance"] == 1

    balance = client.get("/api/v1/credits/balance", headers=headers).json()
    assert balance["balance"] == 1


def test_complete_session_without_body(client, db):
    video = create_video(db)
    headers, _ = auth_headers()
    session_id = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()["session"]["id"]
    resp = client.post(f"/api/v1/viewing-sessions/{session_id}/complete", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["credit_awarded"] is True


def test_complete_session_below_threshold_400(client, db):
    video = create_video(db, duration_s=300)
    headers, _ = auth_headers()
    session_id = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()["session"]["id"]
    resp = client.post(
        f"/api/v1/viewing-sessions/{session_id}/complete",
        json={"watched_seconds": 5},
        headers=headers,
    )
    assert resp.status_code == 400


def test_complete_session_negative_watch_time_422(client, db):
    video = create_video(db)
    headers, _ = auth_headers()
    session_id = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=headers).json()["session"]["id"]
    resp = client.post(
        f"/api/v1/viewing-sessions/{session_id}/complete",
        json={"watched_seconds": -1},
        headers=headers,
    )
    assert resp.status_code == 422


def test_complete_someone_elses_session_404(client, db):
    video = create_video(db)
    owner_headers, _ = auth_headers()
    other_headers, _ = auth_headers()
    session_id = client.post(f"/api/v1/videos/{video.id}/viewing-sessions", headers=owner_headers).json()["session"]["id"]
    resp = client.post(f"/api/v1/viewing-sessions/{session_id}/complete", headers=other_headers)
    assert resp.status_code == 404


def test_complete_unknown_session_404(client, db):
    create_user(db, "user_known")
    headers, _ = auth_headers("user_known")
    resp = client.post("/api/v1/viewing-sessions/does-not-exist/complete", headers=headers)
    assert resp.status_code == 404


def test_response_carries_request_id(client, db):
    headers, _ = auth_headers()
    headers["X-Request-ID"] = "req-123"
    resp = client.get("/api/v1/credits/balance", headers=headers)
    assert resp.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time-Ms" in resp.headers
