"""Integration tests for the session endpoints."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import redis
from freezegun import freeze_time

from selfstudy.api.deps import SERVICES_KEY
from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.http import API, bearer, login

REGISTER = {
    "email": "learner@example.com",
    "password": "s3cret-pass",
    "full_name": "Learner One",
    "target_band": 7.0,
}


def test_register_returns_session(client):
    resp = client.post(f"{API}/auth/register", json=REGISTER)

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["token_type"] == "Bearer"
    assert data["access_token"] and data["refresh_token"]
    assert data["user"]["email"] == "learner@example.com"
    assert data["user"]["role"] == "Student"
    assert "password" not in data["user"]
    assert "password_hash" not in data["user"]


def test_register_duplicate_email_conflicts(client):
    assert client.post(f"{API}/auth/register", json=REGISTER).status_code == 201
    resp = client.post(f"{API}/auth/register", json=REGISTER)
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "conflict"


def test_register_missing_fields_is_invalid_input(client):
    resp = client.post(f"{API}/auth/register", json={"email": "x@example.com"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["code"] == "invalid_input"
    assert resp.mimetype == "application/problem+json"


def test_register_wrong_types_fail_validation(client):
    resp = client.post(f"{API}/auth/register", json={**REGISTER, "target_band": "high"})
    assert resp.status_code == 422
    assert "target_band" in resp.get_json()["details"]["errors"]


def test_register_cannot_request_admin(client):
    resp = client.post(f"{API}/auth/register", json={**REGISTER, "role": "Admin"})
    assert resp.status_code == 400


def test_register_accepts_other_roles(client):
    resp = client.post(f"{API}/auth/register", json={**REGISTER, "role": "Teacher"})
    assert resp.status_code == 201
    assert resp.get_json()["data"]["user"]["role"] == "Teacher"


def test_register_taken_email_with_admin_role_conflicts(client):
    assert client.post(f"{API}/auth/register", json=REGISTER).status_code == 201
    resp = client.post(f"{API}/auth/register", json={**REGISTER, "role": "Admin"})
    assert resp.status_code == 409


def test_login_and_me(client):
    user = UserFactory(email="ana@example.com")
    data = login(client, "ana@example.com")

    resp = client.get(f"{API}/auth/me", headers=bearer(data["access_token"]))

    assert resp.status_code == 200
    me = resp.get_json()["data"]
    assert me["id"] == user.id
    assert me["email"] == "ana@example.com"


def test_login_failure_is_uniform(client):
    UserFactory(email="ana@example.com")
    wrong = client.post(
        f"{API}/auth/login", json={"email": "ana@example.com", "password": "nope"}
    )
    unknown = client.post(
        f"{API}/auth/login", json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD}
    )
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json()["detail"] == unknown.get_json()["detail"]


def test_me_requires_bearer(client):
    resp = client.get(f"{API}/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "unauthorized"


def test_me_rejects_token_signed_with_another_key(client):
    user = UserFactory(email="ana@example.com")
    forged = jwt.encode(
        {"sub": str(user.id), "role": "Admin", "exp": datetime.now(UTC) + timedelta(minutes=5)},
        "not-the-server-key-0123456789abcdef",
        algorithm="HS256",
    )
    assert client.get(f"{API}/auth/me", headers=bearer(forged)).status_code == 401


def test_access_token_expires_after_fifteen_minutes(client):
    UserFactory(email="ana@example.com")
    with freeze_time("2026-02-01 10:00:00"):
        token = login(client, "ana@example.com")["access_token"]
    with freeze_time("2026-02-01 10:14:59"):
        assert client.get(f"{API}/auth/me", headers=bearer(token)).status_code == 200
    with freeze_time("2026-02-01 10:15:01"):
        assert client.get(f"{API}/auth/me", headers=bearer(token)).status_code == 401


def test_refresh_rotates_and_reuse_logs_out_chain(client):
    UserFactory(email="ana@example.com")
    first = login(client, "ana@example.com")

    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert resp.status_code == 200
    second = resp.get_json()["data"]
    assert second["refresh_token"] != first["refresh_token"]

    replay = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert replay.status_code == 401

    after = client.post(f"{API}/auth/refresh", json={"refresh_token": second["refresh_token"]})
    assert after.status_code == 401


def test_refresh_requires_token(client):
    resp = client.post(f"{API}/auth/refresh", json={})
    assert resp.status_code == 400


def test_refresh_store_contention_is_service_unavailable(app, client, monkeypatch):
    UserFactory(email="ana@example.com")
    data = login(client, "ana@example.com")
    store = app.extensions[SERVICES_KEY]["refresh_store"]

    def _contended(self, **_kwargs):
        raise redis.WatchError("Refresh token store is contended; try again.")

    monkeypatch.setattr(type(store), "rotate", _contended)
    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": data["refresh_token"]})

    assert resp.status_code == 503
    assert resp.get_json()["code"] == "service_unavailable"


def test_revoke_and_logout_always_succeed(client):
    UserFactory(email="ana@example.com")
    session = login(client, "ana@example.com")

    resp = client.post(f"{API}/auth/logout", json={"refresh_token": session["refresh_token"]})
    assert resp.status_code == 204
    again = client.post(f"{API}/auth/revoke", json={"refresh_token": session["refresh_token"]})
    assert again.status_code == 204
    assert client.post(f"{API}/auth/revoke", json={}).status_code == 204

    refused = client.post(f"{API}/auth/refresh", json={"refresh_token": session["refresh_token"]})
    assert refused.status_code == 401
