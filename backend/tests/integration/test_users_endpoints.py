"""Integration tests for user management endpoints."""

from __future__ import annotations

from tests.factories.user import UserFactory
from tests.helpers.http import API, bearer, login


def _token(client, user) -> str:
    return login(client, user.email)["access_token"]


def test_list_requires_admin(client):
    student = UserFactory()
    resp = client.get(f"{API}/users", headers=bearer(_token(client, student)))
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "forbidden"


def test_admin_lists_users_with_meta(client):
    admin = UserFactory(admin=True)
    UserFactory.create_batch(3)

    resp = client.get(f"{API}/users?limit=2&sort=-id", headers=bearer(_token(client, admin)))

    assert resp.status_code == 200
    body = resp.get_json()
    assert len(body["data"]) == 2
    assert body["meta"]["total"] == 4
    assert body["meta"]["has_next"] is True


def test_user_reads_self_but_not_others(client):
    me, other = UserFactory(), UserFactory()
    headers = bearer(_token(client, me))

    assert client.get(f"{API}/users/{me.id}", headers=headers).status_code == 200
    assert client.get(f"{API}/users/{other.id}", headers=headers).status_code == 403


def test_patch_own_profile(client):
    me = UserFactory()
    resp = client.patch(
        f"{API}/users/{me.id}",
        json={"full_name": "Updated Name", "target_band": 6.5},
        headers=bearer(_token(client, me)),
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["full_name"] == "Updated Name"
    assert data["target_band"] == 6.5


def test_student_cannot_promote_self(client):
    me = UserFactory()
    resp = client.patch(
        f"{API}/users/{me.id}", json={"role": "Admin"}, headers=bearer(_token(client, me))
    )
    assert resp.status_code == 403


def test_admin_creates_user(client):
    admin = UserFactory(admin=True)
    resp = client.post(
        f"{API}/users",
        json={"email": "tutor@example.com", "password": "pw-123", "full_name": "Tutor"},
        headers=bearer(_token(client, admin)),
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"]["email"] == "tutor@example.com"
    assert login(client, "tutor@example.com", "pw-123")["user"]["role"] == "Student"


def test_deactivation_ends_sessions(client):
    admin, target = UserFactory(admin=True), UserFactory()
    target_session = login(client, target.email)

    resp = client.delete(f"{API}/users/{target.id}", headers=bearer(_token(client, admin)))
    assert resp.status_code == 204

    refresh = client.post(
        f"{API}/auth/refresh", json={"refresh_token": target_session["refresh_token"]}
    )
    assert refresh.status_code == 401
    relogin = client.post(
        f"{API}/auth/login", json={"email": target.email, "password": "Passw0rd!"}
    )
    assert relogin.status_code == 401


def test_missing_user_is_404_for_admin(client):
    admin = UserFactory(admin=True)
    resp = client.get(f"{API}/users/987654", headers=bearer(_token(client, admin)))
    assert resp.status_code == 404
