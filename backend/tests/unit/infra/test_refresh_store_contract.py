"""Behaviour shared by every refresh-token store backend.

The same scenarios run against the in-process store, the SQL store and the
Redis store (on fakeredis).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import fakeredis
import pytest

from selfstudy.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from selfstudy.infra.sql.sqlalchemy_refresh_token_store import SQLAlchemyRefreshTokenStore
from selfstudy.services._shared.ports import InMemoryRefreshTokenStore, RotationResult
from tests.factories import SQLAlchemySession
from tests.factories.user import UserFactory

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
TTL = timedelta(days=7)


@pytest.fixture(params=["memory", "sql", "redis"])
def store(request):
    if request.param == "memory":
        return InMemoryRefreshTokenStore()
    if request.param == "redis":
        return RedisRefreshTokenStore(fakeredis.FakeRedis())
    # "session" is requested lazily here, after the autouse factory wiring ran
    SQLAlchemySession.set(request.getfixturevalue("session"))
    return SQLAlchemyRefreshTokenStore()


@pytest.fixture()
def user_id(store):
    if isinstance(store, SQLAlchemyRefreshTokenStore):
        return UserFactory().id
    return 1


def _register(store, token_hash, user_id, *, issued_at=NOW):
    store.register(
        token_hash=token_hash, user_id=user_id, issued_at=issued_at, expires_at=issued_at + TTL
    )


def test_register_then_get(store, user_id):
    _register(store, "h1", user_id)
    view = store.get("h1")
    assert view is not None
    assert view.user_id == user_id
    assert view.expires_at == NOW + TTL
    assert view.revoked_at is None
    assert view.is_active(NOW)
    assert store.get("missing") is None


def test_rotate_links_and_revokes(store, user_id):
    _register(store, "h1", user_id)
    later = NOW + timedelta(hours=1)

    outcome = store.rotate(old_hash="h1", new_hash="h2", now=later, new_expires_at=later + TTL)

    assert outcome.ok and outcome.user_id == user_id
    old, new = store.get("h1"), store.get("h2")
    assert old.revoked_at == later
    assert old.replaced_by_token_hash == "h2"
    assert new.is_active(later)
    assert new.expires_at == later + TTL


def test_second_rotation_reports_reuse(store, user_id):
    _register(store, "h1", user_id)
    store.rotate(old_hash="h1", new_hash="h2", now=NOW, new_expires_at=NOW + TTL)

    outcome = store.rotate(old_hash="h1", new_hash="h3", now=NOW, new_expires_at=NOW + TTL)

    assert outcome.result is RotationResult.REUSED
    assert outcome.user_id == user_id
    assert store.get("h3") is None


def test_rotation_of_unknown_expired_and_revoked(store, user_id):
    _register(store, "old", user_id, issued_at=NOW - TTL - timedelta(seconds=1))
    _register(store, "gone", user_id)
    store.revoke("gone", now=NOW)

    assert store.rotate(
        old_hash="nope", new_hash="n1", now=NOW, new_expires_at=NOW + TTL
    ).result is RotationResult.NOT_FOUND
    assert store.rotate(
        old_hash="old", new_hash="n2", now=NOW, new_expires_at=NOW + TTL
    ).result is RotationResult.EXPIRED
    assert store.rotate(
        old_hash="gone", new_hash="n3", now=NOW, new_expires_at=NOW + TTL
    ).result is RotationResult.REVOKED


def test_expiry_boundary_is_inclusive(store, user_id):
    _register(store, "h1", user_id)
    at_expiry = NOW + TTL
    assert store.rotate(
        old_hash="h1", new_hash="h2", now=at_expiry, new_expires_at=at_expiry + TTL
    ).ok


def test_revoke_is_idempotent(store, user_id):
    _register(store, "h1", user_id)
    assert store.revoke("h1", now=NOW) is True
    assert store.revoke("h1", now=NOW) is False
    assert store.revoke("unknown", now=NOW) is False


def test_revoke_descendants_walks_the_chain(store, user_id):
    _register(store, "a", user_id)
    store.rotate(old_hash="a", new_hash="b", now=NOW, new_expires_at=NOW + TTL)
    store.rotate(old_hash="b", new_hash="c", now=NOW, new_expires_at=NOW + TTL)

    assert store.revoke_descendants("a", now=NOW) == 1
    assert not store.get("c").is_active(NOW)


def test_revoke_all_for_user(store, user_id):
    _register(store, "h1", user_id)
    _register(store, "h2", user_id)
    store.revoke("h2", now=NOW)

    assert store.revoke_all_for_user(user_id, now=NOW) == 1
    assert all(not v.is_active(NOW) for v in store.list_user_tokens(user_id))
    assert {v.token_hash for v in store.list_user_tokens(user_id)} == {"h1", "h2"}
