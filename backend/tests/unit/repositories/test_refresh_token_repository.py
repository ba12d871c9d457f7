"""Unit tests for RefreshTokenRepository conditional transitions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from selfstudy.repositories.refresh_token import RefreshTokenRepository
from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import UserFactory


@pytest.fixture()
def repo(session):
    return RefreshTokenRepository(session)


@pytest.fixture()
def owner(session):
    return UserFactory()


def test_consume_wins_exactly_once(repo, owner):
    token = RefreshTokenFactory(user=owner)
    now = datetime.now(UTC)

    assert repo.consume(token.token_hash, now=now, replaced_by="next") is True
    assert repo.consume(token.token_hash, now=now, replaced_by="other") is False

    row = repo.get_by_hash(token.token_hash)
    assert row.revoked_at is not None
    assert row.replaced_by_token_hash == "next"


def test_consume_refuses_expired_rows(repo, owner):
    token = RefreshTokenFactory(user=owner, expired=True)
    assert repo.consume(token.token_hash, now=datetime.now(UTC), replaced_by="x") is False


def test_revoke_is_noop_for_unknown_and_revoked(repo, owner):
    token = RefreshTokenFactory(user=owner, revoked=True)
    now = datetime.now(UTC)
    assert repo.revoke("unknown", now=now) is False
    assert repo.revoke(token.token_hash, now=now) is False


def test_revoke_all_for_user_only_touches_active_rows(repo, owner):
    other = UserFactory()
    RefreshTokenFactory(user=owner)
    RefreshTokenFactory(user=owner)
    RefreshTokenFactory(user=owner, revoked=True)
    untouched = RefreshTokenFactory(user=other)

    assert repo.revoke_all_for_user(owner.id, now=datetime.now(UTC)) == 2
    assert repo.get_by_hash(untouched.token_hash).revoked_at is None


def test_delete_inactive_keeps_active_rows(repo, owner):
    active = RefreshTokenFactory(user=owner)
    RefreshTokenFactory(user=owner, expired=True)
    RefreshTokenFactory(
        user=owner, revoked_at=datetime.now(UTC) - timedelta(days=2)
    )

    assert repo.delete_inactive(before=datetime.now(UTC) - timedelta(hours=12)) == 2
    assert [t.token_hash for t in repo.list_for_user(owner.id)] == [active.token_hash]
