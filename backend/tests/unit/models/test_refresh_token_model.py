"""Unit tests for the ``RefreshToken`` model state helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import UserFactory


def test_fresh_token_is_active(session):
    token = RefreshTokenFactory(user=UserFactory())
    assert token.is_active(datetime.now(UTC))
    assert not token.is_expired(datetime.now(UTC))


def test_expiry_boundary_is_inclusive(session):
    token = RefreshTokenFactory(user=UserFactory())
    expires_at = token.expires_at
    assert token.is_active(expires_at)
    assert not token.is_active(expires_at + timedelta(microseconds=1))


def test_revoked_token_is_inactive(session):
    token = RefreshTokenFactory(user=UserFactory(), revoked=True)
    assert not token.is_active(datetime.now(UTC))


def test_expired_trait(session):
    token = RefreshTokenFactory(user=UserFactory(), expired=True)
    assert token.is_expired(datetime.now(UTC))
    assert not token.is_active(datetime.now(UTC))


def test_repr_omits_token_hash(session):
    token = RefreshTokenFactory(user=UserFactory())
    text = repr(token)
    assert text.startswith("<RefreshToken id=")
    assert token.token_hash not in text
