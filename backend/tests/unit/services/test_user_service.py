"""Unit tests for UserService authorization and lifecycle rules."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from selfstudy.core.security import WerkzeugPasswordHasher
from selfstudy.services import (
    PaginationIn,
    ServiceContext,
    UserCreateIn,
    UserService,
    UserUpdateIn,
)
from selfstudy.services._shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from selfstudy.services._shared.ports import InMemoryRefreshTokenStore
from tests.factories.user import UserFactory


@pytest.fixture()
def store():
    return InMemoryRefreshTokenStore()


@pytest.fixture()
def base_service(session, store):
    return UserService(password_hasher=WerkzeugPasswordHasher(), refresh_store=store)


def _as(service: UserService, user) -> UserService:
    return service.with_context(ServiceContext(actor_id=user.id, actor_role=user.role))


def _issue(store, token_hash: str, user_id: int) -> None:
    now = datetime.now(UTC)
    store.register(
        token_hash=token_hash, user_id=user_id, issued_at=now, expires_at=now + timedelta(days=7)
    )


def test_owner_can_read_self_but_not_others(base_service):
    me, other = UserFactory(), UserFactory()
    service = _as(base_service, me)

    assert service.get_user(me.id).email == me.email
    with pytest.raises(ForbiddenError):
        service.get_user(other.id)


def test_admin_reads_anyone_and_missing_is_not_found(base_service):
    admin, other = UserFactory(admin=True), UserFactory()
    service = _as(base_service, admin)

    assert service.get_user(other.id).id == other.id
    with pytest.raises(NotFoundError):
        service.get_user(999_999)


def test_list_users_is_admin_only_and_hides_inactive(base_service):
    admin = UserFactory(admin=True)
    UserFactory()
    UserFactory(inactive=True)

    with pytest.raises(ForbiddenError):
        _as(base_service, UserFactory()).list_users(PaginationIn())

    listing = _as(base_service, admin).list_users(PaginationIn(limit=50))
    assert listing.meta.total == 3
    assert all(u.is_active for u in listing.items)

    everyone = _as(base_service, admin).list_users(PaginationIn(limit=50), include_inactive=True)
    assert everyone.meta.total == 4


def test_admin_creates_any_role(base_service):
    admin = UserFactory(admin=True)
    out = _as(base_service, admin).create_user(
        UserCreateIn(email="tutor@example.com", password="pw", full_name="T", role="Tutor")
    )
    assert out.role == "Tutor"
    assert out.is_active


def test_create_user_validation_and_conflict(base_service):
    admin = UserFactory(admin=True, email="root@example.com")
    service = _as(base_service, admin)

    with pytest.raises(InvalidInputError):
        service.create_user(UserCreateIn(email="", password="pw", full_name="X"))
    with pytest.raises(ConflictError):
        service.create_user(UserCreateIn(email="root@example.com", password="pw", full_name="X"))
    with pytest.raises(ForbiddenError):
        _as(base_service, UserFactory()).create_user(
            UserCreateIn(email="x@example.com", password="pw", full_name="X")
        )


def test_owner_updates_profile_but_not_role(base_service):
    me = UserFactory()
    service = _as(base_service, me)

    out = service.update_user(me.id, UserUpdateIn(full_name="Renamed", target_band=8.0))
    assert out.full_name == "Renamed"
    assert out.target_band == 8.0

    with pytest.raises(ForbiddenError):
        service.update_user(me.id, UserUpdateIn(role="Admin"))


def test_deactivation_revokes_refresh_tokens(base_service, store):
    admin, target = UserFactory(admin=True), UserFactory()
    _issue(store, "t1", target.id)

    _as(base_service, admin).deactivate_user(target.id)

    assert not store.get("t1").is_active(datetime.now(UTC))
    assert _as(base_service, admin).get_user(target.id).is_active is False


def test_admin_cannot_deactivate_self(base_service):
    admin = UserFactory(admin=True)
    with pytest.raises(ForbiddenError):
        _as(base_service, admin).deactivate_user(admin.id)


def test_update_to_inactive_also_revokes(base_service, store):
    admin, target = UserFactory(admin=True), UserFactory()
    _issue(store, "t2", target.id)

    _as(base_service, admin).update_user(target.id, UserUpdateIn(is_active=False))

    assert store.get("t2").revoked_at is not None
