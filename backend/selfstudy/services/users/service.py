"""
UserService
===========

Account management around the ``User`` aggregate: listing, lookup,
administrator-driven creation, profile updates and soft deactivation.
Deactivation also revokes every refresh token the account holds.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from selfstudy.models.user import DEFAULT_ROLE, User
from selfstudy.repositories.user import UserRepository
from selfstudy.services._shared.base import BaseService, ServiceContext
from selfstudy.services._shared.dto import PageMeta, PaginationIn
from selfstudy.services._shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    violates,
)
from selfstudy.services._shared.ports import PasswordHasher, RefreshTokenStore
from selfstudy.services.users.dto import UserCreateIn, UserListOut, UserOut, UserUpdateIn

log = logging.getLogger(__name__)

ADMIN_ONLY_FIELDS = frozenset({"role", "is_active"})


class UserService(BaseService):
    """
    Application service for the ``User`` aggregate.

    Authorization uses :attr:`ctx`: ``actor_id`` and ``actor_role`` come
    from the verified bearer token.
    """

    def __init__(
        self,
        *,
        password_hasher: PasswordHasher,
        refresh_store: RefreshTokenStore,
        ctx: ServiceContext | None = None,
        **kwargs,
    ) -> None:
        super().__init__(ctx=ctx, **kwargs)
        self.hasher = password_hasher
        self.refresh_store = refresh_store

    def with_context(self, ctx: ServiceContext) -> UserService:
        """Return a copy bound to ``ctx`` sharing the same collaborators."""
        return UserService(
            password_hasher=self.hasher,
            refresh_store=self.refresh_store,
            ctx=ctx,
            uow_factory=self._uow_factory,
            ro_uow_factory=self._ro_uow_factory,
        )

    # --------------------------------------------------------------------- #
    # Queries
    # --------------------------------------------------------------------- #

    def list_users(self, dto: PaginationIn, *, include_inactive: bool = False) -> UserListOut:
        """
        Page through accounts (administrators only).

        Only active accounts are listed unless ``include_inactive`` is set.

        :raises ForbiddenError: If the actor is not an administrator.
        """
        self.ensure_admin()
        pagination = self.ensure_pagination(page=dto.page, limit=dto.limit, sort=dto.sort)
        filters = None if include_inactive else {"is_active": True}
        with self.ro_uow() as uow:
            page = uow.users.paginate(pagination, filters=filters)
            items = [UserOut.from_model(u) for u in page.items]
        return UserListOut(
            items=items,
            meta=PageMeta.of(page),
        )

    def get_user(self, user_id: int) -> UserOut:
        """
        Retrieve an account; allowed for the account itself or an administrator.

        :raises ForbiddenError: For any other actor.
        :raises NotFoundError: If the account does not exist.
        """
        self.ensure_owner_or_admin(user_id)
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return UserOut.from_model(user)

    # --------------------------------------------------------------------- #
    # Commands
    # --------------------------------------------------------------------- #

    def create_user(self, dto: UserCreateIn) -> UserOut:
        """
        Create an account with any role (administrators only).

        :raises InvalidInputError: For empty or malformed fields.
        :raises ConflictError: If the email is already registered.
        """
        self.ensure_admin()
        if not dto.email.strip() or not dto.password or not dto.full_name.strip():
            raise InvalidInputError("Email, password and full name are required.")
        try:
            with self.rw_uow() as uow:
                repo: UserRepository = uow.users
                if repo.exists_by_email(dto.email):
                    raise ConflictError("User", "email already registered")
                user = repo.add(
                    User(
                        email=dto.email,
                        full_name=dto.full_name,
                        role=dto.role or DEFAULT_ROLE,
                        target_band=dto.target_band,
                        password_hash=self.hasher.hash(dto.password),
                        is_active=True,
                    )
                )
                out = UserOut.from_model(user)
        except IntegrityError as exc:
            if violates(exc, "uq_users_email", columns=("users.email",)):
                raise ConflictError("User", "email already registered") from exc
            raise
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        log.info(
            "Account created by administrator",
            extra={"event": "user_created", "user_id": out.id},
        )
        return out

    def update_user(self, user_id: int, dto: UserUpdateIn) -> UserOut:
        """
        Update profile fields.

        Owners may change ``full_name`` and ``target_band``; ``role`` and
        ``is_active`` require an administrator. Deactivating an account
        revokes its refresh tokens.

        :raises ForbiddenError: On a disallowed actor or field.
        :raises NotFoundError: If the account does not exist.
        """
        self.ensure_owner_or_admin(user_id)
        changes = dto.changes()
        if ADMIN_ONLY_FIELDS & changes.keys():
            self.ensure_admin(msg="Only administrators can change role or status.")

        try:
            with self.rw_uow() as uow:
                user = uow.users.get(user_id)
                if user is None:
                    raise NotFoundError("User", user_id)
                uow.users.assign_updates(user, changes)
                out = UserOut.from_model(user)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc

        if changes.get("is_active") is False:
            self._revoke_sessions(user_id)
        return out

    def deactivate_user(self, user_id: int) -> None:
        """
        Soft-delete an account (administrators only) and revoke its sessions.

        Idempotent for already inactive accounts.

        :raises ForbiddenError: If the actor is not an administrator.
        :raises NotFoundError: If the account does not exist.
        """
        self.ensure_admin()
        if self.ctx.actor_id is not None and int(self.ctx.actor_id) == int(user_id):
            raise ForbiddenError("Administrators cannot deactivate themselves.")
        with self.rw_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            uow.users.assign_updates(user, {"is_active": False})
        self._revoke_sessions(user_id)

    def _revoke_sessions(self, user_id: int) -> None:
        revoked = self.refresh_store.revoke_all_for_user(user_id, now=self.now_utc())
        log.info(
            "Account deactivated; revoked %d refresh token(s)",
            revoked,
            extra={"event": "user_deactivated", "user_id": user_id},
        )
