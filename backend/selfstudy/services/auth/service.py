# selfstudy/services/auth/service.py
from __future__ import annotations

import logging
import secrets
from functools import cached_property

from sqlalchemy.exc import IntegrityError

from selfstudy.models.user import DEFAULT_ROLE, User
from selfstudy.repositories.user import UserRepository
from selfstudy.services._shared.base import BaseService, ServiceContext
from selfstudy.services._shared.errors import ConflictError, violates
from selfstudy.services._shared.ports import (
    PasswordHasher,
    RefreshTokenStore,
    RotationResult,
    TokenProvider,
)
from selfstudy.services.auth.dto import (
    AuthResult,
    AuthSessionOut,
    AuthTokenConfig,
    LoginIn,
    RefreshIn,
    RegisterIn,
    RevokeIn,
    UserInfoOut,
)
from selfstudy.services.auth.refresh_tokens import IssuedRefreshToken, RefreshTokenManager

log = logging.getLogger(__name__)

# One message for every credential failure so callers cannot enumerate accounts
INVALID_CREDENTIALS = "Invalid email or password."
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token."


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


class SessionService(BaseService):
    """
    Session lifecycle: register, login, refresh (rotation) and revoke.

    Expected failures are returned as :class:`AuthResult` values; only store
    or connectivity failures raise.

    :param token_provider: Signs access tokens.
    :param refresh_store: Persists refresh-token digests (atomic rotation).
    :param password_hasher: One-way password hashing.
    :param token_cfg: Immutable refresh-token policy.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        refresh_store: RefreshTokenStore,
        password_hasher: PasswordHasher,
        token_cfg: AuthTokenConfig | None = None,
        ctx: ServiceContext | None = None,
        **kwargs,
    ) -> None:
        super().__init__(ctx=ctx, **kwargs)
        self.tokens = token_provider
        self.hasher = password_hasher
        self.cfg = token_cfg or AuthTokenConfig()
        self.refresh_tokens = RefreshTokenManager(
            refresh_store, ttl=self.cfg.refresh_expires, pepper=self.cfg.pepper
        )

    # ------------------------------------------------------------------ #
    # Register
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> AuthResult:
        """
        Create an active account and open its first session.

        :returns: ``OK`` with a session, ``INVALID_INPUT`` for empty fields,
            ``CONFLICT`` for a taken email, then ``INVALID_INPUT`` for a role
            that may not be self-assigned.
        """
        if _blank(dto.email) or _blank(dto.password) or _blank(dto.full_name):
            return AuthResult.invalid_input("Email, password and full name are required.")
        role = (dto.role or "").strip() or DEFAULT_ROLE

        try:
            with self.rw_uow() as uow:
                repo: UserRepository = uow.users
                if repo.exists_by_email(dto.email):
                    raise ConflictError("User", "email already registered")
                if not self.cfg.allows_self_registration(role):
                    return AuthResult.invalid_input(f"Role '{role}' cannot be self-assigned.")
                user = repo.add(
                    User(
                        email=dto.email,
                        full_name=dto.full_name,
                        role=role,
                        target_band=dto.target_band,
                        password_hash=self.hasher.hash(dto.password),
                        is_active=True,
                    )
                )
                account = UserInfoOut.from_model(user)
        except ConflictError:
            log.warning("Registration rejected: email taken", extra={"event": "register_conflict"})
            return AuthResult.conflict("Email is already registered.")
        except IntegrityError as exc:
            if violates(exc, "uq_users_email", columns=("users.email",)):
                log.warning(
                    "Registration rejected: email taken", extra={"event": "register_conflict"}
                )
                return AuthResult.conflict("Email is already registered.")
            raise
        except ValueError as exc:
            return AuthResult.invalid_input(str(exc))

        log.info("Account registered", extra={"event": "register", "user_id": account.id})
        return AuthResult.success(self._open_session(account))

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> AuthResult:
        """
        Verify credentials and issue a fresh token pair.

        Unknown email, inactive account and wrong password all produce the
        same ``UNAUTHORIZED`` result. A password is verified on every path,
        against a throwaway hash when the email is unknown, so response time
        does not reveal which emails are registered.
        """
        if _blank(dto.email) or _blank(dto.password):
            return AuthResult.invalid_input("Email and password are required.")

        with self.ro_uow() as uow:
            user = uow.users.get_by_email(dto.email)
            stored_hash = user.password_hash if user is not None else self._unknown_account_hash
            password_ok = self.hasher.verify(dto.password, stored_hash)
            if user is None or not user.is_active or not password_ok:
                log.warning("Login rejected", extra={"event": "login_failed"})
                return AuthResult.unauthorized(INVALID_CREDENTIALS)
            account = UserInfoOut.from_model(user)

        log.info("Login succeeded", extra={"event": "login", "user_id": account.id})
        return AuthResult.success(self._open_session(account))

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> AuthResult:
        """
        Rotate a refresh token and emit a new token pair.

        Security
        --------
        - The presented token must be active; rotation is a single atomic
          revoke+link+insert in the store.
        - Replaying a token that was already rotated is treated as theft:
          when ``revoke_chain_on_reuse`` is on, every active successor is
          revoked so the holder of the newest token must sign in again.
        - The owner must still exist and be active. It is loaded before the
          rotation commits, so once a successor exists nothing else can fail
          and strand it undelivered.
        """
        if _blank(dto.refresh_token):
            return AuthResult.invalid_input("Refresh token is required.")

        now = self.now_utc()
        presented = self.refresh_tokens.lookup(dto.refresh_token)
        if presented is None:
            log.warning("Refresh rejected: not_found", extra={"event": "refresh_failed"})
            return AuthResult.unauthorized(INVALID_REFRESH_TOKEN)

        account = self._active_account(presented.user_id)
        if account is None:
            # No successor for a vanished or deactivated owner
            self.refresh_tokens.revoke(dto.refresh_token, now=now)
            log.warning(
                "Refresh rejected: account missing or inactive",
                extra={"event": "refresh_failed", "user_id": presented.user_id},
            )
            return AuthResult.unauthorized(INVALID_REFRESH_TOKEN)

        outcome, successor = self.refresh_tokens.rotate(dto.refresh_token, now=now)

        if outcome.result is RotationResult.REUSED:
            revoked = 0
            if self.cfg.revoke_chain_on_reuse:
                revoked = self.refresh_tokens.revoke_descendants(dto.refresh_token, now=now)
            log.warning(
                "Refresh token reuse detected; revoked %d descendant(s)",
                revoked,
                extra={"event": "refresh_reuse", "user_id": outcome.user_id},
            )
            return AuthResult.unauthorized(INVALID_REFRESH_TOKEN)

        if successor is None:
            log.warning(
                "Refresh rejected: %s",
                outcome.result.name.lower(),
                extra={"event": "refresh_failed", "user_id": outcome.user_id},
            )
            return AuthResult.unauthorized(INVALID_REFRESH_TOKEN)

        log.info("Refresh token rotated", extra={"event": "refresh", "user_id": account.id})
        return AuthResult.success(self._open_session(account, refresh=successor))

    # ------------------------------------------------------------------ #
    # Revoke / logout
    # ------------------------------------------------------------------ #

    def revoke(self, dto: RevokeIn) -> AuthResult:
        """
        Revoke a refresh token. Always ``OK``.

        Empty, unknown and already-inactive tokens are silent no-ops so the
        response never reveals whether a token existed.
        """
        if _blank(dto.refresh_token):
            return AuthResult.success()
        if self.refresh_tokens.revoke(dto.refresh_token, now=self.now_utc()):
            log.info("Refresh token revoked", extra={"event": "revoke"})
        else:
            log.debug(
                "Revoke ignored for unknown or inactive token", extra={"event": "revoke_noop"}
            )
        return AuthResult.success()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @cached_property
    def _unknown_account_hash(self) -> str:
        return self.hasher.hash(secrets.token_urlsafe(32))

    def _active_account(self, user_id: int) -> UserInfoOut | None:
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            return UserInfoOut.from_model(user) if user and user.is_active else None

    def _open_session(
        self, account: UserInfoOut, *, refresh: IssuedRefreshToken | None = None
    ) -> AuthSessionOut:
        now = self.now_utc()
        if refresh is None:
            refresh = self.refresh_tokens.issue(account.id, now=now)
        access = self.tokens.issue_access_token(account, now=now)
        return AuthSessionOut(
            access_token=access.token,
            access_token_expires_at=access.expires_at,
            refresh_token=refresh.secret,
            refresh_token_expires_at=refresh.expires_at,
            user=account,
        )
