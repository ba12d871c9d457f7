# selfstudy/services/auth/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from selfstudy.core.config import DEFAULT_REFRESH_TOKEN_DAYS, parse_positive_int
from selfstudy.models.user import ADMIN_ROLE
from selfstudy.services._shared.errors import (
    ConflictError,
    InvalidInputError,
    UnauthorizedError,
)

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for self-registration.

    :param email: Login email (trimmed, case-sensitive).
    :param password: Raw password, hashed before storage.
    :param full_name: Display name.
    :param role: Optional role; defaults to ``"Student"``.
    :param target_band: Optional target score.
    """

    email: str
    password: str
    full_name: str
    role: str | None = None
    target_band: float | None = None

    def __repr__(self) -> str:
        return f"RegisterIn(email={self.email!r}, full_name={self.full_name!r}, role={self.role!r})"


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email as typed.
    :param password: Raw password (to be verified).
    """

    email: str
    password: str

    def __repr__(self) -> str:
        return f"LoginIn(email={self.email!r})"


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh secret issued earlier.
    """

    refresh_token: str

    def __repr__(self) -> str:
        return "RefreshIn(refresh_token=***)"


@dataclass(frozen=True, slots=True)
class RevokeIn:
    """
    Input DTO for logout/revoke.

    :param refresh_token: Opaque refresh secret to revoke. Empty is a no-op.
    """

    refresh_token: str

    def __repr__(self) -> str:
        return "RevokeIn(refresh_token=***)"


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserInfoOut:
    """
    Account summary returned with every session (never the password hash).

    Also satisfies :class:`~selfstudy.services._shared.ports.AccountClaims`.
    """

    id: int
    email: str
    full_name: str
    role: str
    target_band: float | None = None

    @classmethod
    def from_model(cls, user: Any) -> UserInfoOut:
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            target_band=user.target_band,
        )


@dataclass(frozen=True, slots=True)
class AuthSessionOut:
    """
    Token pair plus account summary.

    :param access_token: Signed bearer token.
    :param access_token_expires_at: Bearer expiry (UTC).
    :param refresh_token: Opaque refresh secret; shown to the client once.
    :param refresh_token_expires_at: Refresh expiry (UTC).
    :param user: Account summary.
    """

    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime
    user: UserInfoOut

    def __repr__(self) -> str:
        return (
            f"AuthSessionOut(user_id={self.user.id}, "
            f"access_token_expires_at={self.access_token_expires_at!r}, "
            f"refresh_token_expires_at={self.refresh_token_expires_at!r})"
        )


# ------------------------------ Results ----------------------------------- #


class AuthStatus(Enum):
    """Expected outcomes of a session operation."""

    OK = "ok"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True, slots=True)
class AuthResult:
    """
    Typed result of a session operation.

    Expected failures (bad credentials, stale refresh tokens) are values, not
    exceptions; :meth:`unwrap` converts them into service errors at the
    boundary that wants exceptions.
    """

    status: AuthStatus
    session: AuthSessionOut | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is AuthStatus.OK

    @classmethod
    def success(cls, session: AuthSessionOut | None = None) -> AuthResult:
        return cls(AuthStatus.OK, session=session)

    @classmethod
    def invalid_input(cls, message: str) -> AuthResult:
        return cls(AuthStatus.INVALID_INPUT, message=message)

    @classmethod
    def conflict(cls, message: str) -> AuthResult:
        return cls(AuthStatus.CONFLICT, message=message)

    @classmethod
    def unauthorized(cls, message: str) -> AuthResult:
        return cls(AuthStatus.UNAUTHORIZED, message=message)

    def unwrap(self) -> AuthSessionOut | None:
        """
        Return the session on success.

        :raises InvalidInputError: For ``INVALID_INPUT``.
        :raises ConflictError: For ``CONFLICT``.
        :raises UnauthorizedError: For ``UNAUTHORIZED``.
        """
        if self.status is AuthStatus.OK:
            return self.session
        if self.status is AuthStatus.INVALID_INPUT:
            raise InvalidInputError(self.message or "Invalid input")
        if self.status is AuthStatus.CONFLICT:
            raise ConflictError("User", self.message or "already exists")
        raise UnauthorizedError(self.message or "Unauthorized")


# ------------------------------ Config ------------------------------------ #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Refresh-token policy injected into the session service.

    :param refresh_expires: Refresh token lifetime.
    :param revoke_chain_on_reuse: Revoke the active descendants of a replayed
        rotated token.
    :param pepper: Optional server secret for keyed refresh-token digests.
    :param self_register_roles: Optional allow-list for roles requested at
        registration. Empty admits any role except the administrator role.
    """

    refresh_expires: timedelta = timedelta(days=DEFAULT_REFRESH_TOKEN_DAYS)
    revoke_chain_on_reuse: bool = True
    pepper: str | None = None
    self_register_roles: frozenset[str] = frozenset()

    def __repr__(self) -> str:
        return (
            f"AuthTokenConfig(refresh_expires={self.refresh_expires!r}, "
            f"revoke_chain_on_reuse={self.revoke_chain_on_reuse!r}, "
            f"self_register_roles={sorted(self.self_register_roles)!r})"
        )

    def allows_self_registration(self, role: str) -> bool:
        """Administrators are never self-assigned; other roles pass an empty allow-list."""
        if role == ADMIN_ROLE:
            return False
        return not self.self_register_roles or role in self.self_register_roles

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthTokenConfig:
        """Build the policy from a Flask config (invalid TTLs fall back to defaults)."""
        days = parse_positive_int(config.get("REFRESH_TOKEN_DAYS"), DEFAULT_REFRESH_TOKEN_DAYS)
        chain = config.get("REFRESH_REUSE_REVOKES_CHAIN", True)
        if isinstance(chain, str):
            chain = chain.strip().lower() in {"1", "true", "yes", "y", "on"}
        roles = config.get("SELF_REGISTER_ROLES") or ""
        if isinstance(roles, str):
            roles = [r.strip() for r in roles.split(",")]
        return cls(
            refresh_expires=timedelta(days=days),
            revoke_chain_on_reuse=bool(chain),
            pepper=config.get("REFRESH_TOKEN_PEPPER") or None,
            self_register_roles=frozenset(r for r in roles if r),
        )


__all__ = [
    "AuthResult",
    "AuthSessionOut",
    "AuthStatus",
    "AuthTokenConfig",
    "LoginIn",
    "RefreshIn",
    "RegisterIn",
    "RevokeIn",
    "UserInfoOut",
]
