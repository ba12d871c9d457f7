# selfstudy/infra/jwt/jwt_token_provider.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from selfstudy.core.config import DEFAULT_ACCESS_TOKEN_MINUTES, parse_positive_int
from selfstudy.services._shared.ports import AccountClaims, IssuedAccessToken, TokenProvider

log = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True, slots=True)
class JwtSettings:
    """
    Immutable signing configuration.

    :ivar secret_key: Symmetric signing key; must be non-empty.
    :ivar algorithm: JWS algorithm (``HS256`` by default).
    :ivar access_ttl: Access-token lifetime.
    :ivar issuer: Optional ``iss`` claim.
    :ivar audience: Optional ``aud`` claim.
    """

    secret_key: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=DEFAULT_ACCESS_TOKEN_MINUTES)
    issuer: str | None = None
    audience: str | None = None

    def __repr__(self) -> str:
        # The signing key must never reach logs or tracebacks
        return (
            f"JwtSettings(algorithm={self.algorithm!r}, access_ttl={self.access_ttl!r}, "
            f"issuer={self.issuer!r}, audience={self.audience!r})"
        )

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> JwtSettings:
        """Build settings from a Flask config (or any mapping)."""
        minutes = parse_positive_int(
            config.get("ACCESS_TOKEN_MINUTES"), DEFAULT_ACCESS_TOKEN_MINUTES
        )
        return cls(
            secret_key=config.get("JWT_SECRET_KEY") or "",
            algorithm=config.get("JWT_ALGORITHM") or "HS256",
            access_ttl=timedelta(minutes=minutes),
            issuer=config.get("JWT_ISSUER") or None,
            audience=config.get("JWT_AUDIENCE") or None,
        )


class JwtTokenProvider(TokenProvider):
    """
    Signs stateless access tokens with PyJWT.

    The claim set is compatible with ``flask-jwt-extended`` verification at
    the HTTP boundary: ``sub`` (string account id), ``jti``, ``type``,
    ``fresh``, ``iat``/``nbf``/``exp`` plus ``email``, ``name`` and ``role``.

    :raises ValueError: At construction when the signing key is missing.
    """

    def __init__(self, settings: JwtSettings) -> None:
        if not settings.secret_key:
            raise ValueError("JWT signing key is not configured.")
        self._settings = settings

    @property
    def access_ttl(self) -> timedelta:
        return self._settings.access_ttl

    def issue_access_token(
        self, account: AccountClaims, *, now: datetime | None = None
    ) -> IssuedAccessToken:
        issued_at = (now or datetime.now(UTC)).astimezone(UTC)
        expires_at = issued_at + self._settings.access_ttl
        jti = str(uuid4())
        claims: dict[str, Any] = {
            "sub": str(account.id),
            "email": account.email,
            "name": account.full_name,
            "role": account.role,
            "jti": jti,
            "type": ACCESS_TOKEN_TYPE,
            "fresh": False,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
        }
        if self._settings.issuer:
            claims["iss"] = self._settings.issuer
        if self._settings.audience:
            claims["aud"] = self._settings.audience

        token = jwt.encode(claims, self._settings.secret_key, algorithm=self._settings.algorithm)
        log.debug("Access token issued", extra={"event": "access_issued", "user_id": account.id})
        # PyJWT truncates timestamps to whole seconds
        return IssuedAccessToken(
            token=token,
            expires_at=datetime.fromtimestamp(int(expires_at.timestamp()), tz=UTC),
            jti=jti,
        )

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify signature, expiry, issuer and audience.

        :raises jwt.InvalidTokenError: On any verification failure.
        """
        return jwt.decode(
            token,
            self._settings.secret_key,
            algorithms=[self._settings.algorithm],
            issuer=self._settings.issuer,
            audience=self._settings.audience,
            options={"require": ["exp", "sub", "jti"]},
        )

    def get_subject(self, token: str) -> int:
        return int(self.decode(token)["sub"])
