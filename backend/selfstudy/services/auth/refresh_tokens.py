"""Refresh-token generation, hashing and the rotate/revoke state machine."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from selfstudy.services._shared.ports import (
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
)

log = logging.getLogger(__name__)

# 512 bits of randomness per secret
SECRET_BYTES = 64


@dataclass(frozen=True, slots=True)
class IssuedRefreshToken:
    """
    A refresh secret in plaintext, handed to the client exactly once.

    :ivar secret: Base64 transport encoding of the random bytes.
    :ivar expires_at: Absolute expiry (UTC).
    """

    secret: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"IssuedRefreshToken(secret=***, expires_at={self.expires_at!r})"


class RefreshTokenManager:
    """
    Owns refresh-token secrets; the store only ever sees their digests.

    Digests are deterministic (SHA-256, or HMAC-SHA256 when a pepper is
    configured) so a presented secret can be looked up by value.

    :param store: Persistence for token records.
    :param ttl: Lifetime of every issued token.
    :param pepper: Optional server-side key for the digest.
    """

    def __init__(
        self, store: RefreshTokenStore, *, ttl: timedelta, pepper: str | None = None
    ) -> None:
        self.store = store
        self.ttl = ttl
        self._pepper = pepper.encode() if pepper else None

    @staticmethod
    def generate_secret() -> str:
        return base64.b64encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii")

    def hash(self, secret: str) -> str:
        """Return the hex digest stored in place of ``secret``."""
        raw = secret.encode()
        if self._pepper is not None:
            return hmac.new(self._pepper, raw, hashlib.sha256).hexdigest()
        return hashlib.sha256(raw).hexdigest()

    def issue(self, user_id: int, *, now: datetime) -> IssuedRefreshToken:
        """Generate a secret, persist its digest, and return the plaintext once."""
        secret = self.generate_secret()
        expires_at = now + self.ttl
        self.store.register(
            token_hash=self.hash(secret), user_id=user_id, issued_at=now, expires_at=expires_at
        )
        log.debug("Refresh token issued", extra={"event": "refresh_issued", "user_id": user_id})
        return IssuedRefreshToken(secret=secret, expires_at=expires_at)

    def lookup(self, secret: str) -> RefreshTokenView | None:
        """Snapshot of the record behind ``secret``, without changing it."""
        return self.store.get(self.hash(secret))

    def rotate(
        self, secret: str, *, now: datetime
    ) -> tuple[RotationOutcome, IssuedRefreshToken | None]:
        """
        Consume ``secret`` and mint its successor atomically.

        :returns: The store outcome and, on ``OK`` only, the new plaintext.
        """
        successor = self.generate_secret()
        expires_at = now + self.ttl
        outcome = self.store.rotate(
            old_hash=self.hash(secret),
            new_hash=self.hash(successor),
            now=now,
            new_expires_at=expires_at,
        )
        if outcome.result is not RotationResult.OK:
            return outcome, None
        return outcome, IssuedRefreshToken(secret=successor, expires_at=expires_at)

    def revoke(self, secret: str, *, now: datetime) -> bool:
        """Revoke ``secret`` if active. Unknown or inactive secrets return ``False``."""
        return self.store.revoke(self.hash(secret), now=now)

    def revoke_descendants(self, secret: str, *, now: datetime) -> int:
        """Revoke every active successor reachable from ``secret``'s record."""
        return self.store.revoke_descendants(self.hash(secret), now=now)

    def revoke_all(self, user_id: int, *, now: datetime) -> int:
        return self.store.revoke_all_for_user(user_id, now=now)
