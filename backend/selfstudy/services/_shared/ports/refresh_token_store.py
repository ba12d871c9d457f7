from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Protocol

# Upper bound on replaced-by hops followed when revoking a rotation chain
MAX_CHAIN_LENGTH = 1000


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()
    REUSED = auto()


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    """
    Result of :meth:`RefreshTokenStore.rotate`.

    :ivar result: What happened to the presented token.
    :ivar user_id: Owner of the presented token (``None`` when not found).
    """

    result: RotationResult
    user_id: int | None = None

    @property
    def ok(self) -> bool:
        return self.result is RotationResult.OK


@dataclass(frozen=True, slots=True)
class RefreshTokenView:
    """
    Read-model for one stored refresh token.

    :ivar token_hash: Digest of the secret (never the secret itself).
    :ivar user_id: Owner account id.
    :ivar created_at: Issuance instant (UTC).
    :ivar expires_at: Absolute expiry (UTC).
    :ivar revoked_at: Revocation instant, ``None`` while not revoked.
    :ivar replaced_by_token_hash: Digest of the successor after rotation.
    """

    token_hash: str
    user_id: int
    created_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    replaced_by_token_hash: str | None = None

    def is_active(self, now: datetime) -> bool:
        return self.revoked_at is None and _utc(now) <= _utc(self.expires_at)


def classify_inactive(view: RefreshTokenView | None, now: datetime) -> RotationResult:
    """Explain why ``view`` cannot be rotated at ``now``.

    Revocation is checked before expiry so a replayed, already-rotated token
    is reported as ``REUSED`` even after it has also expired.
    """
    if view is None:
        return RotationResult.NOT_FOUND
    if view.revoked_at is not None:
        return RotationResult.REUSED if view.replaced_by_token_hash else RotationResult.REVOKED
    if _utc(now) > _utc(view.expires_at):
        return RotationResult.EXPIRED
    return RotationResult.OK


class RefreshTokenStore(Protocol):
    """
    Stateful store for refresh-token records keyed by token hash.

    ``rotate`` MUST be atomic: of two concurrent calls presenting the same
    active hash, exactly one returns ``OK``.
    """

    def register(
        self, *, token_hash: str, user_id: int, issued_at: datetime, expires_at: datetime
    ) -> None:
        """Persist a brand-new active token. Runs before the secret is handed out."""

    def rotate(
        self, *, old_hash: str, new_hash: str, now: datetime, new_expires_at: datetime
    ) -> RotationOutcome:
        """Revoke ``old_hash``, link it to ``new_hash`` and insert the successor."""

    def revoke(self, token_hash: str, *, now: datetime) -> bool:
        """Revoke an active token. :returns: ``False`` for unknown/inactive hashes."""

    def revoke_descendants(self, token_hash: str, *, now: datetime) -> int:
        """Revoke every active token reachable via ``replaced_by_token_hash``."""

    def revoke_all_for_user(self, user_id: int, *, now: datetime) -> int:
        """Revoke every active token of ``user_id``. :returns: rows affected."""

    def get(self, token_hash: str) -> RefreshTokenView | None:
        """Fetch a single token snapshot (if present)."""

    def list_user_tokens(self, user_id: int) -> Sequence[RefreshTokenView]:
        """List every stored token of ``user_id``, oldest first."""

    def prune(self, *, before: datetime) -> int:
        """Delete records that expired or were revoked before ``before``."""


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    Process-local refresh-token store.

    .. note::
       A single lock serializes every operation, which makes ``rotate``
       atomic within one process. Used in unit tests and single-worker dev.
    """

    def __init__(self) -> None:
        self._by_hash: dict[str, RefreshTokenView] = {}
        self._by_user: dict[int, list[str]] = {}
        self._lock = threading.Lock()

    def _insert(self, view: RefreshTokenView) -> None:
        if view.token_hash in self._by_hash:
            raise ValueError("Refresh token hash already registered.")
        self._by_hash[view.token_hash] = view
        self._by_user.setdefault(view.user_id, []).append(view.token_hash)

    def register(
        self, *, token_hash: str, user_id: int, issued_at: datetime, expires_at: datetime
    ) -> None:
        with self._lock:
            self._insert(
                RefreshTokenView(
                    token_hash=token_hash,
                    user_id=user_id,
                    created_at=_utc(issued_at),
                    expires_at=_utc(expires_at),
                )
            )

    def rotate(
        self, *, old_hash: str, new_hash: str, now: datetime, new_expires_at: datetime
    ) -> RotationOutcome:
        with self._lock:
            current = self._by_hash.get(old_hash)
            result = classify_inactive(current, now)
            if current is None or result is not RotationResult.OK:
                return RotationOutcome(result, current.user_id if current else None)
            self._by_hash[old_hash] = replace(
                current, revoked_at=_utc(now), replaced_by_token_hash=new_hash
            )
            self._insert(
                RefreshTokenView(
                    token_hash=new_hash,
                    user_id=current.user_id,
                    created_at=_utc(now),
                    expires_at=_utc(new_expires_at),
                )
            )
            return RotationOutcome(RotationResult.OK, current.user_id)

    def _revoke_locked(self, token_hash: str, now: datetime) -> bool:
        current = self._by_hash.get(token_hash)
        if current is None or not current.is_active(now):
            return False
        self._by_hash[token_hash] = replace(current, revoked_at=_utc(now))
        return True

    def revoke(self, token_hash: str, *, now: datetime) -> bool:
        with self._lock:
            return self._revoke_locked(token_hash, now)

    def revoke_descendants(self, token_hash: str, *, now: datetime) -> int:
        with self._lock:
            revoked = 0
            seen = {token_hash}
            current = self._by_hash.get(token_hash)
            while current is not None and current.replaced_by_token_hash:
                nxt = current.replaced_by_token_hash
                if nxt in seen or len(seen) > MAX_CHAIN_LENGTH:
                    break
                seen.add(nxt)
                revoked += int(self._revoke_locked(nxt, now))
                current = self._by_hash.get(nxt)
            return revoked

    def revoke_all_for_user(self, user_id: int, *, now: datetime) -> int:
        with self._lock:
            return sum(self._revoke_locked(h, now) for h in self._by_user.get(user_id, []))

    def get(self, token_hash: str) -> RefreshTokenView | None:
        with self._lock:
            return self._by_hash.get(token_hash)

    def list_user_tokens(self, user_id: int) -> Sequence[RefreshTokenView]:
        with self._lock:
            return [self._by_hash[h] for h in self._by_user.get(user_id, [])]

    def prune(self, *, before: datetime) -> int:
        cutoff = _utc(before)
        with self._lock:
            stale = [
                h
                for h, v in self._by_hash.items()
                if _utc(v.expires_at) < cutoff
                or (v.revoked_at is not None and _utc(v.revoked_at) < cutoff)
            ]
            for h in stale:
                view = self._by_hash.pop(h)
                self._by_user[view.user_id].remove(h)
            return len(stale)
