from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

import redis  # type: ignore[import-untyped]

from selfstudy.services._shared.ports import (
    MAX_CHAIN_LENGTH,
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
    classify_inactive,
)

log = logging.getLogger(__name__)


def _s(value: bytes | str | None) -> str:
    if value is None:
        return ""
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _ts(dt: datetime) -> str:
    """Serialize an instant as UTC ISO-8601 (naive input is taken as UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat()


def _dt(raw: bytes | str | None) -> datetime | None:
    text = _s(raw)
    return datetime.fromisoformat(text) if text else None


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh-token store with atomic rotation.

    Layout
    ------
    ``rt:{token_hash}``
        Hash with ``user_id``, ``created_at``, ``expires_at``, ``revoked_at``
        and ``replaced_by``. Expires with the token.
    ``rt:u:{user_id}``
        Set of the user's token hashes; stale members are dropped on read.

    :param r: A connected Redis client.
    :param max_watch_retries: Attempts per optimistic transaction before the
        contention surfaces as :class:`redis.WatchError` (a store failure).
    """

    r: redis.Redis
    max_watch_retries: int = 16

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token_hash: str) -> str:
        return f"rt:{token_hash}"

    @staticmethod
    def _ku(user_id: int | str) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _ttl(expires_at: datetime, now: datetime) -> int:
        return max(1, math.ceil((expires_at - now).total_seconds()))

    def _gave_up(self) -> redis.WatchError:
        log.warning(
            "Refresh token write abandoned after %d contended attempts",
            self.max_watch_retries,
            extra={"event": "store_contention"},
        )
        return redis.WatchError("Refresh token store is contended; try again.")

    @staticmethod
    def _view(token_hash: str, raw: dict) -> RefreshTokenView | None:
        if not raw:
            return None
        h = {_s(k): v for k, v in raw.items()}
        return RefreshTokenView(
            token_hash=token_hash,
            user_id=int(_s(h.get("user_id"))),
            created_at=_dt(h.get("created_at")) or datetime.fromtimestamp(0, tz=UTC),
            expires_at=_dt(h.get("expires_at")) or datetime.fromtimestamp(0, tz=UTC),
            revoked_at=_dt(h.get("revoked_at")),
            replaced_by_token_hash=_s(h.get("replaced_by")) or None,
        )

    # -------------------- API ------------------------

    def register(
        self, *, token_hash: str, user_id: int, issued_at: datetime, expires_at: datetime
    ) -> None:
        """
        Insert the token record *before* the secret is handed to the client.
        """
        key = self._k(token_hash)
        with self.r.pipeline(transaction=True) as pipe:
            pipe.hset(
                key,
                mapping={
                    "user_id": str(user_id),
                    "created_at": _ts(issued_at),
                    "expires_at": _ts(expires_at),
                    "revoked_at": "",
                    "replaced_by": "",
                },
            )
            pipe.expire(key, self._ttl(expires_at, issued_at))
            pipe.sadd(self._ku(user_id), token_hash)
            pipe.execute()

    def rotate(
        self, *, old_hash: str, new_hash: str, now: datetime, new_expires_at: datetime
    ) -> RotationOutcome:
        """
        Atomically revoke ``old_hash``, link it to ``new_hash`` and create the successor.

        WATCH/MULTI/EXEC (optimistic locking): if another client touches the
        old record between the read and ``EXEC``, the transaction is discarded
        and the checks run again against the new state, up to
        ``max_watch_retries`` times.

        :raises redis.WatchError: When every attempt lost to a concurrent write.
        """
        k_old = self._k(old_hash)
        k_new = self._k(new_hash)

        for _ in range(self.max_watch_retries):
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, k_new)
                    current = self._view(old_hash, p.hgetall(k_old))
                    result = classify_inactive(current, now)
                    if current is None or result is not RotationResult.OK:
                        p.unwatch()
                        return RotationOutcome(result, current.user_id if current else None)
                    if p.exists(k_new):
                        p.unwatch()
                        raise ValueError("Refresh token hash already registered.")

                    p.multi()
                    p.hset(k_old, mapping={"revoked_at": _ts(now), "replaced_by": new_hash})
                    p.hset(
                        k_new,
                        mapping={
                            "user_id": str(current.user_id),
                            "created_at": _ts(now),
                            "expires_at": _ts(new_expires_at),
                            "revoked_at": "",
                            "replaced_by": "",
                        },
                    )
                    p.expire(k_new, self._ttl(new_expires_at, now))
                    p.sadd(self._ku(current.user_id), new_hash)
                    p.execute()
                return RotationOutcome(RotationResult.OK, current.user_id)
            except redis.WatchError:
                log.debug(
                    "Rotation retried after concurrent write", extra={"event": "rotate_retry"}
                )
        raise self._gave_up()

    def _revoke_if_active(self, token_hash: str, now: datetime) -> bool:
        key = self._k(token_hash)
        for _ in range(self.max_watch_retries):
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    current = self._view(token_hash, p.hgetall(key))
                    if current is None or not current.is_active(now):
                        p.unwatch()
                        return False
                    p.multi()
                    p.hset(key, "revoked_at", _ts(now))
                    p.execute()
                return True
            except redis.WatchError:
                continue
        raise self._gave_up()

    def revoke(self, token_hash: str, *, now: datetime) -> bool:
        return self._revoke_if_active(token_hash, now)

    def revoke_descendants(self, token_hash: str, *, now: datetime) -> int:
        revoked = 0
        seen = {token_hash}
        current = self.get(token_hash)
        while current is not None and current.replaced_by_token_hash:
            nxt = current.replaced_by_token_hash
            if nxt in seen or len(seen) > MAX_CHAIN_LENGTH:
                break
            seen.add(nxt)
            revoked += int(self._revoke_if_active(nxt, now))
            current = self.get(nxt)
        return revoked

    def revoke_all_for_user(self, user_id: int, *, now: datetime) -> int:
        tokens = self.list_user_tokens(user_id)
        return sum(self._revoke_if_active(v.token_hash, now) for v in tokens)

    def get(self, token_hash: str) -> RefreshTokenView | None:
        return self._view(token_hash, self.r.hgetall(self._k(token_hash)))

    def list_user_tokens(self, user_id: int) -> Sequence[RefreshTokenView]:
        key_u = self._ku(user_id)
        views: list[RefreshTokenView] = []
        stale: list[str] = []
        for member in self.r.smembers(key_u):
            token_hash = _s(member)
            view = self.get(token_hash)
            if view is None:
                # Record expired out of Redis; drop the dangling index entry
                stale.append(token_hash)
            else:
                views.append(view)
        if stale:
            self.r.srem(key_u, *stale)
        return sorted(views, key=lambda v: (v.created_at, v.token_hash))

    def prune(self, *, before: datetime) -> int:
        """Drop revoked records older than ``before``; expired ones age out via TTL."""
        removed = 0
        for key_u in self.r.scan_iter(match="rt:u:*"):
            user_id = _s(key_u).rsplit(":", 1)[-1]
            for view in self.list_user_tokens(int(user_id)):
                if view.revoked_at is not None and view.revoked_at < before.astimezone(UTC):
                    with self.r.pipeline(transaction=True) as pipe:
                        pipe.delete(self._k(view.token_hash))
                        pipe.srem(key_u, view.token_hash)
                        pipe.execute()
                    removed += 1
        return removed
