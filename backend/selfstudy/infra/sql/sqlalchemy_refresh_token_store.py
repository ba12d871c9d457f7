"""Relational refresh-token store built on the SQLAlchemy Unit of Work."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from selfstudy.models.base import as_utc
from selfstudy.models.refresh_token import RefreshToken
from selfstudy.services._shared.ports import (
    MAX_CHAIN_LENGTH,
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
    classify_inactive,
)
from selfstudy.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


def _to_view(row: RefreshToken | None) -> RefreshTokenView | None:
    if row is None:
        return None
    return RefreshTokenView(
        token_hash=row.token_hash,
        user_id=row.user_id,
        created_at=as_utc(row.created_at),
        expires_at=as_utc(row.expires_at),
        revoked_at=as_utc(row.revoked_at) if row.revoked_at else None,
        replaced_by_token_hash=row.replaced_by_token_hash,
    )


class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    :class:`RefreshTokenStore` over the ``refresh_tokens`` table.

    Each call runs in its own Unit of Work. ``rotate`` revokes the presented
    row with a conditional ``UPDATE`` (still unrevoked and unexpired) and only
    inserts the successor when that update matched exactly one row, so the
    revoke, link and insert commit or roll back together.

    :param uow_factory: Builds read-write units of work.
    :param ro_uow_factory: Builds read-only units of work.
    """

    def __init__(
        self,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        ro_uow_factory: Callable[[], SQLAlchemyReadOnlyUnitOfWork] = SQLAlchemyReadOnlyUnitOfWork,
    ) -> None:
        self._uow_factory = uow_factory
        self._ro_uow_factory = ro_uow_factory

    def register(
        self, *, token_hash: str, user_id: int, issued_at: datetime, expires_at: datetime
    ) -> None:
        with self._uow_factory() as uow:
            uow.refresh_tokens.add(
                RefreshToken(
                    user_id=user_id,
                    token_hash=token_hash,
                    created_at=issued_at,
                    expires_at=expires_at,
                )
            )

    def rotate(
        self, *, old_hash: str, new_hash: str, now: datetime, new_expires_at: datetime
    ) -> RotationOutcome:
        with self._uow_factory() as uow:
            repo = uow.refresh_tokens
            current = _to_view(repo.get_by_hash(old_hash))
            result = classify_inactive(current, now)
            if current is None or result is not RotationResult.OK:
                return RotationOutcome(result, current.user_id if current else None)

            if not repo.consume(old_hash, now=now, replaced_by=new_hash):
                # Lost the race: another rotation or revoke committed first
                lost = classify_inactive(_to_view(repo.get_by_hash(old_hash)), now)
                log.info(
                    "Concurrent rotation lost",
                    extra={"event": "rotate_conflict", "user_id": current.user_id},
                )
                if lost is RotationResult.OK:
                    lost = RotationResult.REVOKED
                return RotationOutcome(lost, current.user_id)

            repo.add(
                RefreshToken(
                    user_id=current.user_id,
                    token_hash=new_hash,
                    created_at=now,
                    expires_at=new_expires_at,
                )
            )
            return RotationOutcome(RotationResult.OK, current.user_id)

    def revoke(self, token_hash: str, *, now: datetime) -> bool:
        with self._uow_factory() as uow:
            return uow.refresh_tokens.revoke(token_hash, now=now)

    def revoke_descendants(self, token_hash: str, *, now: datetime) -> int:
        revoked = 0
        with self._uow_factory() as uow:
            repo = uow.refresh_tokens
            seen = {token_hash}
            row = repo.get_by_hash(token_hash)
            while row is not None and row.replaced_by_token_hash:
                nxt = row.replaced_by_token_hash
                if nxt in seen or len(seen) > MAX_CHAIN_LENGTH:
                    break
                seen.add(nxt)
                revoked += int(repo.revoke(nxt, now=now))
                row = repo.get_by_hash(nxt)
        return revoked

    def revoke_all_for_user(self, user_id: int, *, now: datetime) -> int:
        with self._uow_factory() as uow:
            return uow.refresh_tokens.revoke_all_for_user(user_id, now=now)

    def get(self, token_hash: str) -> RefreshTokenView | None:
        with self._ro_uow_factory() as uow:
            return _to_view(uow.refresh_tokens.get_by_hash(token_hash))

    def list_user_tokens(self, user_id: int) -> Sequence[RefreshTokenView]:
        with self._ro_uow_factory() as uow:
            return [
                view
                for row in uow.refresh_tokens.list_for_user(user_id)
                if (view := _to_view(row)) is not None
            ]

    def prune(self, *, before: datetime) -> int:
        with self._uow_factory() as uow:
            return uow.refresh_tokens.delete_inactive(before=before)
