"""Refresh-token repository with conditional (compare-and-swap) transitions."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, or_, select, update

from selfstudy.models.refresh_token import RefreshToken
from selfstudy.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence for :class:`RefreshToken` rows.

    State transitions are single ``UPDATE ... WHERE revoked_at IS NULL AND
    expires_at >= :now`` statements; the returned row count tells the caller
    whether it won the transition. Two concurrent writers can never both see
    ``1`` for the same row.
    """

    model = RefreshToken

    sortable = ("created_at", "expires_at")

    def get_by_hash(self, token_hash: str) -> RefreshToken | None:
        # Conditional UPDATEs skip the identity map, so always reload the row
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().first()

    def list_for_user(self, user_id: int) -> Sequence[RefreshToken]:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def _revoke_if_active(
        self, token_hash: str, *, now: datetime, replaced_by: str | None
    ) -> int:
        values: dict[str, object] = {"revoked_at": now}
        if replaced_by is not None:
            values["replaced_by_token_hash"] = replaced_by
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token_hash == token_hash,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at >= now,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def consume(self, token_hash: str, *, now: datetime, replaced_by: str) -> bool:
        """Revoke an active row and link its successor in one statement.

        :returns: ``True`` if this call performed the transition.
        """
        return self._revoke_if_active(token_hash, now=now, replaced_by=replaced_by) == 1

    def revoke(self, token_hash: str, *, now: datetime) -> bool:
        """Revoke an active row; inactive or unknown hashes return ``False``."""
        return self._revoke_if_active(token_hash, now=now, replaced_by=None) > 0

    def revoke_all_for_user(self, user_id: int, *, now: datetime) -> int:
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at >= now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def delete_inactive(self, *, before: datetime) -> int:
        """Hard-delete rows that expired or were revoked before ``before``."""
        stmt = (
            delete(RefreshToken)
            .where(
                or_(
                    RefreshToken.expires_at < before,
                    RefreshToken.revoked_at < before,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)
