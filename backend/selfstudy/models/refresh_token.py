"""Refresh-token record: the keyed hash of an opaque secret and its lifecycle."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from selfstudy.core.extensions import db

from .base import PKMixin, ReprMixin, as_utc, utcnow


class RefreshToken(PKMixin, ReprMixin, db.Model):
    """
    Persisted state of one refresh token.

    The plaintext secret is never stored; ``token_hash`` is its deterministic
    digest so a presented secret can be looked up by value.

    Fields
    ------
    user_id : int
        Owning account.
    token_hash : str
        Hex digest of the secret. ``(user_id, token_hash)`` is unique.
    expires_at : datetime
        Absolute expiry (UTC). Expiry is derived at read time, never written.
    created_at : datetime
        Issuance instant (UTC).
    revoked_at : datetime | None
        Set exactly once, on logout or when consumed by a rotation.
    replaced_by_token_hash : str | None
        Digest of the successor minted by the rotation that consumed this row.
    """

    __tablename__ = "refresh_tokens"
    __repr_attrs__ = ("id", "user_id", "expires_at")

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    replaced_by_token_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "token_hash", name="uq_refresh_tokens_user_id_token_hash"),
        Index("ix_refresh_tokens_token_hash", "token_hash"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
        Index("ix_refresh_tokens_user_id", "user_id"),
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return ``True`` once ``now`` is strictly past ``expires_at``."""
        now = as_utc(now or utcnow())
        return now > as_utc(self.expires_at)

    def is_active(self, now: datetime | None = None) -> bool:
        """Active means not revoked and ``now <= expires_at`` (inclusive)."""
        return self.revoked_at is None and not self.is_expired(now)
