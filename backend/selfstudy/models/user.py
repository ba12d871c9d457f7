"""Account model: the credential store row for a platform user."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, Float, Index, String, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column, validates

from selfstudy.core.extensions import db
from selfstudy.core.security import hash_password, verify_password

from .base import PKMixin, ReprMixin, TimestampMixin

DEFAULT_ROLE = "Student"
ADMIN_ROLE = "Admin"


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity and profile for a platform user.

    Fields
    ------
    email : str
        Login email. Stored trimmed; comparison is case-sensitive as stored.
    full_name : str
        Display name written into access-token claims.
    role : str
        Free-form role (``"Student"`` by default, ``"Admin"`` for operators).
    target_band : float | None
        Optional target score the learner is aiming for.
    password_hash : str
        Salted one-way hash (write-only setter via ``password``).
    is_active : bool
        Soft-deactivation flag; inactive accounts cannot log in or refresh.
    created_at, updated_at : datetime
        Timestamps from :class:`TimestampMixin`.
    """

    __tablename__ = "users"
    __repr_attrs__ = ("id", "role", "is_active")

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_ROLE, server_default=DEFAULT_ROLE
    )
    target_band: Mapped[float | None] = mapped_column(Float, nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_is_active", "is_active"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        self.password_hash = hash_password(raw)

    def verify_password(self, raw: str) -> bool:
        """Return ``True`` when ``raw`` matches the stored hash."""
        return verify_password(raw, self.password_hash)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Trim and sanity-check the email.

        :raises ValueError: If email is missing or has no ``@``.
        """
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Email is required.")
        v = value.strip()
        if "@" not in v:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("full_name")
    def _normalize_full_name(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Full name is required.")
        return value.strip()

    @validates("role")
    def _normalize_role(self, key: str, value: str | None) -> str:
        v = (value or "").strip()
        return v or DEFAULT_ROLE
