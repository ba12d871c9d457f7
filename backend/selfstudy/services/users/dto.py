"""
DTOs for UserService.

Data Transfer Objects isolate the service layer from ORM models; the
password hash never appears in an output DTO.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from selfstudy.services._shared.dto import PageMeta

# --------------------------------------------------------------------------- #
# Input DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class UserCreateIn:
    """
    Input DTO for administrator-created accounts.

    :param email: Login email (trimmed, case-sensitive).
    :param password: Raw password to be hashed.
    :param full_name: Display name.
    :param role: Role, ``"Student"`` when omitted.
    :param target_band: Optional target score.
    """

    email: str
    password: str
    full_name: str
    role: str | None = None
    target_band: float | None = None

    def __repr__(self) -> str:
        return f"UserCreateIn(email={self.email!r}, role={self.role!r})"


@dataclass(frozen=True, slots=True)
class UserUpdateIn:
    """
    Partial update; ``None`` leaves a field unchanged.

    :param full_name: New display name.
    :param role: New role (administrators only).
    :param target_band: New target score.
    :param is_active: Activate or deactivate (administrators only).
    """

    full_name: str | None = None
    role: str | None = None
    target_band: float | None = None
    is_active: bool | None = None

    def changes(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in {
                "full_name": self.full_name,
                "role": self.role,
                "target_band": self.target_band,
                "is_active": self.is_active,
            }.items()
            if v is not None
        }


# --------------------------------------------------------------------------- #
# Output DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class UserOut:
    """Public-safe account representation."""

    id: int
    email: str
    full_name: str
    role: str
    target_band: float | None
    is_active: bool
    created_at: datetime | None

    @classmethod
    def from_model(cls, user: Any) -> UserOut:
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            target_band=user.target_band,
            is_active=user.is_active,
            created_at=user.created_at,
        )


@dataclass(frozen=True, slots=True)
class UserListOut:
    """One page of users."""

    items: list[UserOut]
    meta: PageMeta
