"""User repository: account lookups for the credential store."""

from __future__ import annotations

from sqlalchemy import select

from selfstudy.models.user import User
from selfstudy.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Never issues tokens or verifies passwords; that belongs to the services.
    """

    model = User

    sortable = ("id", "email", "full_name", "role", "created_at")
    filterable = ("email", "role", "is_active")
    # ``password`` routes through the hashing setter on the model
    updatable = frozenset({"full_name", "role", "target_band", "is_active", "password"})

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by exact (trimmed, case-sensitive) email.

        :param email: Email address as typed by the client.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.strip())
        return self.session.execute(stmt).scalars().first()

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.strip())
        return self.session.execute(stmt).first() is not None
