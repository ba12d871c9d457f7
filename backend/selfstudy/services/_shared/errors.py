"""
Domain-level exceptions used within the service layer.

These exceptions are framework-agnostic. Their translation to HTTP problem
responses happens in :meth:`BaseService.translate_exceptions`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str, *, columns: Iterable[str] = ()) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        Database constraint name (e.g. ``'uq_users_email'``). PostgreSQL
        includes it in the driver message.
    columns : Iterable[str]
        ``table.column`` hints for dialects that only report the column, such
        as SQLite (``UNIQUE constraint failed: users.email``).

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    if constraint_name.lower() in message:
        return True
    return any(col.lower() in message for col in columns)


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Not HTTP errors; the API layer translates them.
    """


class InvalidInputError(ServiceError):
    """A required field is missing, empty or malformed."""

    def __init__(self, message: str = "Invalid input") -> None:
        super().__init__(message)


class UnauthorizedError(ServiceError):
    """Authentication failed. Messages never reveal which check failed."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class ForbiddenError(ServiceError):
    """The authenticated actor may not perform this operation."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"
