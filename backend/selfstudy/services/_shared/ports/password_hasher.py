from __future__ import annotations

from typing import Protocol


class PasswordHasher(Protocol):
    """
    One-way, salted, adaptive password hashing.

    ``verify`` returns ``False`` on mismatch; it never raises for a wrong
    password.
    """

    def hash(self, raw: str) -> str: ...

    def verify(self, raw: str, stored_hash: str | None) -> bool: ...
