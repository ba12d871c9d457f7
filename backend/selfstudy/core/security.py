"""Password hashing primitives.

Passwords are hashed with Werkzeug's salted, adaptive ``scrypt`` scheme. The
plaintext never leaves these functions and is never logged.
"""

from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

DEFAULT_METHOD = "scrypt"


def hash_password(raw: str, *, method: str = DEFAULT_METHOD) -> str:
    """Return a salted one-way hash for ``raw``.

    :param raw: Plaintext password. Must be a non-empty string.
    :type raw: str
    :param method: Werkzeug hashing method (``scrypt`` or ``pbkdf2:sha256``).
    :type method: str
    :returns: Encoded hash including algorithm, parameters and salt.
    :rtype: str
    :raises ValueError: If ``raw`` is empty or not a string.
    """
    if not isinstance(raw, str) or not raw:
        raise ValueError("Password must be a non-empty string.")
    return generate_password_hash(raw, method=method)


def verify_password(raw: str, stored_hash: str | None) -> bool:
    """Check ``raw`` against ``stored_hash``; a mismatch is ``False``, never an error."""
    if not stored_hash or not isinstance(raw, str) or not raw:
        return False
    return bool(check_password_hash(stored_hash, raw))


class WerkzeugPasswordHasher:
    """:class:`~selfstudy.services._shared.ports.PasswordHasher` backed by Werkzeug."""

    def __init__(self, method: str = DEFAULT_METHOD) -> None:
        self.method = method

    def hash(self, raw: str) -> str:
        return hash_password(raw, method=self.method)

    def verify(self, raw: str, stored_hash: str | None) -> bool:
        return verify_password(raw, stored_hash)
