"""
selfstudy.services._shared.ports
================================

Ports (hexagonal interfaces) that decouple the session service from the
concrete token signer, password hasher and refresh-token storage.

Concrete adapters live under :mod:`selfstudy.infra` and
:mod:`selfstudy.core.security`.
"""

from __future__ import annotations

from .password_hasher import PasswordHasher
from .refresh_token_store import (
    MAX_CHAIN_LENGTH,
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    RefreshTokenView,
    RotationOutcome,
    RotationResult,
    classify_inactive,
)
from .token_provider import AccountClaims, IssuedAccessToken, TokenProvider

__all__ = [
    "MAX_CHAIN_LENGTH",
    "AccountClaims",
    "InMemoryRefreshTokenStore",
    "IssuedAccessToken",
    "PasswordHasher",
    "RefreshTokenStore",
    "RefreshTokenView",
    "RotationOutcome",
    "RotationResult",
    "TokenProvider",
    "classify_inactive",
]
