from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


class AccountClaims(Protocol):
    """Account attributes written into access-token claims."""

    id: int
    email: str
    full_name: str
    role: str


@dataclass(frozen=True, slots=True)
class IssuedAccessToken:
    """
    A freshly signed access token.

    :ivar token: Compact JWS string handed to the client.
    :ivar expires_at: Absolute expiry (UTC).
    :ivar jti: Unique token id embedded in the claims.
    """

    token: str
    expires_at: datetime
    jti: str


class TokenProvider(Protocol):
    """Port for issuing and decoding stateless access tokens."""

    def issue_access_token(
        self, account: AccountClaims, *, now: datetime | None = None
    ) -> IssuedAccessToken: ...

    def decode(self, token: str) -> dict[str, Any]: ...

    def get_subject(self, token: str) -> int: ...
