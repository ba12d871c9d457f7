from .dto import (
    AuthResult,
    AuthSessionOut,
    AuthStatus,
    AuthTokenConfig,
    LoginIn,
    RefreshIn,
    RegisterIn,
    RevokeIn,
    UserInfoOut,
)
from .refresh_tokens import IssuedRefreshToken, RefreshTokenManager
from .service import SessionService

__all__ = [
    "AuthResult",
    "AuthSessionOut",
    "AuthStatus",
    "AuthTokenConfig",
    "IssuedRefreshToken",
    "LoginIn",
    "RefreshIn",
    "RefreshTokenManager",
    "RegisterIn",
    "RevokeIn",
    "SessionService",
    "UserInfoOut",
]
