"""Service layer public API.

Re-exports
----------
- Base primitives: :class:`BaseService`, :class:`ServiceContext`
- Shared DTOs: :class:`PaginationIn`, :class:`PageMeta`
- Session service (register/login/refresh/revoke) and its DTOs
- User service and its DTOs
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from ._shared.dto import PageMeta, PaginationIn
from .auth import (
    AuthResult,
    AuthSessionOut,
    AuthStatus,
    AuthTokenConfig,
    LoginIn,
    RefreshIn,
    RegisterIn,
    RevokeIn,
    SessionService,
    UserInfoOut,
)
from .users import UserCreateIn, UserListOut, UserOut, UserService, UserUpdateIn

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    "PageMeta",
    "PaginationIn",
    # Sessions
    "SessionService",
    "AuthResult",
    "AuthSessionOut",
    "AuthStatus",
    "AuthTokenConfig",
    "LoginIn",
    "RefreshIn",
    "RegisterIn",
    "RevokeIn",
    "UserInfoOut",
    # Users
    "UserService",
    "UserCreateIn",
    "UserListOut",
    "UserOut",
    "UserUpdateIn",
]
