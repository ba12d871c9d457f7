"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    AuthSessionSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    UserInfoSchema,
)
from .common import MetaSchema, PaginationQuerySchema
from .user import UserCreateSchema, UserListQuerySchema, UserSchema, UserUpdateSchema

__all__ = [
    "AuthSessionSchema",
    "LoginSchema",
    "RefreshTokenSchema",
    "RegisterSchema",
    "UserInfoSchema",
    "MetaSchema",
    "PaginationQuerySchema",
    "UserCreateSchema",
    "UserListQuerySchema",
    "UserSchema",
    "UserUpdateSchema",
]
