"""Authentication-related Marshmallow schemas.

Input schemas only enforce types; empty or missing credentials reach the
session service, which answers with ``invalid_input``.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class _Lenient(Schema):
    class Meta:
        unknown = EXCLUDE


class RegisterSchema(_Lenient):
    """Input payload for self-registration."""

    email = fields.String(load_default="", validate=validate.Length(max=254))
    password = fields.String(load_default="", validate=validate.Length(max=128))
    full_name = fields.String(load_default="", validate=validate.Length(max=100))
    role = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=32))
    target_band = fields.Float(load_default=None, allow_none=True)


class LoginSchema(_Lenient):
    """Input payload for authenticating a user."""

    email = fields.String(load_default="")
    password = fields.String(load_default="")


class RefreshTokenSchema(_Lenient):
    """Input payload carrying an opaque refresh token (refresh and revoke)."""

    refresh_token = fields.String(load_default="")


class UserInfoSchema(Schema):
    """Account summary embedded in session responses."""

    id = fields.Integer(required=True)
    email = fields.String(required=True)
    full_name = fields.String(required=True)
    role = fields.String(required=True)
    target_band = fields.Float(allow_none=True)


class AuthSessionSchema(Schema):
    """Token pair with expiries and the account summary."""

    access_token = fields.String(required=True)
    access_token_expires_at = fields.AwareDateTime(required=True)
    refresh_token = fields.String(required=True)
    refresh_token_expires_at = fields.AwareDateTime(required=True)
    token_type = fields.Constant("Bearer")
    user = fields.Nested(UserInfoSchema, required=True)
