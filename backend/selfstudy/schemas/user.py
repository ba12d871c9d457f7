"""User resource schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class UserCreateSchema(Schema):
    """Payload for creating a user from the admin surface."""

    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True, validate=validate.Length(min=3, max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    full_name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    role = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=32))
    target_band = fields.Float(load_default=None, allow_none=True)


class UserUpdateSchema(Schema):
    """Partial update payload; omitted keys are left unchanged."""

    class Meta:
        unknown = EXCLUDE

    full_name = fields.String(validate=validate.Length(min=1, max=100))
    role = fields.String(validate=validate.Length(min=1, max=32))
    target_band = fields.Float(allow_none=True)
    is_active = fields.Boolean()


class UserListQuerySchema(Schema):
    """Extra filters for listing users."""

    class Meta:
        unknown = EXCLUDE

    include_inactive = fields.Boolean(load_default=False)


class UserSchema(Schema):
    """Public representation of a user entity."""

    id = fields.Integer(required=True)
    email = fields.String(required=True)
    full_name = fields.String(required=True)
    role = fields.String(required=True)
    target_band = fields.Float(allow_none=True)
    is_active = fields.Boolean(required=True)
    created_at = fields.DateTime(allow_none=True)
