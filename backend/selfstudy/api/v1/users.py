"""User management endpoints."""

from __future__ import annotations

from flask import Blueprint, request

from selfstudy.api.deps import (
    call_service,
    empty_response,
    get_user_service,
    json_body,
    json_response,
    parse_pagination,
    require_auth,
    require_role,
    timing,
)
from selfstudy.models.user import ADMIN_ROLE
from selfstudy.schemas.common import MetaSchema
from selfstudy.schemas.user import (
    UserCreateSchema,
    UserListQuerySchema,
    UserSchema,
    UserUpdateSchema,
)
from selfstudy.services import UserCreateIn, UserUpdateIn

bp = Blueprint("users", __name__)

_user_schema = UserSchema()


@bp.get("")
@require_role(ADMIN_ROLE)
@timing
def list_users():
    """Page through accounts; inactive ones only with ``include_inactive=true``."""
    pagination = parse_pagination()
    query = UserListQuerySchema().load(request.args)
    service = get_user_service()
    result = call_service(
        service, service.list_users, pagination, include_inactive=query["include_inactive"]
    )
    return json_response(
        {
            "data": UserSchema(many=True).dump(result.items),
            "meta": MetaSchema().dump(result.meta),
        }
    )


@bp.post("")
@require_role(ADMIN_ROLE)
@timing
def create_user():
    """Create an account with any role."""
    data = UserCreateSchema().load(json_body())
    service = get_user_service()
    user = call_service(service, service.create_user, UserCreateIn(**data))
    return json_response({"data": _user_schema.dump(user)}, status=201)


@bp.get("/<int:user_id>")
@require_auth
@timing
def get_user(user_id: int):
    service = get_user_service()
    user = call_service(service, service.get_user, user_id)
    return json_response({"data": _user_schema.dump(user)})


@bp.patch("/<int:user_id>")
@require_auth
@timing
def update_user(user_id: int):
    """Partially update a profile; role and status changes need an administrator."""
    data = UserUpdateSchema().load(json_body())
    service = get_user_service()
    user = call_service(service, service.update_user, user_id, UserUpdateIn(**data))
    return json_response({"data": _user_schema.dump(user)})


@bp.delete("/<int:user_id>")
@require_role(ADMIN_ROLE)
@timing
def deactivate_user(user_id: int):
    """Deactivate an account and revoke its refresh tokens."""
    service = get_user_service()
    call_service(service, service.deactivate_user, user_id)
    return empty_response()
