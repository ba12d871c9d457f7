"""Session endpoints: register, login, refresh, revoke and the current account."""

from __future__ import annotations

from flask import Blueprint
from flask_jwt_extended import get_jwt_identity

from selfstudy.api.deps import (
    call_service,
    empty_response,
    get_session_service,
    get_user_service,
    json_body,
    json_response,
    require_auth,
    timing,
    unwrap_session,
)
from selfstudy.schemas.auth import (
    AuthSessionSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
)
from selfstudy.schemas.user import UserSchema
from selfstudy.services import LoginIn, RefreshIn, RegisterIn, RevokeIn

bp = Blueprint("auth", __name__)

_session_schema = AuthSessionSchema()


@bp.post("/register")
@timing
def register():
    """Create an account and return its first token pair (``201``)."""
    data = RegisterSchema().load(json_body())
    service = get_session_service()
    session = unwrap_session(service, service.register(RegisterIn(**data)))
    return json_response({"data": _session_schema.dump(session)}, status=201)


@bp.post("/login")
@timing
def login():
    """Exchange email and password for a token pair."""
    data = LoginSchema().load(json_body())
    service = get_session_service()
    session = unwrap_session(service, service.login(LoginIn(**data)))
    return json_response({"data": _session_schema.dump(session)})


@bp.post("/refresh")
@timing
def refresh():
    """Rotate a refresh token; the presented token stops working."""
    data = RefreshTokenSchema().load(json_body())
    service = get_session_service()
    session = unwrap_session(service, service.refresh(RefreshIn(**data)))
    return json_response({"data": _session_schema.dump(session)})


@bp.post("/revoke")
@bp.post("/logout")
@timing
def revoke():
    """Revoke a refresh token. Always ``204``, whether or not it existed."""
    data = RefreshTokenSchema().load(json_body())
    service = get_session_service()
    unwrap_session(service, service.revoke(RevokeIn(**data)))
    return empty_response()


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the account behind the bearer token."""
    service = get_user_service()
    user = call_service(service, service.get_user, int(get_jwt_identity()))
    return json_response({"data": UserSchema().dump(user)})
