"""Shared API helpers: request parsing, auth decorators and service wiring."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Flask, Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from selfstudy.core.errors import Forbidden
from selfstudy.core.logger import ensure_request_id
from selfstudy.core.security import WerkzeugPasswordHasher
from selfstudy.infra.jwt.jwt_token_provider import JwtSettings, JwtTokenProvider
from selfstudy.infra.sql.sqlalchemy_refresh_token_store import SQLAlchemyRefreshTokenStore
from selfstudy.schemas.common import PaginationQuerySchema
from selfstudy.services import (
    AuthResult,
    AuthSessionOut,
    AuthTokenConfig,
    BaseService,
    PaginationIn,
    ServiceContext,
    SessionService,
    UserService,
)
from selfstudy.services._shared.errors import ServiceError
from selfstudy.services._shared.ports import InMemoryRefreshTokenStore, RefreshTokenStore

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

SERVICES_KEY = "selfstudy.services"


# --------------------------------------------------------------------------- #
# Composition root
# --------------------------------------------------------------------------- #


def build_refresh_store(app: Flask) -> RefreshTokenStore:
    """Select the refresh-token backend named by ``REFRESH_TOKEN_STORE``.

    :raises ValueError: For an unknown backend name.
    """
    kind = str(app.config.get("REFRESH_TOKEN_STORE") or "sql").strip().lower()
    if kind == "sql":
        return SQLAlchemyRefreshTokenStore()
    if kind == "redis":
        from selfstudy.core.extensions import get_redis
        from selfstudy.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        return RedisRefreshTokenStore(get_redis())
    if kind == "memory":
        return InMemoryRefreshTokenStore()
    raise ValueError(f"Unknown REFRESH_TOKEN_STORE {kind!r}")


def init_services(app: Flask) -> None:
    """Build the process-wide services and stash them in ``app.extensions``.

    Fails fast (``ValueError``) when the signing key is missing or the
    refresh store is misconfigured.
    """
    tokens = JwtTokenProvider(JwtSettings.from_mapping(app.config))
    store = build_refresh_store(app)
    hasher = WerkzeugPasswordHasher()
    app.extensions[SERVICES_KEY] = {
        "sessions": SessionService(
            token_provider=tokens,
            refresh_store=store,
            password_hasher=hasher,
            token_cfg=AuthTokenConfig.from_mapping(app.config),
        ),
        "users": UserService(password_hasher=hasher, refresh_store=store),
        "refresh_store": store,
    }


def _services() -> dict[str, Any]:
    return current_app.extensions[SERVICES_KEY]


def get_session_service() -> SessionService:
    return _services()["sessions"]


def get_user_service() -> UserService:
    """Return the user service bound to the current request's actor."""
    return _services()["users"].with_context(current_context())


def get_refresh_store() -> RefreshTokenStore:
    return _services()["refresh_store"]


def current_context() -> ServiceContext:
    """Build a :class:`ServiceContext` from the verified bearer token, if any."""
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    claims = get_jwt() or {}
    return ServiceContext(
        actor_id=int(identity) if identity is not None else None,
        actor_role=claims.get("role"),
        request_id=ensure_request_id(),
    )


def call_service(service: BaseService, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Invoke a service method, translating service errors into API errors."""
    try:
        return fn(*args, **kwargs)
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc


def unwrap_session(service: SessionService, result: AuthResult) -> AuthSessionOut | None:
    """Return the session of ``result`` or raise the matching API error."""
    return call_service(service, result.unwrap)


# --------------------------------------------------------------------------- #
# Request helpers
# --------------------------------------------------------------------------- #


def parse_pagination(default_limit: int = 20, max_limit: int = 100) -> PaginationIn:
    """Parse pagination parameters from ``request.args`` using Marshmallow."""
    schema = PaginationQuerySchema(default_limit=default_limit, max_limit=max_limit)
    data = schema.load(request.args)
    return PaginationIn(page=data["page"], limit=data["limit"], sort=data["sort"])


def json_body() -> dict[str, Any]:
    """Return the JSON object body, or an empty dict for missing/non-object bodies."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_role(*roles: str) -> Callable[[F], F]:
    """Ensure the verified access token carries one of ``roles``."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            verify_jwt_in_request(optional=False)
            claims = get_jwt() or {}
            if claims.get("role") not in roles:
                raise Forbidden("Insufficient role")
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""
    response = jsonify(payload)
    response.status_code = status
    return response


def empty_response(status: int = 204) -> Response:
    return Response(status=status)


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request.endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
