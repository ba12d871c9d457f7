"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

from selfstudy.core.config import DEFAULT_STORE_TIMEOUT_SECONDS

# Constraint names are referenced by the migrations and by IntegrityError matching
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
redis_client: redis.Redis | None = None


def _configure_jwt_boundary(app: Flask) -> None:
    """Mirror the issuer settings into ``flask-jwt-extended`` decode options.

    Bearer tokens are minted by the service layer; the HTTP boundary only
    verifies signature, expiry, issuer and audience.
    """
    app.config.setdefault("JWT_IDENTITY_CLAIM", "sub")
    if app.config.get("JWT_ISSUER"):
        app.config.setdefault("JWT_DECODE_ISSUER", app.config["JWT_ISSUER"])
    if app.config.get("JWT_AUDIENCE"):
        app.config.setdefault("JWT_DECODE_AUDIENCE", app.config["JWT_AUDIENCE"])
    app.config.setdefault("JWT_DECODE_ALGORITHMS", [app.config.get("JWT_ALGORITHM", "HS256")])


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT verification and Redis.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`selfstudy.models` package to ensure SQLAlchemy metadata is ready
        for migrations.

    Raises
    ------
    RuntimeError
        When ``REDIS_URL`` is configured but the server cannot be reached.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from selfstudy import models as _models  # noqa: F401

    migrate.init_app(app, db)
    _configure_jwt_boundary(app)
    jwt.init_app(app)

    _init_redis(app)


def _init_redis(app: Flask) -> None:
    """Connect the optional Redis client and fail fast when it is unreachable.

    The connection URL may embed credentials, so it is never echoed.
    """
    global redis_client
    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        redis_client = None
        app.extensions.pop("redis_client", None)
        return

    timeout = app.config.get("STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS)
    client = redis.Redis.from_url(redis_url, socket_timeout=timeout, socket_connect_timeout=timeout)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError("Failed to connect to Redis at REDIS_URL") from exc
    redis_client = app.extensions["redis_client"] = client


def get_redis() -> redis.Redis:
    """Return the initialized Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Call init_app() first.")
    return redis_client
