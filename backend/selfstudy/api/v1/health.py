"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from selfstudy.api.deps import json_response, timing
from selfstudy.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Report database and (when configured) Redis reachability."""
    checks = {"db": "ok"}
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("healthcheck.db_error")
        checks["db"] = "fail"
    finally:
        db.session.rollback()

    client = current_app.extensions.get("redis_client")
    if client is not None:
        checks["redis"] = "ok"
        try:
            client.ping()
        except RedisError:
            current_app.logger.exception("healthcheck.redis_error")
            checks["redis"] = "fail"

    healthy = all(v == "ok" for v in checks.values())
    payload = {
        "status": "ok" if healthy else "degraded",
        **checks,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)
