"""
Problem-details (RFC 7807) rendering for every error the API can raise.

Handlers are registered per exception family. Each one picks a status, a
stable snake_case ``code`` and a client-safe ``detail``; internals such as
SQL messages, token claims or store hostnames never reach the body.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from selfstudy.core.extensions import jwt
from selfstudy.core.logger import ensure_request_id

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"


def status_code_name(status: int) -> str:
    """``404 -> "not_found"``; unknown statuses map to ``"error"``."""
    try:
        return HTTPStatus(status).name.lower()
    except ValueError:
        return "error"


def problem_response(
    status: int, code: str, detail: str, *, details: dict[str, Any] | None = None
) -> tuple[Response, int]:
    """Build a ``application/problem+json`` response carrying the request id."""
    try:
        title = HTTPStatus(status).phrase
    except ValueError:
        title = "Error"
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.path,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    resp = jsonify(body)
    resp.mimetype = PROBLEM_MIMETYPE
    return resp, status


class APIError(Exception):
    """
    Base class for errors raised on purpose by endpoint code.

    Subclasses pin ``status_code``, ``code`` and a default message as class
    attributes; instances may override the message and attach ``details``.
    """

    status_code: int = HTTPStatus.BAD_REQUEST
    code: str = "bad_request"
    default_message: str = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = int(status_code)
        if code is not None:
            self.code = code
        self.details = details or {}


class BadRequest(APIError):
    code = "invalid_input"
    default_message = "Invalid input"


class Unauthorized(APIError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(APIError):
    status_code = HTTPStatus.FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(APIError):
    status_code = HTTPStatus.NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class Conflict(APIError):
    status_code = HTTPStatus.CONFLICT
    code = "conflict"
    default_message = "Conflict"


def _bearer_rejected(reason: str) -> tuple[Response, int]:
    log.warning("Bearer token rejected: %s", reason, extra={"status": 401})
    return problem_response(HTTPStatus.UNAUTHORIZED, "unauthorized", reason)


def _register_jwt_callbacks() -> None:
    # Only a short fixed reason is returned; signature and claim errors stay server-side
    jwt.unauthorized_loader(lambda _reason: _bearer_rejected("Missing bearer token"))
    jwt.invalid_token_loader(lambda _reason: _bearer_rejected("Invalid bearer token"))
    jwt.expired_token_loader(lambda _header, _payload: _bearer_rejected("Bearer token has expired"))


def init_app(app: Flask) -> None:
    """
    Attach the problem-details handlers to ``app``.

    ================================  ======  ===========================
    Exception                         Status  ``code``
    ================================  ======  ===========================
    :class:`APIError` subclasses      own     own
    Werkzeug ``HTTPException``        own     derived from the status
    marshmallow ``ValidationError``   422     ``validation_error``
    ``IntegrityError``                409     ``conflict``
    ``OperationalError``/Redis error  503     ``service_unavailable``
    anything else                     500     ``internal_server_error``
    ================================  ======  ===========================

    5xx responses are logged with a traceback, 4xx as one-line warnings.
    """
    _register_jwt_callbacks()

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        status = int(err.status_code)
        (log.error if status >= 500 else log.warning)(
            "API error %s: %s", err.code, err.message, extra={"status": status}
        )
        return problem_response(status, err.code, err.message, details=err.details)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = status_code_name(status)
        if status == HTTPStatus.NOT_FOUND:
            detail = f"Route '{request.path}' not found"
        else:
            detail = (err.description or HTTPStatus(status).phrase).strip()
        (log.error if status >= 500 else log.warning)(
            "HTTP %s on %s", status, request.path, extra={"status": status}
        )
        return problem_response(status, code, detail)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        log.warning("Request body failed validation", extra={"status": 422})
        return problem_response(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            details={"errors": err.messages},
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Driver messages can echo column values
        log.error("Unhandled integrity violation", exc_info=True, extra={"status": 409})
        return problem_response(HTTPStatus.CONFLICT, "conflict", "Resource conflict")

    @app.errorhandler(OperationalError)
    @app.errorhandler(RedisError)
    def handle_store_unavailable(err: Exception):
        log.error(
            "Backing store unavailable: %s",
            type(err).__name__,
            exc_info=True,
            extra={"status": 503},
        )
        return problem_response(
            HTTPStatus.SERVICE_UNAVAILABLE,
            "service_unavailable",
            "Service temporarily unavailable",
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        log.error("Unhandled exception", exc_info=True, extra={"status": 500})
        return problem_response(
            HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error"
        )
