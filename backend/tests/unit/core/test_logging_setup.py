"""Unit tests for structured logging and request correlation."""

from __future__ import annotations

import json
import logging

from selfstudy.core.logger import JSONFormatter, configure_logging


def test_configure_logging_sets_level():
    configure_logging("DEBUG")
    try:
        assert logging.getLogger().level == logging.DEBUG
    finally:
        configure_logging("WARNING")


def test_json_formatter_copies_whitelisted_extras():
    record = logging.LogRecord(
        name="selfstudy.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Login succeeded",
        args=(),
        exc_info=None,
    )
    record.event = "login"
    record.user_id = 7
    record.password = "never-serialized"
    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "Login succeeded"
    assert payload["level"] == "INFO"
    assert payload["event"] == "login"
    assert payload["user_id"] == 7
    assert "password" not in payload


def test_request_id_header_is_echoed(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated_per_request(client):
    first = client.get("/api/v1/health").headers["X-Request-ID"]
    second = client.get("/api/v1/health").headers["X-Request-ID"]
    assert first and second and first != second
