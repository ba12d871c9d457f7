"""Unit tests for configuration helpers and config-derived settings."""

from __future__ import annotations

from datetime import timedelta

import pytest

from selfstudy.core.config import (
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    check_secrets,
    engine_options_for,
    get_config,
    parse_positive_int,
)
from selfstudy.infra.jwt.jwt_token_provider import JwtSettings
from selfstudy.services.auth.dto import AuthTokenConfig


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("30", 30), (45, 45), (None, 7), ("", 7), ("abc", 7), ("0", 7), ("-3", 7), (True, 7)],
)
def test_parse_positive_int_falls_back_to_default(raw, expected):
    assert parse_positive_int(raw, 7) == expected


def test_engine_options_for_sqlite_only_sets_busy_timeout():
    assert engine_options_for("sqlite:///:memory:", 5) == {"connect_args": {"timeout": 5}}


def test_engine_options_for_postgres_bounds_connect_and_statements():
    options = engine_options_for("postgresql+psycopg://u:p@db/app", 3)
    assert options["pool_timeout"] == 3
    assert options["pool_pre_ping"] is True
    assert options["connect_args"]["connect_timeout"] == 3
    assert "statement_timeout=3000" in options["connect_args"]["options"]


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ("testing", TestingConfig),
        ("production", ProductionConfig),
        ("development", DevelopmentConfig),
        ("unknown", DevelopmentConfig),
    ],
)
def test_get_config_uses_app_env(monkeypatch, env, expected):
    monkeypatch.setenv("APP_ENV", env)
    assert get_config() is expected


def test_jwt_settings_from_mapping_defaults_ttl_on_invalid_value():
    settings = JwtSettings.from_mapping(
        {"JWT_SECRET_KEY": "k" * 32, "ACCESS_TOKEN_MINUTES": "not-a-number"}
    )
    assert settings.access_ttl == timedelta(minutes=15)
    assert settings.algorithm == "HS256"
    assert "k" * 32 not in repr(settings)


def test_auth_token_config_from_mapping():
    cfg = AuthTokenConfig.from_mapping(
        {
            "REFRESH_TOKEN_DAYS": "30",
            "REFRESH_REUSE_REVOKES_CHAIN": "false",
            "REFRESH_TOKEN_PEPPER": "pepper",
            "SELF_REGISTER_ROLES": "Student, Tutor",
        }
    )
    assert cfg.refresh_expires == timedelta(days=30)
    assert cfg.revoke_chain_on_reuse is False
    assert cfg.pepper == "pepper"
    assert cfg.self_register_roles == frozenset({"Student", "Tutor"})
    assert "pepper" not in repr(cfg)


def test_auth_token_config_invalid_days_fall_back_to_seven():
    cfg = AuthTokenConfig.from_mapping({"REFRESH_TOKEN_DAYS": "-1"})
    assert cfg.refresh_expires == timedelta(days=7)
    assert cfg.self_register_roles == frozenset()
    assert cfg.allows_self_registration("Teacher")
    assert not cfg.allows_self_registration("Admin")


def test_only_production_enforces_secrets():
    assert ProductionConfig.ENFORCE_SECRETS is True
    assert not TestingConfig.ENFORCE_SECRETS
    assert not DevelopmentConfig.ENFORCE_SECRETS


@pytest.mark.parametrize(
    "signing_key",
    ["", "CHANGE_ME_JWT_SIGNING_KEY_32_BYTES", "too-short"],
)
def test_check_secrets_rejects_weak_signing_keys(signing_key):
    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY") as exc_info:
        check_secrets({"JWT_SECRET_KEY": signing_key, "SECRET_KEY": "s3cret"})
    if signing_key:
        assert signing_key not in str(exc_info.value)


def test_check_secrets_rejects_default_flask_secret():
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        check_secrets({"JWT_SECRET_KEY": "k" * 32, "SECRET_KEY": "CHANGE_ME"})


def test_check_secrets_accepts_strong_values():
    check_secrets({"JWT_SECRET_KEY": "k" * 32, "SECRET_KEY": "s3cret"})
