"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

DEFAULT_ACCESS_TOKEN_MINUTES: Final[int] = 15
DEFAULT_REFRESH_TOKEN_DAYS: Final[int] = 7
DEFAULT_STORE_TIMEOUT_SECONDS: Final[int] = 5
MIN_SIGNING_KEY_BYTES: Final[int] = 32

# Shipped defaults that must never sign production tokens
PLACEHOLDER_SECRETS: Final[frozenset[str]] = frozenset(
    {"", "CHANGE_ME", "CHANGE_ME_JWT_SIGNING_KEY_32_BYTES"}
)


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_positive_int(value: Any, default: int) -> int:
    """Coerce ``value`` into a strictly positive integer.

    Parameters
    ----------
    value: Any
        Raw value (``str``, ``int`` or ``None``).
    default: int
        Returned when ``value`` is missing, unparseable, or not ``> 0``.

    Returns
    -------
    int
        Parsed integer or ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def env_int(name: str, default: int) -> int:
    """Parse a positive integer from an environment variable (see :func:`parse_positive_int`)."""
    return parse_positive_int(os.getenv(name), default)


def engine_options_for(database_uri: str, timeout_seconds: int) -> dict[str, Any]:
    """Build SQLAlchemy engine options bounding every store call.

    Parameters
    ----------
    database_uri: str
        Connection string used to pick the dialect-specific knobs.
    timeout_seconds: int
        Upper bound for connection checkout, connect and statement execution.

    Returns
    -------
    dict[str, Any]
        Mapping suitable for ``SQLALCHEMY_ENGINE_OPTIONS``.

    Notes
    -----
    SQLite uses a single static pool in tests, so only the driver busy
    timeout is applied there.
    """
    uri = database_uri.lower()
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    options: dict[str, Any] = {"pool_timeout": timeout_seconds, "pool_pre_ping": True}
    if uri.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_seconds * 1000}",
        }
    return options


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing. Defaults to a development-safe
        placeholder and should be overridden in production.
    JWT_SECRET_KEY: str
        Symmetric key used to sign access tokens and verify them at the HTTP
        boundary (``flask-jwt-extended``). Never logged.
    JWT_ALGORITHM: str
        Signature algorithm for access tokens (``HS256`` by default).
    JWT_ISSUER, JWT_AUDIENCE: str | None
        Optional ``iss``/``aud`` claims written at issuance and enforced on decode.
    ACCESS_TOKEN_MINUTES: int
        Access-token lifetime; falls back to 15 when absent or invalid.
    REFRESH_TOKEN_DAYS: int
        Refresh-token lifetime; falls back to 7 when absent or invalid.
    REFRESH_TOKEN_PEPPER: str
        Optional server secret mixed into refresh-token digests (HMAC).
    REFRESH_TOKEN_STORE: str
        ``"sql"`` (default), ``"redis"`` or ``"memory"``.
    REFRESH_REUSE_REVOKES_CHAIN: bool
        Revoke the active descendants of a rotated token when it is replayed.
    SELF_REGISTER_ROLES: str
        Optional comma-separated allow-list for roles picked at registration.
        Empty admits any role except Admin.
    STORE_TIMEOUT_SECONDS: int
        Bound applied to database and Redis calls.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    SQLALCHEMY_TRACK_MODIFICATIONS: bool
        Disabled to avoid extra overhead from the event system.
    SQLALCHEMY_ECHO: bool
        When ``True`` SQLAlchemy logs SQL statements for debugging.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"
    ENFORCE_SECRETS = False

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT_SIGNING_KEY_32_BYTES")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER") or None
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE") or None
    JWT_TOKEN_LOCATION = ["headers"]

    # Token lifetimes
    ACCESS_TOKEN_MINUTES = env_int("ACCESS_TOKEN_MINUTES", DEFAULT_ACCESS_TOKEN_MINUTES)
    REFRESH_TOKEN_DAYS = env_int("REFRESH_TOKEN_DAYS", DEFAULT_REFRESH_TOKEN_DAYS)
    REFRESH_TOKEN_PEPPER = os.getenv("REFRESH_TOKEN_PEPPER", "")
    REFRESH_TOKEN_STORE = os.getenv("REFRESH_TOKEN_STORE", "sql").strip().lower()
    REFRESH_REUSE_REVOKES_CHAIN = env_bool("REFRESH_REUSE_REVOKES_CHAIN", True)
    SELF_REGISTER_ROLES = os.getenv("SELF_REGISTER_ROLES", "")

    # DB / Redis
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    REDIS_URL = os.getenv("REDIS_URL") or None
    STORE_TIMEOUT_SECONDS = env_int("STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Always uses the relational refresh-token store.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    JWT_SECRET_KEY = "testing-signing-key-with-enough-entropy-0123456789"
    REFRESH_TOKEN_STORE = "sql"
    REDIS_URL = None
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    ENFORCE_SECRETS = True


def check_secrets(config: Mapping[str, Any]) -> None:
    """Refuse placeholder or short signing secrets.

    :raises RuntimeError: Naming the offending setting, never its value.
    """
    signing_key = config.get("JWT_SECRET_KEY") or ""
    if signing_key in PLACEHOLDER_SECRETS or len(signing_key.encode()) < MIN_SIGNING_KEY_BYTES:
        raise RuntimeError(
            f"JWT_SECRET_KEY must be a non-default key of at least {MIN_SIGNING_KEY_BYTES} bytes."
        )
    if (config.get("SECRET_KEY") or "") in PLACEHOLDER_SECRETS:
        raise RuntimeError("SECRET_KEY must be set to a non-default value.")


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
