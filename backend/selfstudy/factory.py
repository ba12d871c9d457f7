"""Application factory wiring Flask extensions, services and blueprints."""

from __future__ import annotations

from flask import Flask

from selfstudy.core.config import (
    DEFAULT_STORE_TIMEOUT_SECONDS,
    BaseConfig,
    check_secrets,
    engine_options_for,
    get_config,
)
from selfstudy.core.logger import configure_logging
from selfstudy.core.logger import init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config object, class or import path; ``APP_ENV`` decides when omitted.
    :raises RuntimeError: When production runs with placeholder secrets.
    :raises ValueError: When the JWT signing key is missing or the refresh
        store backend is unknown.
    """
    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)
    if app.config.get("ENFORCE_SECRETS"):
        check_secrets(app.config)

    # Every store call is bounded; explicit engine options win
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options_for(
            app.config["SQLALCHEMY_DATABASE_URI"],
            app.config.get("STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS),
        ),
    )

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from selfstudy.core import proxy

    proxy.init_app(app)

    from selfstudy.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from selfstudy.core import cors

    cors.init_app(app)

    from selfstudy.api import init_app as init_api

    init_api(app)

    from selfstudy.core import errors

    errors.init_app(app)

    from selfstudy.api.deps import init_services

    init_services(app)

    from selfstudy import cli as app_cli

    app_cli.init_app(app)

    return app
