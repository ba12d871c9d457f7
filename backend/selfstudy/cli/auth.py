"""Flask CLI commands for account bootstrap and refresh-token housekeeping."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from selfstudy.api.deps import SERVICES_KEY, get_refresh_store
from selfstudy.models.user import ADMIN_ROLE
from selfstudy.services import ServiceContext, UserCreateIn
from selfstudy.services._shared.errors import ServiceError

LOGGER = logging.getLogger(__name__)


@click.group("auth")
def auth_cli() -> None:
    """Account and session maintenance commands."""


@auth_cli.command("create-admin")
@click.option("--email", required=True, help="Login email of the new administrator.")
@click.option("--full-name", required=True, help="Display name.")
@click.password_option(help="Password (prompted when omitted).")
@with_appcontext
def create_admin_command(email: str, full_name: str, password: str) -> None:
    """Create an administrator account (there is no self-service path for it)."""
    users = current_app.extensions[SERVICES_KEY]["users"]
    service = users.with_context(ServiceContext(actor_role=ADMIN_ROLE))
    try:
        user = service.create_user(
            UserCreateIn(email=email, password=password, full_name=full_name, role=ADMIN_ROLE)
        )
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("Administrator created", extra={"event": "admin_created", "user_id": user.id})
    click.echo(f"Created administrator {user.email} (id={user.id})")


@auth_cli.command("prune-tokens")
@click.option(
    "--older-than-days",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Keep records that became inactive within this many days.",
)
@with_appcontext
def prune_tokens_command(older_than_days: int) -> None:
    """Delete refresh-token records that are expired or revoked."""
    before = datetime.now(UTC) - timedelta(days=older_than_days)
    removed = get_refresh_store().prune(before=before)
    LOGGER.info("Pruned refresh tokens", extra={"event": "prune_tokens"})
    click.echo(f"Removed {removed} refresh token record(s)")
