"""Command-line helpers registered on the Flask app."""

from __future__ import annotations

import click
from flask import Flask
from pymongo.errors import DuplicateKeyError, PyMongoError

from .config import ConfigError
from .db import get_users_collection
from .routes.auth import build_user_document


@click.command("create-admin")
@click.option("--username", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_admin_command(username: str, email: str, password: str) -> None:
    """Create an administrator account."""

    if len(password) < 6:
        raise click.ClickException("Password must be at least 6 characters.")

    document = build_user_document(
        username=username.strip(), email=email.strip(), password=password, role="admin"
    )
    try:
        result = get_users_collection().insert_one(document)
    except ConfigError as exc:
        raise click.ClickException(f"Configuration error: {exc}") from exc
    except DuplicateKeyError as exc:
        raise click.ClickException("A user with this email or username already exists.") from exc
    except PyMongoError as exc:  # pragma: no cover - requires Mongo connection
        raise click.ClickException(f"MongoDB error: {exc}") from exc

    click.echo(f"Created admin '{document['username']}' ({result.inserted_id}).")


def register_commands(app: Flask) -> None:
    app.cli.add_command(create_admin_command)


__all__ = ["create_admin_command", "register_commands"]
