# -*- coding: utf-8 -*-
"""Location: ./ldapbridge/cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

CLI commands for directory maintenance.

Examples:
    $ python -m ldapbridge.cli init-db
    $ python -m ldapbridge.cli check-connection
    $ python -m ldapbridge.cli import-users --json-output
"""

# Standard
import json

# Third-Party
import typer

# First-Party
from ldapbridge.config import LdapBridgeError, settings
from ldapbridge.db import Base, engine, SessionLocal
from ldapbridge.services.attribute_sync import AttributeSynchronizer
from ldapbridge.services.directory_gateway import LdapDirectoryGateway
from ldapbridge.services.import_service import ImportService
from ldapbridge.services.logging_service import LoggingService
from ldapbridge.services.password_service import PasswordHasher
from ldapbridge.services.resolver import IdentityResolver

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

# Initialize CLI app
app = typer.Typer(
    name="ldap-bridge",
    help="Directory import and connectivity commands"
)


@app.command()
def init_db():
    """Create the local users table if it does not exist."""
    Base.metadata.create_all(bind=engine)
    typer.echo("Database ready")


@app.command()
def check_connection():
    """Check that the directory accepts the service account bind."""
    try:
        gateway = LdapDirectoryGateway(settings)
    except LdapBridgeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    connected, error = gateway.check_connection()
    if not connected:
        typer.echo(f"Cannot connect to {settings.ldap_uri}: {error}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Connected to {settings.ldap_uri}")


@app.command()
def import_users(
    query: str = typer.Option(None, "--filter", help="LDAP filter overriding the configured scopes"),
    json_output: bool = typer.Option(False, help="Output in JSON format")
):
    """Import or update every directory user matching the configured scopes."""
    try:
        gateway = LdapDirectoryGateway(settings)
        resolver = IdentityResolver(gateway, settings)
        synchronizer = AttributeSynchronizer(PasswordHasher(), settings)
    except LdapBridgeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    with SessionLocal() as db:
        result = ImportService(db, resolver, synchronizer, settings).import_users(query)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo("Directory Import Summary")
        typer.echo("=" * 40)
        typer.echo(f"Created: {result.created}")
        typer.echo(f"Updated: {result.updated}")
        typer.echo(f"Skipped: {result.skipped}")
        if result.errors:
            typer.echo("\nErrors:")
            for error in result.errors:
                typer.echo(f"  - {error}")

    if result.errors:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
