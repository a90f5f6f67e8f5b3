"""
UniFi API Client - CLI Interface

This module provides a command-line interface for managing UniFi controller
credential profiles and checking that they can log in.
"""

import sys

import typer

from .delete import delete_command
from .list import list_command
from .setup import setup_command
from .test import test_command

# Create main CLI app
app = typer.Typer(
    name="unifi-api",
    help="UniFi API Client - Controller credential management",
    add_completion=False
)

# Register commands
app.command(name="setup", help="Configure UniFi controller credentials")(setup_command)
app.command(name="list-profiles", help="List all configured profiles")(list_command)
app.command(name="test-connection", help="Test login to a UniFi controller")(test_command)
app.command(name="delete-profile", help="Delete a credential profile")(delete_command)


def main():
    """CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\n\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
