"""
UniFi API Client - Setup Command

Interactive setup for configuring UniFi controller credentials.
"""

import asyncio
import getpass
from typing import Optional

import typer

from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError
from ..core.models import ClientConfig
from .test import check_connection


def setup_command(
    profile: str = typer.Option(
        "default", "--profile", "-p", help="Profile name (default, lab, home, etc.)"
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Controller IP address or hostname"),
    port: int = typer.Option(443, "--port", help="Controller HTTPS port"),
    username: Optional[str] = typer.Option(None, "--username", help="Local admin username"),
    password: Optional[str] = typer.Option(None, "--password", help="Local admin password"),
    site: str = typer.Option("default", "--site", help="Site name"),
    verify_ssl: bool = typer.Option(
        True, "--verify-ssl/--no-verify-ssl", help="Verify SSL certificates"
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--non-interactive", help="Interactive mode with prompts"
    ),
    skip_test: bool = typer.Option(False, "--skip-test", help="Save without testing the login"),
):
    """
    Configure UniFi controller credentials.

    Examples:
        # Interactive setup
        unifi-api setup

        # Non-interactive setup
        unifi-api setup --host 192.168.1.1 --username admin --password SECRET --non-interactive

        # Setup a second controller
        unifi-api setup --profile lab
    """
    typer.echo("\n🔧 UniFi API Client - Credential Setup\n")
    typer.echo(f"Profile: {typer.style(profile, fg=typer.colors.CYAN, bold=True)}\n")

    if interactive:
        if not host:
            host = typer.prompt("Controller host (e.g., 192.168.1.1)")

        if not username:
            username = typer.prompt("Username")

        if not password:
            password = getpass.getpass("Password (hidden): ")

        if not typer.confirm("Verify SSL certificates?", default=True):
            verify_ssl = False

    elif not all([host, username, password]):
        typer.echo(
            "❌ Error: In non-interactive mode, --host, --username and --password are required",
            err=True,
        )
        raise typer.Exit(1)

    try:
        config = ClientConfig.validated(
            host=host, port=port, username=username, password=password,
            site=site, verify_ssl=verify_ssl,
        )
    except ConfigurationError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)

    if not skip_test:
        typer.echo("\n🔍 Testing login...")
        result = asyncio.run(check_connection(config))
        if result["success"]:
            typer.echo("✅ Login successful!")
        else:
            typer.echo(f"⚠️  Login failed: {result['error']}", err=True)
            if not typer.confirm("Save anyway?", default=False):
                typer.echo("Setup cancelled")
                raise typer.Exit(0)

    try:
        ConfigLoader.save_profile(profile, config)
    except (ConfigurationError, OSError) as e:
        typer.echo(f"\n❌ Error saving profile: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"\n✅ Profile '{profile}' saved successfully!")
    typer.echo(f"\n📍 Config location: {ConfigLoader.DEFAULT_CONFIG_FILE}")
    typer.echo("🔒 File permissions: 0600 (owner read/write only)")
    typer.echo("\n📖 Usage:")
    typer.echo(f"   • Test login: unifi-api test-connection --profile {profile}")
    typer.echo("   • List profiles: unifi-api list-profiles")
