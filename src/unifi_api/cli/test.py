"""
UniFi API Client - Test Connection Command

Log in to a UniFi controller with a stored profile.
"""

import asyncio
from typing import Any, Dict

import typer

from ..core.client import UniFiClient
from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError, UniFiError
from ..core.messages import Request
from ..core.models import ClientConfig
from ..shared.constants import SELF_PATH
from ..shared.error_handlers import ErrorResponse


def test_command(
    profile: str = typer.Option("default", "--profile", "-p", help="Profile name to test")
):
    """
    Test login to a UniFi controller.

    Examples:
        # Test default profile
        unifi-api test-connection

        # Test specific profile
        unifi-api test-connection --profile lab
    """
    typer.echo("\n🔍 Testing UniFi Connection\n")
    typer.echo(f"Profile: {typer.style(profile, fg=typer.colors.CYAN, bold=True)}\n")

    try:
        typer.echo("📡 Loading credentials...")
        config = ConfigLoader.load(profile)
    except ConfigurationError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        typer.echo("\n💡 Run 'unifi-api setup' to configure credentials")
        raise typer.Exit(1)

    # Connection details only, never credentials
    typer.echo(f"Controller: {config.base_url} (site: {config.site})")
    typer.echo(f"SSL Verification: {'Enabled' if config.verify_ssl else 'Disabled'}\n")

    typer.echo("🔌 Logging in...")
    result = asyncio.run(check_connection(config))

    if not result["success"]:
        typer.echo(f"\n❌ {typer.style('Connection failed', fg=typer.colors.RED, bold=True)}")
        typer.echo(f"\nError: {result['error']}")
        typer.echo("\n💡 Troubleshooting tips:")
        typer.echo("   • Verify the host and port are correct and reachable")
        typer.echo("   • Use a local admin account, not a cloud (SSO) account")
        typer.echo("   • Try with --no-verify-ssl if the console uses a self-signed certificate")
        raise typer.Exit(1)

    typer.echo(f"\n✅ {typer.style('Connection successful!', fg=typer.colors.GREEN, bold=True)}")
    account = result.get("account") or {}
    if account:
        typer.echo("\n📊 Account Information:")
        for key, label in (("username", "Username"), ("email", "Email"), ("isOwner", "Owner")):
            if key in account:
                typer.echo(f"   {label}: {account[key]}")
    typer.echo("\n✓ Your UniFi profile is properly configured")


async def check_connection(config: ClientConfig) -> Dict[str, Any]:
    """
    Log in, read the current account and log out again.

    Returns:
        ``{"success": True, "account": {...}}`` or ``{"success": False, "error": "..."}``
    """
    client = UniFiClient(config)
    try:
        await client.connect()
        response = await client.execute(Request("GET", SELF_PATH))
        account = response.json()
        return {"success": True, "account": account if isinstance(account, dict) else {}}
    except UniFiError as e:
        return {"success": False, "error": ErrorResponse(e, "test_connection").log()}
    finally:
        await client.disconnect()
