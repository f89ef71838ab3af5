"""Command-line interface for gdrive-mcp."""

import asyncio
import sys

import click

from gdrive_mcp.__version__ import __version__
from gdrive_mcp.config import configure_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context) -> None:
    """Google Drive MCP Server - Connect Claude to Google Drive.

    Run without a command to start the MCP server over stdio.
    Run 'gdrive-mcp auth' once first to authorize access.
    """
    configure_logging()
    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


@main.command()
def auth() -> None:
    """Authorize access to Google Drive.

    This will:
    1. Open the browser for the Google consent screen
    2. Wait for the redirect on http://localhost:3333/callback
    3. Save tokens to tokens.json in the credentials directory

    Requires gcp-oauth.keys.json in the credentials directory
    ($GDRIVE_MCP_DIR, default ~/.gdrive-mcp).
    """
    from gdrive_mcp.auth import OAuthManager

    manager = OAuthManager()

    click.echo("=== Google Drive MCP Server - Authentication ===")
    click.echo(f"Credentials directory: {manager.credentials_dir}")
    click.echo("")

    try:
        asyncio.run(manager.authenticate())
    except Exception as e:
        click.echo(f"Authentication failed: {e}", err=True)
        sys.exit(1)

    click.echo("")
    click.echo("Authentication successful!")
    click.echo(f"Token stored at: {manager.token_location}")
    click.echo("You can now start the MCP server.")


@main.command()
def serve() -> None:
    """Start the MCP server (stdio).

    This command is typically invoked by Claude Desktop via the MCP protocol.
    Authentication is required before starting the server.
    """
    from gdrive_mcp.server import DriveMCPServer, get_authenticated_client

    try:
        server = DriveMCPServer(get_authenticated_client())
    except Exception as e:
        click.echo(f"[gdrive-mcp] Failed to start: {e}", err=True)
        sys.exit(1)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)
    except Exception as e:
        click.echo(f"[gdrive-mcp] Server error: {e}", err=True)
        sys.exit(1)


@main.command()
def status() -> None:
    """Show credential files and token status."""
    from gdrive_mcp.auth import OAuthManager, TokenStatus
    from gdrive_mcp.config import get_client_secret_path

    manager = OAuthManager()
    secret_path = get_client_secret_path(manager.credentials_dir)
    token_status = manager.get_status()

    click.echo("Google Drive MCP Status:")
    click.echo(f"  Credentials directory: {manager.credentials_dir}")
    click.echo(f"  Client secret: {secret_path} ({'found' if secret_path.exists() else 'missing'})")
    click.echo(f"  Token file: {manager.token_location}")

    if token_status == TokenStatus.MISSING:
        click.echo("  Not authenticated. Run 'gdrive-mcp auth'.")
        sys.exit(1)
    elif token_status == TokenStatus.INVALID:
        click.echo("  Token file corrupted. Run 'gdrive-mcp auth' to re-authenticate.")
        sys.exit(1)
    elif token_status == TokenStatus.EXPIRED:
        click.echo("  Access token expired (refreshes automatically on use)")
    else:
        click.echo("  Authenticated")


if __name__ == "__main__":
    main()
