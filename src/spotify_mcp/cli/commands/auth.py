"""Authentication CLI commands."""

import asyncio
import time
from datetime import datetime
from typing import Annotated

import typer
from rich.console import Console

from spotify_mcp.auth.exceptions import SpotifyAuthError
from spotify_mcp.auth.manager import CredentialManager
from spotify_mcp.cli.errors import format_error
from spotify_mcp.cli.progress import oauth_progress, print_error, print_success, print_warning
from spotify_mcp.config import get_settings

console = Console()


def _format_time_remaining(minutes: int) -> str:
    """Format remaining time in a human-readable way."""
    if minutes < 1:
        return "less than a minute"
    elif minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    else:
        hours = minutes // 60
        mins = minutes % 60
        parts = [f"{hours} hour{'s' if hours != 1 else ''}"]
        if mins > 0:
            parts.append(f"{mins} min")
        return " ".join(parts)


def _get_manager() -> CredentialManager:
    """Build the credential manager, exiting if the app is not configured."""
    try:
        return CredentialManager.from_settings(get_settings())
    except ValueError as e:
        format_error(e, console)
        raise typer.Exit(1)


def status():
    """Show current authentication status."""
    manager = _get_manager()

    try:
        record = manager.get_credentials()
    except SpotifyAuthError as e:
        format_error(e, console, cache_dir=str(get_settings().cache_dir))
        raise typer.Exit(1)

    if record is None:
        console.print("[red]Not logged in[/red]")
        console.print("\nLog in with: [cyan]spotify-mcp login[/cyan]")
        raise typer.Exit(1)

    now = time.time()
    expires = datetime.fromtimestamp(record.expires_at / 1000)

    if record.is_expired(now):
        if record.has_refresh_token():
            console.print("[yellow]Access token expired[/yellow] (renewed on next use)")
        else:
            console.print("[red]Session expired[/red]")
            console.print("\nLog in again with: [cyan]spotify-mcp login[/cyan]")
            raise typer.Exit(1)
    else:
        console.print("[green]Logged in[/green]")
        minutes_left = int(record.seconds_until_expiry(now) / 60)
        console.print(
            f"Access token valid for: [green]{_format_time_remaining(minutes_left)}[/green] "
            f"[dim]({expires.strftime('%H:%M')})[/dim]"
        )

    if record.has_refresh_token():
        console.print("[dim]Refresh token: available (automatic renewal)[/dim]")
    else:
        console.print("[dim]Refresh token: not available[/dim]")

    if record.scope:
        console.print(f"[dim]Scopes: {record.scope}[/dim]")


async def _login(manager: CredentialManager, open_browser: bool):
    async with manager:
        url = await manager.begin_authorization()
        console.print("Open this URL to authorize Spotify access:\n")
        console.print(f"[cyan]{url}[/cyan]\n")
        if open_browser:
            typer.launch(url)
        with oauth_progress():
            return await manager.listener.wait()


def do_login(
    open_browser: Annotated[
        bool,
        typer.Option("--browser/--no-browser", help="Open the authorization URL in a browser"),
    ] = True,
):
    """
    Authenticate with Spotify.

    Prints the authorization URL and waits for Spotify to redirect back to
    the local callback listener.
    """
    manager = _get_manager()

    try:
        outcome = asyncio.run(_login(manager, open_browser))
    except RuntimeError as e:
        print_error(f"Login failed: {e}")
        raise typer.Exit(1)
    except SpotifyAuthError as e:
        format_error(e, console, cache_dir=str(get_settings().cache_dir))
        raise typer.Exit(1)

    if not outcome.success:
        print_error(f"Login failed: {outcome.message}")
        raise typer.Exit(1)

    print_success("Logged in to Spotify!")
    record = manager.get_credentials()
    if record and not record.has_refresh_token():
        print_warning("Spotify did not return a refresh token; you will need to log in again in an hour.")


def do_logout():
    """Remove stored authentication tokens."""
    manager = _get_manager()

    try:
        was_authenticated = manager.is_authenticated()
        manager.clear_auth()
    except SpotifyAuthError as e:
        format_error(e, console, cache_dir=str(get_settings().cache_dir))
        raise typer.Exit(1)

    if was_authenticated:
        print_success("Logged out.")
    else:
        print_warning("No stored tokens found.")


def do_refresh():
    """
    Refresh the access token using the stored refresh token.

    This renews your session without opening a browser.
    """
    manager = _get_manager()

    try:
        with console.status("[bold blue]Refreshing token...", spinner="dots"):
            asyncio.run(manager.force_refresh())
    except SpotifyAuthError as e:
        format_error(e, console, cache_dir=str(get_settings().cache_dir))
        raise typer.Exit(1)

    print_success("Token refreshed!")
    record = manager.get_credentials()
    if record:
        minutes_left = int(record.seconds_until_expiry(time.time()) / 60)
        console.print(f"  Valid for: [green]{_format_time_remaining(minutes_left)}[/green]")
