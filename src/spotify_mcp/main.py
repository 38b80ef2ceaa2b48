"""Main CLI entry point for Spotify MCP."""

from typing import Annotated

import typer

from spotify_mcp import __version__
from spotify_mcp.cli.commands import auth
from spotify_mcp.utils.log import configure_logging

app = typer.Typer(
    name="spotify-mcp",
    help="Spotify MCP server and account login",
    no_args_is_help=True,
)

app.command("login")(auth.do_login)
app.command("logout")(auth.do_logout)
app.command("status")(auth.status)
app.command("refresh")(auth.do_refresh)


@app.command("serve")
def serve():
    """Run the MCP server on stdio."""
    from spotify_mcp.mcp.server import main as run_server

    run_server()


def version_callback(value: bool):
    if value:
        typer.echo(f"spotify-mcp {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
):
    """Spotify MCP - Spotify Web API tools for AI assistants."""
    configure_logging("DEBUG" if verbose else "WARNING")


if __name__ == "__main__":
    app()
