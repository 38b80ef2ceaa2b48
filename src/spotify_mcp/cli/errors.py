"""User-friendly error messages with actionable suggestions."""

from dataclasses import dataclass

from rich.console import Console
from rich.panel import Panel

from spotify_mcp.api.exceptions import RateLimitError, SpotifyAPIError, TokenExpiredError
from spotify_mcp.auth.exceptions import AuthErrorKind, SpotifyAuthError


@dataclass
class ErrorInfo:
    """Structured error information for display."""

    title: str
    message: str
    suggestion: str
    command: str | None = None


ERROR_MESSAGES = {
    "auth_required": ErrorInfo(
        title="Not logged in",
        message="No Spotify credentials are stored.",
        suggestion="Log in with your Spotify account",
        command="spotify-mcp login",
    ),
    "auth_expired": ErrorInfo(
        title="Session expired",
        message="Your Spotify session has expired and cannot be renewed automatically.",
        suggestion="Log in again",
        command="spotify-mcp login",
    ),
    "auth_failed": ErrorInfo(
        title="Authorization failed",
        message="Spotify did not accept the authorization.",
        suggestion="Start a new login; authorization codes can only be used once.",
        command="spotify-mcp login",
    ),
    "storage": ErrorInfo(
        title="Credential storage error",
        message="Stored credentials could not be read or written.",
        suggestion="Check the permissions of {cache_dir}, or log out and in again.",
        command="spotify-mcp logout && spotify-mcp login",
    ),
    "rate_limit": ErrorInfo(
        title="Too many requests",
        message="Spotify is rate limiting this application.",
        suggestion="Wait {retry_after} seconds and try again.",
        command=None,
    ),
    "server_error": ErrorInfo(
        title="Spotify server error",
        message="The Spotify server reported an error.",
        suggestion="This is probably temporary. Try again later.",
        command=None,
    ),
    "network_error": ErrorInfo(
        title="Network error",
        message="Could not reach Spotify.",
        suggestion="Check your internet connection and try again.",
        command=None,
    ),
    "config": ErrorInfo(
        title="Configuration missing",
        message="The Spotify client ID and secret are not configured.",
        suggestion="Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET in the environment or .env",
        command=None,
    ),
    "unknown": ErrorInfo(
        title="Unexpected error",
        message="An unexpected error occurred.",
        suggestion="If this keeps happening, log out and log in again.",
        command="spotify-mcp logout && spotify-mcp login",
    ),
}

AUTH_ERROR_TYPES = {
    AuthErrorKind.NOT_AUTHENTICATED: "auth_required",
    AuthErrorKind.REAUTHORIZATION_REQUIRED: "auth_expired",
    AuthErrorKind.TOKEN_REFRESH_FAILED: "auth_expired",
    AuthErrorKind.INVALID_STATE: "auth_failed",
    AuthErrorKind.TOKEN_EXCHANGE_FAILED: "auth_failed",
    AuthErrorKind.STORAGE_FAILURE: "storage",
}


def get_error_type(error: Exception) -> str:
    """Determine error type from exception."""
    if isinstance(error, SpotifyAuthError):
        return AUTH_ERROR_TYPES[error.kind]
    if isinstance(error, TokenExpiredError):
        return "auth_expired"
    if isinstance(error, RateLimitError):
        return "rate_limit"
    if isinstance(error, SpotifyAPIError):
        status = error.status_code
        if status and status >= 500:
            return "server_error"
        return "unknown"

    error_str = str(error).lower()
    if "client_id" in error_str or "client_secret" in error_str:
        return "config"
    if "timeout" in error_str or "connect" in error_str or "network" in error_str:
        return "network_error"

    return "unknown"


def format_error(
    error: Exception,
    console: Console,
    cache_dir: str | None = None,
    verbose: bool = False,
) -> None:
    """Format and display a user-friendly error message."""
    error_type = get_error_type(error)
    info = ERROR_MESSAGES.get(error_type, ERROR_MESSAGES["unknown"])

    suggestion = info.suggestion
    if "{retry_after}" in suggestion:
        suggestion = suggestion.format(retry_after=getattr(error, "retry_after", 60))
    if "{cache_dir}" in suggestion:
        suggestion = suggestion.format(cache_dir=cache_dir or "the config directory")

    content_lines = [
        f"[white]{info.message}[/white]",
        "",
        f"[yellow]Suggestion:[/yellow] {suggestion}",
    ]

    if info.command:
        content_lines.append("")
        content_lines.append(f"[cyan]{info.command}[/cyan]")

    # Show technical details in verbose mode
    if verbose:
        content_lines.append("")
        content_lines.append("[dim]" + "─" * 40 + "[/dim]")
        content_lines.append(f"[dim]Type: {type(error).__name__}[/dim]")
        content_lines.append(f"[dim]Details: {error}[/dim]")

    console.print()
    console.print(Panel(
        "\n".join(content_lines),
        title=f"[red bold]Error: {info.title}[/red bold]",
        border_style="red",
        padding=(1, 2),
    ))
    console.print()
