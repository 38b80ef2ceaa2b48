"""MCP server for Spotify.

This server exposes the Spotify Web API as MCP tools for Claude and other
AI agents. Tool results are Spotify's JSON, passed through unchanged.

Usage:
    # Run the server
    python -m spotify_mcp.mcp

    # Or via entry point
    spotify-mcp-server
"""

import logging
from functools import wraps
from typing import Callable, Optional, TypeVar

from mcp.server.fastmcp import FastMCP

from spotify_mcp.api.client import ITEM_TYPES, REPEAT_STATES, TIME_RANGES, SpotifyClient
from spotify_mcp.api.exceptions import RateLimitError, SpotifyAPIError, TokenExpiredError
from spotify_mcp.auth.exceptions import AuthErrorKind, SpotifyAuthError
from spotify_mcp.auth.manager import CredentialManager
from spotify_mcp.config import get_settings
from spotify_mcp.utils.log import configure_logging

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)

MAX_LIMIT = 50

AUTH_RESOLUTIONS = {
    AuthErrorKind.NOT_AUTHENTICATED: "Call spotify_authorize and open the URL to log in.",
    AuthErrorKind.REAUTHORIZATION_REQUIRED: "Call spotify_authorize to log in again.",
    AuthErrorKind.TOKEN_REFRESH_FAILED: "Call spotify_authorize to log in again.",
    AuthErrorKind.INVALID_STATE: "Call spotify_authorize to start a new authorization.",
    AuthErrorKind.TOKEN_EXCHANGE_FAILED: "Call spotify_authorize to start a new authorization.",
    AuthErrorKind.STORAGE_FAILURE: "Check permissions of the spotify-mcp config directory.",
}


def mcp_error_handler(f: F) -> F:
    """Decorator to handle common errors in MCP tools.

    Catches ValueError (input validation), authentication failures,
    Spotify API errors and generic exceptions, returning structured
    error responses.
    """

    @wraps(f)
    async def wrapper(*args, **kwargs):
        try:
            return await f(*args, **kwargs)
        except ValueError as e:
            return {
                "success": False,
                "error_type": "validation_error",
                "message": str(e),
                "resolution": {
                    "action": "fix_input",
                    "user_instruction": "Check the input parameters and try again.",
                },
            }
        except SpotifyAuthError as e:
            return {
                "success": False,
                "error_type": "auth_error",
                "error_kind": e.kind.value,
                "message": e.message,
                "resolution": {
                    "action": "authorize",
                    "user_instruction": AUTH_RESOLUTIONS[e.kind],
                },
            }
        except TokenExpiredError as e:
            return {
                "success": False,
                "error_type": "auth_error",
                "message": str(e),
                "resolution": {
                    "action": "authorize",
                    "user_instruction": "Call spotify_authorize to log in again.",
                },
            }
        except RateLimitError as e:
            return {
                "success": False,
                "error_type": "rate_limited",
                "message": str(e),
                "retry_after": e.retry_after,
            }
        except SpotifyAPIError as e:
            return {
                "success": False,
                "error_type": "api_error",
                "status_code": e.status_code,
                "message": str(e),
            }
        except RuntimeError as e:
            return {
                "success": False,
                "error_type": "runtime_error",
                "message": str(e),
            }
        except Exception:
            logger.exception(f"MCP tool error in {f.__name__}")
            return {
                "success": False,
                "error_type": "internal_error",
                "message": "An unexpected error occurred",
            }

    return wrapper  # type: ignore


def _check_limit(limit: int) -> int:
    if not 1 <= limit <= MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}, got {limit}")
    return limit


def _check_time_range(time_range: str) -> str:
    if time_range not in TIME_RANGES:
        raise ValueError(f"time_range must be one of {', '.join(TIME_RANGES)}")
    return time_range


def create_server(credentials: CredentialManager, timeout: float = 10.0) -> FastMCP:
    """Build the MCP server around a credential manager.

    Args:
        credentials: The process's credential manager; every tool gets its
            access token from it
        timeout: HTTP timeout for Spotify Web API calls
    """
    mcp = FastMCP(
        name="spotify",
        instructions=(
            "Spotify - search the catalog, control playback and read the user's library. "
            "If a tool reports auth_error, call spotify_authorize and ask the user to open the URL."
        ),
    )

    def client() -> SpotifyClient:
        return SpotifyClient(credentials, timeout=timeout)

    def ok(result) -> dict:
        return {"success": True, "result": result}

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    @mcp.tool()
    @mcp_error_handler
    async def spotify_authorize() -> dict:
        """
        Generate the authorization URL for Spotify user authentication.

        Starts a local listener for the redirect; the login completes
        automatically once the user approves access in the browser.
        Starting a new authorization cancels any earlier, unfinished one.
        """
        url = await credentials.begin_authorization()
        return {
            "success": True,
            "authorization_url": url,
            "message": (
                "Please visit this URL to authorize Spotify access. After authorization "
                f"you'll be redirected to {credentials.redirect_uri}, which completes the login."
            ),
        }

    @mcp.tool()
    @mcp_error_handler
    async def spotify_auth_status() -> dict:
        """Check if the user is authenticated with Spotify."""
        authenticated = credentials.is_authenticated()
        return {
            "success": True,
            "authenticated": authenticated,
            "message": (
                "User is authenticated with Spotify"
                if authenticated
                else "User is not authenticated. Use spotify_authorize to get started."
            ),
        }

    @mcp.tool()
    @mcp_error_handler
    async def spotify_clear_auth() -> dict:
        """Clear stored authentication tokens (logout)."""
        credentials.clear_auth()
        return {
            "success": True,
            "message": (
                "Authentication tokens cleared. Use spotify_authorize to authenticate "
                "with a different account."
            ),
        }

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    @mcp.tool()
    @mcp_error_handler
    async def search_spotify(
        query: str,
        types: Optional[list[str]] = None,
        limit: int = 10,
    ) -> dict:
        """
        Search for tracks, albums, artists, or playlists on Spotify.

        Args:
            query: Search query
            types: Types of content to search for (track, album, artist, playlist; default: track)
            limit: Maximum number of results to return (1-50, default: 10)
        """
        types = types or ["track"]
        invalid = [t for t in types if t not in ITEM_TYPES]
        if invalid:
            raise ValueError(f"Invalid search types: {', '.join(invalid)}")
        async with client() as spotify:
            return ok(await spotify.search(query, types, _check_limit(limit)))

    @mcp.tool()
    @mcp_error_handler
    async def get_item_details(id: str, type: str) -> dict:
        """
        Get detailed information about a Spotify item.

        Args:
            id: Spotify ID of the item
            type: Type of the item (track, album, artist, playlist)
        """
        async with client() as spotify:
            return ok(await spotify.get_item(type, id))

    # -------------------------------------------------------------------------
    # Playback
    # -------------------------------------------------------------------------

    @mcp.tool()
    @mcp_error_handler
    async def get_current_track() -> dict:
        """Get currently playing track. Result is null when nothing is playing."""
        async with client() as spotify:
            return ok(await spotify.get_current_track())

    @mcp.tool()
    @mcp_error_handler
    async def get_playback_state() -> dict:
        """Get current playback state (device, shuffle, repeat, progress)."""
        async with client() as spotify:
            return ok(await spotify.get_playback_state())

    @mcp.tool()
    @mcp_error_handler
    async def play_track(
        uris: Optional[list[str]] = None,
        context_uri: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> dict:
        """
        Start playback of tracks or a context.

        Args:
            uris: Spotify track URIs to play
            context_uri: Spotify context URI (album, playlist, etc.)
            device_id: Device ID to play on
        """
        async with client() as spotify:
            await spotify.start_playback(device_id=device_id, context_uri=context_uri, uris=uris)
        return {"success": True, "message": "Playback started"}

    @mcp.tool()
    @mcp_error_handler
    async def pause_playback(device_id: Optional[str] = None) -> dict:
        """Pause current playback."""
        async with client() as spotify:
            await spotify.pause_playback(device_id)
        return {"success": True, "message": "Playback paused"}

    @mcp.tool()
    @mcp_error_handler
    async def skip_to_next(device_id: Optional[str] = None) -> dict:
        """Skip to next track."""
        async with client() as spotify:
            await spotify.skip_to_next(device_id)
        return {"success": True, "message": "Skipped to next track"}

    @mcp.tool()
    @mcp_error_handler
    async def skip_to_previous(device_id: Optional[str] = None) -> dict:
        """Skip to previous track."""
        async with client() as spotify:
            await spotify.skip_to_previous(device_id)
        return {"success": True, "message": "Skipped to previous track"}

    @mcp.tool()
    @mcp_error_handler
    async def set_volume(volume_percent: int, device_id: Optional[str] = None) -> dict:
        """
        Set playback volume.

        Args:
            volume_percent: Volume percentage (0-100; values outside are clamped)
            device_id: Device ID
        """
        volume = max(0, min(100, volume_percent))
        async with client() as spotify:
            await spotify.set_volume(volume, device_id)
        return {"success": True, "message": f"Volume set to {volume}%"}

    @mcp.tool()
    @mcp_error_handler
    async def set_shuffle(state: bool, device_id: Optional[str] = None) -> dict:
        """Turn shuffle on or off."""
        async with client() as spotify:
            await spotify.set_shuffle(state, device_id)
        return {"success": True, "message": f"Shuffle {'on' if state else 'off'}"}

    @mcp.tool()
    @mcp_error_handler
    async def set_repeat(state: str, device_id: Optional[str] = None) -> dict:
        """
        Set repeat mode.

        Args:
            state: off, track or context
            device_id: Device ID
        """
        if state not in REPEAT_STATES:
            raise ValueError(f"state must be one of {', '.join(REPEAT_STATES)}")
        async with client() as spotify:
            await spotify.set_repeat(state, device_id)  # type: ignore[arg-type]
        return {"success": True, "message": f"Repeat set to {state}"}

    @mcp.tool()
    @mcp_error_handler
    async def add_to_queue(uri: str, device_id: Optional[str] = None) -> dict:
        """
        Add a track to the playback queue.

        Args:
            uri: Spotify URI of track to add
            device_id: Device ID
        """
        if not uri:
            raise ValueError("uri is required")
        async with client() as spotify:
            await spotify.add_to_queue(uri, device_id)
        return {"success": True, "message": f"Added {uri} to queue"}

    @mcp.tool()
    @mcp_error_handler
    async def get_queue() -> dict:
        """Get current playback queue."""
        async with client() as spotify:
            return ok(await spotify.get_queue())

    @mcp.tool()
    @mcp_error_handler
    async def get_devices() -> dict:
        """Get available playback devices."""
        async with client() as spotify:
            return ok(await spotify.get_devices())

    # -------------------------------------------------------------------------
    # Library and profile
    # -------------------------------------------------------------------------

    @mcp.tool()
    @mcp_error_handler
    async def get_recently_played(limit: int = 20) -> dict:
        """Get recently played tracks (limit 1-50, default: 20)."""
        async with client() as spotify:
            return ok(await spotify.get_recently_played(_check_limit(limit)))

    @mcp.tool()
    @mcp_error_handler
    async def get_top_tracks(time_range: str = "medium_term", limit: int = 20) -> dict:
        """
        Get user's top tracks.

        Args:
            time_range: short_term (~4 weeks), medium_term (~6 months) or long_term (years)
            limit: Number of tracks (1-50, default: 20)
        """
        async with client() as spotify:
            return ok(
                await spotify.get_top_tracks(_check_time_range(time_range), _check_limit(limit))
            )

    @mcp.tool()
    @mcp_error_handler
    async def get_top_artists(time_range: str = "medium_term", limit: int = 20) -> dict:
        """
        Get user's top artists.

        Args:
            time_range: short_term (~4 weeks), medium_term (~6 months) or long_term (years)
            limit: Number of artists (1-50, default: 20)
        """
        async with client() as spotify:
            return ok(
                await spotify.get_top_artists(_check_time_range(time_range), _check_limit(limit))
            )

    @mcp.tool()
    @mcp_error_handler
    async def get_user_playlists(limit: int = 20) -> dict:
        """Get user's playlists (limit 1-50, default: 20)."""
        async with client() as spotify:
            return ok(await spotify.get_user_playlists(_check_limit(limit)))

    @mcp.tool()
    @mcp_error_handler
    async def get_saved_tracks(limit: int = 20, offset: int = 0) -> dict:
        """Get user's saved/liked tracks."""
        async with client() as spotify:
            return ok(await spotify.get_saved_tracks(_check_limit(limit), max(0, offset)))

    @mcp.tool()
    @mcp_error_handler
    async def get_saved_albums(limit: int = 20, offset: int = 0) -> dict:
        """Get user's saved albums."""
        async with client() as spotify:
            return ok(await spotify.get_saved_albums(_check_limit(limit), max(0, offset)))

    @mcp.tool()
    @mcp_error_handler
    async def get_user_profile() -> dict:
        """Get user profile information."""
        async with client() as spotify:
            return ok(await spotify.get_user_profile())

    @mcp.resource("spotify://status")
    def get_auth_status() -> str:
        """
        Get authentication status.

        Helps the agent understand whether user-level tools will work.
        """
        record = credentials.get_credentials()
        if record is None:
            return "Not authenticated with Spotify. Use spotify_authorize to log in."
        refresh = "available" if record.has_refresh_token() else "not available"
        return f"Authenticated with Spotify (refresh token: {refresh})."

    return mcp


# -----------------------------------------------------------------------------
# Server Entry Point
# -----------------------------------------------------------------------------


def main():
    """Run the MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    credentials = CredentialManager.from_settings(settings)
    server = create_server(credentials, timeout=settings.timeout)
    logger.info("Spotify MCP server running on stdio")
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
