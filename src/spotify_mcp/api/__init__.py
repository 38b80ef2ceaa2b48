"""Spotify Web API client."""

from spotify_mcp.api.client import SpotifyClient
from spotify_mcp.api.exceptions import RateLimitError, SpotifyAPIError, TokenExpiredError

__all__ = [
    "SpotifyClient",
    "SpotifyAPIError",
    "TokenExpiredError",
    "RateLimitError",
]
