"""Async HTTP client for the Spotify Web API with retry logic.

Responses are passed through unchanged. The bearer token is fetched from
the ``CredentialManager`` for every request, so a token that expires
while the client is open is refreshed transparently.
"""

import logging
from typing import Any, Literal

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from spotify_mcp.api.exceptions import RateLimitError, SpotifyAPIError, TokenExpiredError
from spotify_mcp.auth.manager import CredentialManager

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"

ITEM_TYPES = ("track", "album", "artist", "playlist")
TIME_RANGES = ("short_term", "medium_term", "long_term")
REPEAT_STATES = ("off", "track", "context")

RepeatState = Literal["off", "track", "context"]


def _device_params(device_id: str | None, **params: Any) -> dict[str, Any]:
    if device_id:
        params["device_id"] = device_id
    return params


class SpotifyClient:
    """Async client for the Spotify Web API.

    Usage:
        async with SpotifyClient(credentials) as client:
            results = await client.search("daft punk", ["artist"])
    """

    def __init__(
        self,
        credentials: CredentialManager,
        timeout: float = 10.0,
        base_url: str = API_BASE_URL,
    ):
        self.credentials = credentials
        self.base_url = base_url
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "SpotifyClient":
        """Enter context manager, creating HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": "application/json",
                "User-Agent": "spotify-mcp/0.2.0",
            },
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager, closing HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure client is initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized - use 'async with' context manager")
        return self._client

    def _handle_response(self, response: httpx.Response) -> Any:
        """Handle API response, raising appropriate errors."""
        if response.status_code == 401:
            raise TokenExpiredError("Spotify rejected the access token", 401)

        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise RateLimitError("Rate limit exceeded", retry_after)

        if response.status_code >= 400:
            # Log detailed error for debugging, but only surface Spotify's message
            logger.error(f"API error: {response.status_code} - {response.text}")
            message = f"API request failed ({response.status_code})"
            try:
                error = response.json().get("error")
                if isinstance(error, dict) and error.get("message"):
                    message = f"{message}: {error['message']}"
            except (ValueError, AttributeError):
                pass
            raise SpotifyAPIError(message, response.status_code)

        # Nothing playing, or a command endpoint with no body
        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    async def _send(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make a single authenticated API request."""
        client = self._ensure_client()
        token = await self.credentials.get_valid_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        response = await client.request(method, endpoint, headers=headers, **kwargs)
        return self._handle_response(response)

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make a read request with retry logic."""
        return await self._send(method, endpoint, **kwargs)

    # A command that timed out may already have reached Spotify
    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _command(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make a state-changing request, retried only on connection failures."""
        return await self._send(method, endpoint, **kwargs)

    async def _get(self, endpoint: str, **kwargs) -> Any:
        return await self._request("GET", endpoint, **kwargs)

    async def _put(self, endpoint: str, **kwargs) -> Any:
        return await self._command("PUT", endpoint, **kwargs)

    async def _post(self, endpoint: str, **kwargs) -> Any:
        return await self._command("POST", endpoint, **kwargs)

    # Catalog

    async def search(self, query: str, types: list[str] | None = None, limit: int = 10) -> dict:
        """Search the catalog for tracks, albums, artists or playlists."""
        types = types or ["track"]
        return await self._get(
            "/search", params={"q": query, "type": ",".join(types), "limit": limit}
        )

    async def get_track(self, track_id: str) -> dict:
        return await self._get(f"/tracks/{track_id}")

    async def get_album(self, album_id: str) -> dict:
        return await self._get(f"/albums/{album_id}")

    async def get_artist(self, artist_id: str) -> dict:
        return await self._get(f"/artists/{artist_id}")

    async def get_playlist(self, playlist_id: str) -> dict:
        return await self._get(f"/playlists/{playlist_id}")

    async def get_item(self, item_type: str, item_id: str) -> dict:
        """Get a track, album, artist or playlist by ID."""
        if item_type not in ITEM_TYPES:
            raise ValueError(f"Invalid item type: {item_type}")
        return await self._get(f"/{item_type}s/{item_id}")

    # Player

    async def get_current_track(self) -> dict | None:
        """Currently playing item, or None when nothing is playing."""
        return await self._get("/me/player/currently-playing")

    async def get_playback_state(self) -> dict | None:
        return await self._get("/me/player")

    async def start_playback(
        self,
        device_id: str | None = None,
        context_uri: str | None = None,
        uris: list[str] | None = None,
    ) -> None:
        body: dict[str, Any] = {}
        if context_uri:
            body["context_uri"] = context_uri
        if uris:
            body["uris"] = uris
        await self._put("/me/player/play", json=body, params=_device_params(device_id))

    async def pause_playback(self, device_id: str | None = None) -> None:
        await self._put("/me/player/pause", params=_device_params(device_id))

    async def skip_to_next(self, device_id: str | None = None) -> None:
        await self._post("/me/player/next", params=_device_params(device_id))

    async def skip_to_previous(self, device_id: str | None = None) -> None:
        await self._post("/me/player/previous", params=_device_params(device_id))

    async def add_to_queue(self, uri: str, device_id: str | None = None) -> None:
        await self._post("/me/player/queue", params=_device_params(device_id, uri=uri))

    async def get_queue(self) -> dict:
        return await self._get("/me/player/queue")

    async def get_devices(self) -> list[dict]:
        data = await self._get("/me/player/devices")
        return (data or {}).get("devices", [])

    async def set_volume(self, volume_percent: int, device_id: str | None = None) -> None:
        volume = max(0, min(100, int(volume_percent)))
        await self._put(
            "/me/player/volume", params=_device_params(device_id, volume_percent=volume)
        )

    async def set_shuffle(self, state: bool, device_id: str | None = None) -> None:
        await self._put(
            "/me/player/shuffle",
            params=_device_params(device_id, state="true" if state else "false"),
        )

    async def set_repeat(self, state: RepeatState, device_id: str | None = None) -> None:
        if state not in REPEAT_STATES:
            raise ValueError(f"Invalid repeat state: {state}")
        await self._put("/me/player/repeat", params=_device_params(device_id, state=state))

    # Library and profile

    async def get_recently_played(self, limit: int = 20) -> dict:
        return await self._get("/me/player/recently-played", params={"limit": limit})

    async def get_top_tracks(self, time_range: str = "medium_term", limit: int = 20) -> dict:
        return await self._get(
            "/me/top/tracks", params={"time_range": time_range, "limit": limit}
        )

    async def get_top_artists(self, time_range: str = "medium_term", limit: int = 20) -> dict:
        return await self._get(
            "/me/top/artists", params={"time_range": time_range, "limit": limit}
        )

    async def get_user_playlists(self, limit: int = 20) -> dict:
        return await self._get("/me/playlists", params={"limit": limit})

    async def get_saved_tracks(self, limit: int = 20, offset: int = 0) -> dict:
        return await self._get("/me/tracks", params={"limit": limit, "offset": offset})

    async def get_saved_albums(self, limit: int = 20, offset: int = 0) -> dict:
        return await self._get("/me/albums", params={"limit": limit, "offset": offset})

    async def get_user_profile(self) -> dict:
        return await self._get("/me")
