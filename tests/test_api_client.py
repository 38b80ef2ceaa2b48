"""Tests for the Spotify Web API client."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx
from tenacity import wait_none

from spotify_mcp.api.client import API_BASE_URL, SpotifyClient
from spotify_mcp.api.exceptions import RateLimitError, SpotifyAPIError, TokenExpiredError
from spotify_mcp.auth.exceptions import NotAuthenticatedError


@pytest.fixture
def credentials():
    """Credential manager handing out a fixed token."""
    mock = MagicMock()
    mock.get_valid_access_token = AsyncMock(return_value="token123")
    return mock


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(SpotifyClient._request.retry, "wait", wait_none())
    monkeypatch.setattr(SpotifyClient._command.retry, "wait", wait_none())


@pytest.mark.asyncio
class TestSpotifyClient:
    """Tests for SpotifyClient."""

    async def test_context_manager(self, credentials):
        """Client can be used as async context manager."""
        client = SpotifyClient(credentials)

        assert client._client is None

        async with client:
            assert client._client is not None

        assert client._client is None

    async def test_client_not_initialized_error(self, credentials):
        """Using client outside context manager raises error."""
        client = SpotifyClient(credentials)

        with pytest.raises(RuntimeError, match="not initialized"):
            await client.get_user_profile()

    @respx.mock
    async def test_authorization_header(self, credentials):
        """Bearer token from the credential manager is sent."""
        route = respx.get(f"{API_BASE_URL}/me").mock(
            return_value=httpx.Response(200, json={"id": "user1"})
        )

        async with SpotifyClient(credentials) as client:
            profile = await client.get_user_profile()

        assert profile == {"id": "user1"}
        assert route.calls.last.request.headers["Authorization"] == "Bearer token123"

    @respx.mock
    async def test_token_fetched_per_request(self, credentials):
        """Each request asks for a valid token, so refreshed tokens are picked up."""
        credentials.get_valid_access_token = AsyncMock(side_effect=["first", "second"])
        route = respx.get(f"{API_BASE_URL}/me").mock(return_value=httpx.Response(200, json={}))

        async with SpotifyClient(credentials) as client:
            await client.get_user_profile()
            await client.get_user_profile()

        assert route.calls[0].request.headers["Authorization"] == "Bearer first"
        assert route.calls[1].request.headers["Authorization"] == "Bearer second"

    async def test_auth_error_propagates(self, credentials):
        """Credential failures reach the caller before any request is made."""
        credentials.get_valid_access_token = AsyncMock(side_effect=NotAuthenticatedError())

        async with SpotifyClient(credentials) as client:
            with pytest.raises(NotAuthenticatedError):
                await client.get_user_profile()

    @respx.mock
    async def test_search(self, credentials):
        """Search joins types and passes the limit."""
        route = respx.get(f"{API_BASE_URL}/search").mock(
            return_value=httpx.Response(200, json={"tracks": {"items": []}})
        )

        async with SpotifyClient(credentials) as client:
            result = await client.search("daft punk", ["track", "artist"], limit=5)

        assert result == {"tracks": {"items": []}}
        params = route.calls.last.request.url.params
        assert params["q"] == "daft punk"
        assert params["type"] == "track,artist"
        assert params["limit"] == "5"

    @respx.mock
    async def test_get_item(self, credentials):
        """Items are fetched from the plural endpoint of their type."""
        respx.get(f"{API_BASE_URL}/albums/abc").mock(
            return_value=httpx.Response(200, json={"id": "abc", "type": "album"})
        )

        async with SpotifyClient(credentials) as client:
            album = await client.get_item("album", "abc")

        assert album["type"] == "album"

    async def test_get_item_invalid_type(self, credentials):
        """Unknown item types are rejected."""
        async with SpotifyClient(credentials) as client:
            with pytest.raises(ValueError, match="Invalid item type"):
                await client.get_item("podcast", "abc")

    @respx.mock
    async def test_nothing_playing(self, credentials):
        """204 from currently-playing means nothing is playing."""
        respx.get(f"{API_BASE_URL}/me/player/currently-playing").mock(
            return_value=httpx.Response(204)
        )

        async with SpotifyClient(credentials) as client:
            assert await client.get_current_track() is None

    @respx.mock
    async def test_start_playback(self, credentials):
        """Playback body and device are sent."""
        route = respx.put(f"{API_BASE_URL}/me/player/play").mock(
            return_value=httpx.Response(204)
        )

        async with SpotifyClient(credentials) as client:
            await client.start_playback(device_id="dev1", uris=["spotify:track:1"])

        request = route.calls.last.request
        assert json.loads(request.content) == {"uris": ["spotify:track:1"]}
        assert request.url.params["device_id"] == "dev1"

    @respx.mock
    async def test_add_to_queue(self, credentials):
        """Queue takes the URI as query parameter."""
        route = respx.post(f"{API_BASE_URL}/me/player/queue").mock(
            return_value=httpx.Response(204)
        )

        async with SpotifyClient(credentials) as client:
            await client.add_to_queue("spotify:track:1")

        params = route.calls.last.request.url.params
        assert params["uri"] == "spotify:track:1"
        assert "device_id" not in params

    @respx.mock
    async def test_set_volume_clamped(self, credentials):
        """Volume is clamped to 0-100."""
        route = respx.put(f"{API_BASE_URL}/me/player/volume").mock(
            return_value=httpx.Response(204)
        )

        async with SpotifyClient(credentials) as client:
            await client.set_volume(150)

        assert route.calls.last.request.url.params["volume_percent"] == "100"

    @respx.mock
    async def test_set_shuffle(self, credentials):
        """Shuffle state is sent as lowercase boolean."""
        route = respx.put(f"{API_BASE_URL}/me/player/shuffle").mock(
            return_value=httpx.Response(204)
        )

        async with SpotifyClient(credentials) as client:
            await client.set_shuffle(True)

        assert route.calls.last.request.url.params["state"] == "true"

    async def test_set_repeat_invalid(self, credentials):
        """Unknown repeat states are rejected."""
        async with SpotifyClient(credentials) as client:
            with pytest.raises(ValueError):
                await client.set_repeat("sometimes")  # type: ignore[arg-type]

    @respx.mock
    async def test_get_devices(self, credentials):
        """Device list is unwrapped."""
        respx.get(f"{API_BASE_URL}/me/player/devices").mock(
            return_value=httpx.Response(200, json={"devices": [{"id": "dev1"}]})
        )

        async with SpotifyClient(credentials) as client:
            assert await client.get_devices() == [{"id": "dev1"}]

    @respx.mock
    async def test_top_tracks(self, credentials):
        """Top tracks pass time range and limit."""
        route = respx.get(f"{API_BASE_URL}/me/top/tracks").mock(
            return_value=httpx.Response(200, json={"items": []})
        )

        async with SpotifyClient(credentials) as client:
            await client.get_top_tracks("short_term", 10)

        params = route.calls.last.request.url.params
        assert params["time_range"] == "short_term"
        assert params["limit"] == "10"

    @respx.mock
    async def test_token_expired_error(self, credentials):
        """401 response raises TokenExpiredError."""
        respx.get(f"{API_BASE_URL}/me").mock(return_value=httpx.Response(401))

        async with SpotifyClient(credentials) as client:
            with pytest.raises(TokenExpiredError):
                await client.get_user_profile()

    @respx.mock
    async def test_rate_limit_error(self, credentials):
        """429 response raises RateLimitError with retry_after."""
        respx.get(f"{API_BASE_URL}/me").mock(
            return_value=httpx.Response(429, headers={"Retry-After": "120"})
        )

        async with SpotifyClient(credentials) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get_user_profile()

        assert exc_info.value.retry_after == 120

    @respx.mock
    async def test_generic_api_error(self, credentials):
        """Other errors raise SpotifyAPIError with Spotify's message."""
        respx.put(f"{API_BASE_URL}/me/player/pause").mock(
            return_value=httpx.Response(
                403,
                json={"error": {"status": 403, "message": "Player command failed: Premium required"}},
            )
        )

        async with SpotifyClient(credentials) as client:
            with pytest.raises(SpotifyAPIError) as exc_info:
                await client.pause_playback()

        assert exc_info.value.status_code == 403
        assert "Premium required" in str(exc_info.value)

    @respx.mock
    async def test_retries_connection_errors(self, credentials, no_retry_wait):
        """Transient connection errors are retried."""
        route = respx.get(f"{API_BASE_URL}/me").mock(
            side_effect=[httpx.ConnectError("reset"), httpx.Response(200, json={"id": "u"})]
        )

        async with SpotifyClient(credentials) as client:
            assert await client.get_user_profile() == {"id": "u"}

        assert route.call_count == 2

    @respx.mock
    async def test_gives_up_after_three_attempts(self, credentials, no_retry_wait):
        """Persistent failures are raised after three attempts."""
        route = respx.get(f"{API_BASE_URL}/me").mock(side_effect=httpx.ConnectError("down"))

        async with SpotifyClient(credentials) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get_user_profile()

        assert route.call_count == 3

    @respx.mock
    async def test_api_errors_not_retried(self, credentials):
        """HTTP error responses are not retried."""
        route = respx.get(f"{API_BASE_URL}/me").mock(return_value=httpx.Response(500))

        async with SpotifyClient(credentials) as client:
            with pytest.raises(SpotifyAPIError):
                await client.get_user_profile()

        assert route.call_count == 1

    @respx.mock
    async def test_read_timeout_on_command_not_retried(self, credentials, no_retry_wait):
        """A command that timed out is sent once, so a skip never happens twice."""
        route = respx.post(f"{API_BASE_URL}/me/player/next").mock(
            side_effect=[httpx.ReadTimeout("slow"), httpx.Response(204)]
        )

        async with SpotifyClient(credentials) as client:
            with pytest.raises(httpx.ReadTimeout):
                await client.skip_to_next()

        assert route.call_count == 1

    @respx.mock
    async def test_connect_error_on_command_retried(self, credentials, no_retry_wait):
        """A command that never reached Spotify is retried."""
        route = respx.post(f"{API_BASE_URL}/me/player/queue").mock(
            side_effect=[httpx.ConnectError("refused"), httpx.Response(204)]
        )

        async with SpotifyClient(credentials) as client:
            await client.add_to_queue("spotify:track:1")

        assert route.call_count == 2

    @respx.mock
    async def test_read_timeout_on_get_retried(self, credentials, no_retry_wait):
        """Read requests are retried after a read timeout."""
        route = respx.get(f"{API_BASE_URL}/me/player/queue").mock(
            side_effect=[httpx.ReadTimeout("slow"), httpx.Response(200, json={"queue": []})]
        )

        async with SpotifyClient(credentials) as client:
            assert await client.get_queue() == {"queue": []}

        assert route.call_count == 2
